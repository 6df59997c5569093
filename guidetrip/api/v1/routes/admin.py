from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from guidetrip.db.session import get_db
from guidetrip.api.deps import require_roles, client_ip
from guidetrip.api.v1.routes.orders import _order_dict, _order_list, _iso
from guidetrip.core.errors import NotFoundError
from guidetrip.models.audit_log import AuditLog
from guidetrip.models.check_in import CheckInRecord
from guidetrip.models.order import Order
from guidetrip.models.overtime import OvertimeRecord
from guidetrip.models.payment import Payment
from guidetrip.models.refund import RefundRecord
from guidetrip.models.user import User
from guidetrip.schemas.order import AdminRefundIn, AssignGuideIn
from guidetrip.services.payment_provider import PaymentProvider, get_payment_provider
from guidetrip.services import order_service, refund_service

router = APIRouter(tags=["admin"])


@router.get("/admin/orders")
def admin_list_orders(status: str | None = None, db: Session = Depends(get_db),
                      me: User = Depends(require_roles("admin", "cs"))):
    return _order_list(db, order_service.list_orders(db, me.id, me.role, status=status))


@router.get("/admin/orders/{order_id}")
def admin_order_detail(order_id: str, db: Session = Depends(get_db),
                       me: User = Depends(require_roles("admin", "cs"))):
    o = db.get(Order, order_id)
    if not o:
        raise NotFoundError("order not found")
    pays = db.query(Payment).filter(Payment.order_id == o.id).order_by(Payment.created_at.asc()).all()
    overtime = db.query(OvertimeRecord).filter(OvertimeRecord.order_id == o.id).order_by(OvertimeRecord.created_at.asc()).all()
    refunds = db.query(RefundRecord).filter(RefundRecord.order_id == o.id).order_by(RefundRecord.created_at.asc()).all()
    check_ins = db.query(CheckInRecord).filter(CheckInRecord.order_id == o.id).order_by(CheckInRecord.checked_in_at.asc()).all()
    return {
        **_order_dict(o),
        "payments": [{
            "relatedType": p.related_type, "relatedId": p.related_id, "amount": p.amount, "status": p.status,
            "transactionId": p.transaction_id, "paidAt": _iso(p.paid_at),
        } for p in pays],
        "overtime": [{
            "id": r.id, "duration": r.duration, "fee": r.fee, "status": r.status, "paidAt": _iso(r.paid_at),
        } for r in overtime],
        "refundRecords": [{
            "amount": r.amount, "reason": r.reason, "operatorId": r.operator_id,
            "outRefundNo": r.out_refund_no, "createdAt": _iso(r.created_at),
        } for r in refunds],
        "checkIns": [{
            "type": c.type, "attachmentId": c.attachment_id, "lat": c.latitude, "lng": c.longitude,
            "at": _iso(c.checked_in_at),
        } for c in check_ins],
        "audit": [{
            "at": _iso(a.created_at), "action": a.action, "actor": a.actor_id, "details": a.details_json,
        } for a in db.query(AuditLog).filter(AuditLog.entity_type == "order", AuditLog.entity_id == o.id).order_by(AuditLog.created_at.asc()).all()],
    }


@router.post("/admin/orders/{order_id}/refund")
def admin_refund(order_id: str, body: AdminRefundIn, request: Request, db: Session = Depends(get_db),
                 me: User = Depends(require_roles("admin")),
                 provider: PaymentProvider = Depends(get_payment_provider)):
    record = refund_service.refund_by_admin(db, provider, order_id, body.amount, body.reason, me.id,
                                            client_ip=client_ip(request))
    return {"ok": True, "orderId": order_id, "status": "refunded", "refundAmount": record.amount,
            "outRefundNo": record.out_refund_no}


@router.post("/admin/orders/{order_id}/assign-guide")
def admin_assign_guide(order_id: str, body: AssignGuideIn, request: Request, db: Session = Depends(get_db),
                       me: User = Depends(require_roles("admin"))):
    order = order_service.assign_guide(db, order_id, body.guideId, me.id, client_ip(request))
    return {"ok": True, "orderId": order.id, "status": order.status, "guideId": order.guide_id}


@router.post("/admin/orders/{order_id}/cancel")
def admin_cancel(order_id: str, request: Request, db: Session = Depends(get_db),
                 me: User = Depends(require_roles("admin"))):
    order = order_service.cancel_order(db, order_id, me.id, "admin", client_ip(request))
    return {"ok": True, "orderId": order.id, "status": order.status}


@router.post("/admin/orders/{order_id}/reopen")
def admin_reopen(order_id: str, request: Request, db: Session = Depends(get_db),
                 me: User = Depends(require_roles("admin"))):
    order = order_service.reopen_order(db, order_id, me.id, client_ip(request))
    return {"ok": True, "orderId": order.id, "status": order.status}
