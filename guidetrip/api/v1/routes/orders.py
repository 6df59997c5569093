from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from guidetrip.db.session import get_db
from guidetrip.api.deps import get_current_user, client_ip
from guidetrip.models.order import Order
from guidetrip.models.user import User
from guidetrip.schemas.order import OrderCreate, CheckInIn, OvertimeCreateIn
from guidetrip.services.payment_provider import PaymentProvider, get_payment_provider
from guidetrip.services import order_service, overtime_service, refund_service
from guidetrip.services.check_in_service import check_in

router = APIRouter(tags=["orders"])


def _iso(dt):
    return dt.isoformat() if dt else None


def _order_dict(o: Order) -> dict:
    return {
        "id": o.id,
        "orderNumber": o.order_number,
        "kind": o.kind,
        "status": o.status,
        "customerId": o.customer_id,
        "guideId": o.guide_id,
        "amount": o.amount,
        "totalAmount": o.total_amount,
        "guideIncome": o.guide_income,
        "pricePerHour": o.price_per_hour,
        "duration": o.duration,
        "totalDuration": o.total_duration,
        "serviceStartTime": _iso(o.service_start_time),
        "serviceEndTime": _iso(o.service_end_time),
        "actualEndTime": _iso(o.actual_end_time),
        "paidAt": _iso(o.paid_at),
        "reopenedAt": _iso(o.reopened_at),
        "refundAmount": o.refund_amount,
        "remark": o.remark,
        "createdAt": _iso(o.created_at),
    }


def _order_list(db: Session, orders: list[Order]) -> list[dict]:
    reqs = order_service.custom_requirements_for(db, orders)
    out = []
    for o in orders:
        item = _order_dict(o)
        req = reqs.get(o.id)
        if req:
            item.update({"destination": req.destination, "startDate": req.start_date.isoformat(),
                         "content": req.special_requirements})
        out.append(item)
    return out


@router.post("/orders", status_code=201)
def create_order(body: OrderCreate, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    order = order_service.create_order(db, me.id, body.root)
    return _order_dict(order)


@router.get("/orders")
def list_my_orders(status: str | None = None, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    orders = order_service.list_orders(db, me.id, me.role, status=status)
    return _order_list(db, orders)


@router.get("/orders/{order_id}")
def get_order(order_id: str, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    return _order_dict(order_service.get_order(db, order_id, me.id, me.role))


@router.post("/orders/{order_id}/payment")
def pay_order(order_id: str, db: Session = Depends(get_db), me: User = Depends(get_current_user),
              provider: PaymentProvider = Depends(get_payment_provider)):
    order = order_service.pay_order(db, provider, order_id, me.id)
    return {"ok": True, "orderId": order.id, "status": order.status, "paidAt": _iso(order.paid_at)}


@router.post("/orders/{order_id}/accept")
def accept_order(order_id: str, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    order = order_service.accept_order(db, order_id, me.id)
    return {"ok": True, "orderId": order.id, "status": order.status}


@router.post("/orders/{order_id}/cancel")
def cancel_order(order_id: str, request: Request, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    # customer path only; staff cancel through /admin
    order = order_service.cancel_order(db, order_id, me.id, "customer", client_ip(request))
    return {"ok": True, "orderId": order.id, "status": order.status}


@router.post("/orders/{order_id}/check-in")
def order_check_in(order_id: str, body: CheckInIn, db: Session = Depends(get_db), me: User = Depends(get_current_user)):
    result = check_in(db, order_id, me.id, body.type, body.attachmentId, body.lat, body.lng)
    return {**result, "checkInTime": _iso(result["checkInTime"])}


@router.post("/orders/{order_id}/overtime", status_code=201)
def request_overtime(order_id: str, body: OvertimeCreateIn, db: Session = Depends(get_db),
                     me: User = Depends(get_current_user)):
    record = overtime_service.create_overtime(db, order_id, me.id, body.duration)
    return {"overtimeId": record.id, "orderId": record.order_id, "duration": record.duration,
            "fee": record.fee, "status": record.status}


@router.post("/orders/{order_id}/refund")
def refund_order(order_id: str, request: Request, db: Session = Depends(get_db),
                 me: User = Depends(get_current_user), provider: PaymentProvider = Depends(get_payment_provider)):
    return refund_service.refund_by_user(db, provider, order_id, me.id, client_ip=client_ip(request))
