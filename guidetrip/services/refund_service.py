"""Customer and admin refunds.

Sequence: validate on a plain read, call the gateway with no row lock held,
then commit the state change, refund amount, RefundRecord and audit row in
one transaction. A gateway failure changes nothing locally; the caller may
retry later.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from guidetrip.core.errors import ForbiddenError, InternalError, PaymentProviderError, ValidationError
from guidetrip.models.order import Order, OrderStatus
from guidetrip.models.payment import Payment
from guidetrip.models.refund import RefundRecord
from guidetrip.services.audit_service import AuditActions, log_audit
from guidetrip.services.ledger import ensure_minor_units
from guidetrip.services.order_state import load_order, require_status, transition
from guidetrip.services.payment_provider import PaymentProvider

logger = logging.getLogger(__name__)

REFUNDABLE_STATES = (OrderStatus.PAID, OrderStatus.WAITING_SERVICE)
FREE_CANCEL_WINDOW = timedelta(hours=1)
REFUND_PENALTY = 15000  # minor units, charged when the free window has passed


def compute_user_refund(amount: int, paid_at: datetime, now: datetime) -> tuple[int, bool]:
    """Return (refund amount, penalty applied)."""
    ensure_minor_units(amount)
    if now - paid_at <= FREE_CANCEL_WINDOW:
        return amount, False
    return max(0, amount - REFUND_PENALTY), True


def find_original_payment(db: Session, order: Order) -> Payment:
    payment = (
        db.query(Payment)
        .filter(
            Payment.order_id == order.id,
            Payment.related_type == "order",
            Payment.status == "success",
        )
        .order_by(Payment.created_at.asc())
        .first()
    )
    if not payment:
        # the refund cannot reference a transaction that was never recorded
        logger.error("order %s is %s but has no successful payment row", order.order_number, order.status)
        raise InternalError(f"original payment for order {order.order_number} not found", code="PAYMENT_RECORD_MISSING")
    return payment


def make_out_refund_no() -> str:
    return f"RF{datetime.now(timezone.utc).strftime('%Y%m%d%H%M%S')}{uuid.uuid4().hex[:8].upper()}"


def _execute_refund(db: Session, provider: PaymentProvider, order: Order, payment: Payment, amount: int,
                    reason: str, operator_id: str, action: str, client_ip: str | None,
                    now: datetime, details: dict) -> RefundRecord:
    order_id, order_ref, expected = order.id, order.order_number, order.status
    out_refund_no = make_out_refund_no()

    result = provider.refund(order_ref, amount, payment.transaction_id, out_refund_no, reason)
    if not result.success:
        logger.warning("refund of order %s rejected by provider: %s", order_ref, result.error)
        raise PaymentProviderError(f"refund failed: {result.error or 'unknown error'}")

    try:
        order = load_order(db, order_id)
        if order.status != expected:
            raise InternalError(
                f"order {order_ref} moved to {order.status} while refund {out_refund_no} was processed",
                code="REFUND_RECONCILIATION_REQUIRED",
            )
        try:
            transition(db, order, OrderStatus.REFUNDED, now=now, refund_amount=amount)
        except ValidationError as e:
            raise InternalError(
                f"order {order_ref} changed while refund {out_refund_no} was processed",
                code="REFUND_RECONCILIATION_REQUIRED",
            ) from e
        record = RefundRecord(
            id=str(uuid.uuid4()),
            order_id=order.id,
            amount=amount,
            reason=reason,
            operator_id=operator_id,
            out_refund_no=out_refund_no,
            refund_transaction_id=result.refund_transaction_id,
            created_at=now,
        )
        db.add(record)
        log_audit(db, operator_id, action, "order", order.id,
                  {"orderNumber": order_ref, "amount": amount, "outRefundNo": out_refund_no, **details},
                  client_ip=client_ip)
        db.commit()
    except Exception:
        db.rollback()
        # money has already left through the gateway
        logger.error("refund %s for order %s succeeded at provider but was not recorded",
                     out_refund_no, order_ref, exc_info=True)
        raise
    db.refresh(record)
    logger.info("order %s refunded amount=%d operator=%s", order_ref, amount, operator_id)
    return record


def refund_by_user(db: Session, provider: PaymentProvider, order_id: str, customer_id: str,
                   client_ip: str | None = None, now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    order = load_order(db, order_id, lock=False)
    if order.customer_id != customer_id:
        raise ForbiddenError("only the customer can refund this order")
    require_status(order, *REFUNDABLE_STATES, action="refund")

    payment = find_original_payment(db, order)
    paid_at = payment.paid_at or order.paid_at
    if paid_at is None:
        raise InternalError(f"payment time for order {order.order_number} is missing", code="PAYMENT_RECORD_MISSING")
    amount, penalty_applied = compute_user_refund(order.amount, paid_at, now)

    record = _execute_refund(
        db, provider, order, payment, amount,
        reason="user cancellation" + (" (late, penalty applied)" if penalty_applied else ""),
        operator_id=customer_id, action=AuditActions.USER_REFUND_ORDER, client_ip=client_ip, now=now,
        details={"penaltyApplied": penalty_applied},
    )
    return {
        "orderId": record.order_id,
        "status": OrderStatus.REFUNDED,
        "refundedAmount": amount,
        "penaltyApplied": penalty_applied,
        "refundTransactionId": record.refund_transaction_id,
    }


def refund_by_admin(db: Session, provider: PaymentProvider, order_id: str, amount: int, reason: str,
                    actor_id: str, client_ip: str | None = None, now: datetime | None = None) -> RefundRecord:
    now = now or datetime.now(timezone.utc)
    ensure_minor_units(amount)
    order = load_order(db, order_id, lock=False)
    require_status(order, *REFUNDABLE_STATES, action="refund")
    if amount <= 0 or amount > order.total_amount:
        raise ValidationError(f"refund amount must be between 1 and {order.total_amount}")
    payment = find_original_payment(db, order)

    return _execute_refund(
        db, provider, order, payment, amount, reason=reason or "admin refund",
        operator_id=actor_id, action=AuditActions.REFUND_ORDER, client_ip=client_ip, now=now, details={},
    )
