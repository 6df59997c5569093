"""Mid-service extensions.

A pending overtime request is not revenue. Only `pay_overtime` touches the
order totals, and it does so with SQL increments so any number of
extensions add up in any order.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from guidetrip.core.errors import ForbiddenError, NotFoundError, PaymentProviderError, ValidationError
from guidetrip.models.order import Order, OrderStatus
from guidetrip.models.overtime import OvertimeRecord
from guidetrip.models.payment import Payment
from guidetrip.services.ledger import ensure_minor_units, guide_share
from guidetrip.services.order_state import load_order, require_status
from guidetrip.services.payment_provider import PaymentProvider, void_charge

logger = logging.getLogger(__name__)

# A paid extension may land after the end check-in, but never after settlement.
PAYABLE_STATES = (OrderStatus.IN_SERVICE, OrderStatus.SERVICE_ENDED)


def create_overtime(db: Session, order_id: str, customer_id: str, extra_hours: int,
                    now: datetime | None = None) -> OvertimeRecord:
    if isinstance(extra_hours, bool) or not isinstance(extra_hours, int) or extra_hours <= 0:
        raise ValidationError("overtime duration must be a positive number of hours")
    now = now or datetime.now(timezone.utc)

    order = load_order(db, order_id, lock=False)
    if order.customer_id != customer_id:
        raise ForbiddenError("only the customer can request overtime")
    require_status(order, OrderStatus.IN_SERVICE, action="request overtime")
    price = ensure_minor_units(order.price_per_hour, "price_per_hour")
    if price == 0:
        raise ValidationError("order has no hourly rate to charge overtime at")

    record = OvertimeRecord(
        id=str(uuid.uuid4()),
        order_id=order.id,
        duration=extra_hours,
        fee=extra_hours * price,
        status="pending",
        created_at=now,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("overtime %s requested on order %s: %dh fee=%d", record.id, order.order_number, extra_hours, record.fee)
    return record


def pay_overtime(db: Session, provider: PaymentProvider, overtime_id: str, customer_id: str,
                 now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)

    record = db.get(OvertimeRecord, overtime_id)
    if not record:
        raise NotFoundError("overtime record not found")
    order = load_order(db, record.order_id, lock=False)
    if order.customer_id != customer_id:
        raise ForbiddenError("only the customer can pay for overtime")
    if record.status != "pending":
        raise ValidationError("overtime already paid", code="OVERTIME_ALREADY_PAID")
    require_status(order, *PAYABLE_STATES, action="pay overtime")
    order_ref, fee, hours = order.order_number, record.fee, record.duration

    charge = provider.charge(order_ref, fee)
    if not charge.success:
        raise PaymentProviderError(f"payment declined: {charge.error or 'unknown error'}")

    try:
        order = load_order(db, record.order_id)
        require_status(order, *PAYABLE_STATES, action="pay overtime")

        # 1. the pending guard makes a retried or concurrent second call a no-op error
        claimed = db.execute(
            update(OvertimeRecord)
            .where(OvertimeRecord.id == overtime_id, OvertimeRecord.status == "pending")
            .values(status="paid", paid_at=now)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            raise ValidationError("overtime already paid", code="OVERTIME_ALREADY_PAID")

        # 2-4. additive totals; extend from whichever is later of scheduled end and now
        base_end = order.service_end_time if order.service_end_time and order.service_end_time > now else now
        new_end = base_end + timedelta(hours=hours)
        updated = db.execute(
            update(Order)
            .where(Order.id == order.id, Order.status == order.status)
            .values(
                total_amount=Order.total_amount + fee,
                guide_income=func.coalesce(Order.guide_income, guide_share(order.amount)) + guide_share(fee),
                total_duration=Order.total_duration + hours,
                service_end_time=new_end,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if updated.rowcount != 1:
            raise ValidationError(
                f"order {order_ref} is no longer {order.status}; re-fetch and retry",
                code="STALE_ORDER_STATE",
            )

        # 5. payment ledger entry
        db.add(Payment(
            id=str(uuid.uuid4()),
            order_id=order.id,
            related_type="overtime",
            related_id=overtime_id,
            method="mock",
            transaction_id=charge.transaction_id,
            amount=fee,
            status="success",
            paid_at=now,
            created_at=now,
        ))
        db.commit()
    except Exception:
        db.rollback()
        void_charge(provider, order_ref, fee, charge.transaction_id, "overtime payment not recorded")
        raise

    db.refresh(order)
    db.refresh(record)
    logger.info("overtime %s paid on order %s fee=%d total=%d", overtime_id, order_ref, fee, order.total_amount)
    return {
        "overtimeId": record.id,
        "fee": fee,
        "status": record.status,
        "totalAmount": order.total_amount,
        "totalDuration": order.total_duration,
        "guideIncome": order.guide_income,
        "serviceEndTime": order.service_end_time,
    }
