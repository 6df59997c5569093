import logging
import random
import string
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from guidetrip.core.errors import ForbiddenError, NotFoundError, PaymentProviderError, ValidationError
from guidetrip.models.custom_requirement import CustomRequirement
from guidetrip.models.order import Order, OrderKind, OrderStatus
from guidetrip.models.payment import Payment
from guidetrip.models.user import User
from guidetrip.schemas.order import CustomOrderIn, StandardOrderIn
from guidetrip.services.audit_service import AuditActions, log_audit
from guidetrip.services.ledger import ensure_minor_units, guide_share
from guidetrip.services.order_state import TRANSITIONS, load_order, require_status, transition
from guidetrip.services.payment_provider import PaymentProvider, void_charge

logger = logging.getLogger(__name__)

CUSTOM_ORDER_DEPOSIT = 15000  # minor units
STAFF_ROLES = ("admin", "cs")


def make_order_number(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"ORD{now.strftime('%Y%m%d%H%M%S')}{suffix}"


def _allocate_order_number(db: Session, now: datetime) -> str:
    for _ in range(10):
        ref = make_order_number(now)
        if not db.query(Order.id).filter(Order.order_number == ref).first():
            return ref
    raise ValidationError("could not allocate order number")


def create_order(db: Session, customer_id: str, payload: StandardOrderIn | CustomOrderIn,
                 now: datetime | None = None) -> Order:
    now = now or datetime.now(timezone.utc)
    order = Order(
        id=str(uuid.uuid4()),
        order_number=_allocate_order_number(db, now),
        customer_id=customer_id,
        status=OrderStatus.PENDING,
        remark=payload.remark or "",
        created_at=now,
        updated_at=now,
    )

    if isinstance(payload, StandardOrderIn):
        guide = db.get(User, payload.guideId)
        if not guide or guide.role != "guide" or not guide.is_active:
            raise ValidationError("guide not found")
        if guide.id == customer_id:
            raise ValidationError("cannot book your own service")
        if not guide.hourly_price:
            raise ValidationError("guide has no hourly price set")
        price = ensure_minor_units(guide.hourly_price, "hourly_price")
        amount = price * payload.duration
        start = payload.serviceStartTime
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        order.kind = OrderKind.STANDARD
        order.guide_id = guide.id
        order.price_per_hour = price
        order.duration = payload.duration
        order.total_duration = payload.duration
        order.service_start_time = start
        order.service_end_time = start + timedelta(hours=payload.duration)
    else:
        amount = CUSTOM_ORDER_DEPOSIT
        order.kind = OrderKind.CUSTOM
        order.price_per_hour = 0
        order.duration = 0
        order.total_duration = 0
        db.add(CustomRequirement(
            id=str(uuid.uuid4()),
            order_id=order.id,
            destination=payload.destination,
            start_date=payload.startDate,
            end_date=payload.endDate or payload.startDate,
            people_count=payload.peopleCount,
            budget=payload.budget,
            special_requirements=payload.content,
        ))

    order.amount = amount
    order.total_amount = amount
    order.guide_income = guide_share(amount)
    db.add(order)
    db.commit()
    db.refresh(order)
    logger.info("order %s created kind=%s amount=%d", order.order_number, order.kind, amount)
    return order


def get_order(db: Session, order_id: str, caller_id: str, role: str) -> Order:
    order = db.get(Order, order_id)
    if not order:
        raise NotFoundError("order not found")
    if role in STAFF_ROLES or caller_id in (order.customer_id, order.guide_id):
        return order
    raise ForbiddenError("not allowed to view this order")


def list_orders(db: Session, caller_id: str, role: str, status: str | None = None) -> list[Order]:
    """Newest first. Staff see every order, guides the ones assigned to them, customers their own."""
    q = db.query(Order)
    if role == "guide":
        q = q.filter(Order.guide_id == caller_id)
    elif role not in STAFF_ROLES:
        q = q.filter(Order.customer_id == caller_id)
    if status and status != "all":
        q = q.filter(Order.status == status)
    return q.order_by(Order.created_at.desc(), Order.id.desc()).all()


def custom_requirements_for(db: Session, orders: list[Order]) -> dict[str, CustomRequirement]:
    ids = [o.id for o in orders if o.kind == OrderKind.CUSTOM]
    if not ids:
        return {}
    rows = db.query(CustomRequirement).filter(CustomRequirement.order_id.in_(ids)).all()
    return {r.order_id: r for r in rows}


def pay_order(db: Session, provider: PaymentProvider, order_id: str, customer_id: str,
              now: datetime | None = None) -> Order:
    """pending -> paid. The gateway is charged before the commit transaction opens."""
    now = now or datetime.now(timezone.utc)
    order = load_order(db, order_id, lock=False)
    if order.customer_id != customer_id:
        raise ForbiddenError("not allowed to pay this order")
    require_status(order, OrderStatus.PENDING, action="pay")
    order_ref, amount = order.order_number, order.total_amount

    charge = provider.charge(order_ref, amount)
    if not charge.success:
        raise PaymentProviderError(f"payment declined: {charge.error or 'unknown error'}")

    try:
        order = load_order(db, order_id)
        transition(db, order, OrderStatus.PAID, now=now, paid_at=now)
        db.add(Payment(
            id=str(uuid.uuid4()),
            order_id=order.id,
            related_type="order",
            related_id=order.id,
            method="mock",
            transaction_id=charge.transaction_id,
            amount=amount,
            status="success",
            paid_at=now,
            created_at=now,
        ))
        db.commit()
    except Exception:
        db.rollback()
        void_charge(provider, order_ref, amount, charge.transaction_id, "order payment not recorded")
        raise
    db.refresh(order)
    logger.info("order %s paid amount=%d tx=%s", order_ref, amount, charge.transaction_id)
    return order


def accept_order(db: Session, order_id: str, guide_id: str, now: datetime | None = None) -> Order:
    """The booked guide confirms a paid order."""
    try:
        order = load_order(db, order_id)
        if order.guide_id != guide_id:
            raise ForbiddenError("only the assigned guide can accept this order")
        require_status(order, OrderStatus.PAID, action="accept")
        transition(db, order, OrderStatus.WAITING_SERVICE, now=now)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return order


def assign_guide(db: Session, order_id: str, guide_id: str, actor_id: str, client_ip: str | None,
                 now: datetime | None = None) -> Order:
    """Admin matches a guide to a paid order; the guide's current rate becomes the snapshot."""
    try:
        order = load_order(db, order_id)
        require_status(order, OrderStatus.PAID, action="assign a guide")
        guide = db.get(User, guide_id)
        if not guide or guide.role != "guide" or not guide.is_active:
            raise ValidationError("guide not found")
        if guide.id == order.customer_id:
            raise ValidationError("customer cannot be their own guide")
        previous_guide = order.guide_id
        values = {"guide_id": guide.id}
        if order.kind == OrderKind.CUSTOM:
            values["price_per_hour"] = guide.hourly_price or 0
        transition(db, order, OrderStatus.WAITING_SERVICE, now=now, **values)
        log_audit(db, actor_id, AuditActions.ASSIGN_GUIDE, "order", order.id,
                  {"orderNumber": order.order_number, "guideId": guide.id, "previousGuideId": previous_guide},
                  client_ip=client_ip)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return order


def cancel_order(db: Session, order_id: str, actor_id: str, role: str, client_ip: str | None,
                 now: datetime | None = None) -> Order:
    """Customers may drop their own unpaid order; admins may cancel anything with a cancel edge."""
    try:
        order = load_order(db, order_id)
        if role == "admin":
            if OrderStatus.CANCELLED not in TRANSITIONS[order.status]:
                raise ValidationError(f"order {order.order_number} is {order.status} and cannot be cancelled")
            if order.status != OrderStatus.PENDING:
                logger.warning("admin %s cancelling %s order %s; refunds are not automatic",
                               actor_id, order.status, order.order_number)
            previous = order.status
            transition(db, order, OrderStatus.CANCELLED, now=now)
            log_audit(db, actor_id, AuditActions.CANCEL_ORDER, "order", order.id,
                      {"orderNumber": order.order_number, "from": previous}, client_ip=client_ip)
        else:
            if order.customer_id != actor_id:
                raise ForbiddenError("not allowed to cancel this order")
            require_status(order, OrderStatus.PENDING, action="cancel")
            transition(db, order, OrderStatus.CANCELLED, now=now)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return order


def reopen_order(db: Session, order_id: str, actor_id: str, client_ip: str | None,
                 now: datetime | None = None) -> Order:
    """Administrative override: cancelled -> pending."""
    now = now or datetime.now(timezone.utc)
    try:
        order = load_order(db, order_id)
        require_status(order, OrderStatus.CANCELLED, action="reopen")
        # reopened_at restarts the unpaid window; created_at stays the real creation time
        transition(db, order, OrderStatus.PENDING, admin_override=True, now=now, reopened_at=now)
        log_audit(db, actor_id, AuditActions.REOPEN_ORDER, "order", order.id,
                  {"orderNumber": order.order_number}, client_ip=client_ip)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return order
