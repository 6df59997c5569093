"""Order state machine.

Every mutating operation loads the order inside the session transaction,
re-checks its status, then moves it with a guarded
``UPDATE ... WHERE id = :id AND status = :expected``. When two requests race
on the same edge exactly one guarded update matches; the other gets a
ValidationError and must re-fetch.
"""
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from guidetrip.core.errors import NotFoundError, ValidationError
from guidetrip.models.order import Order, OrderStatus

TRANSITIONS: dict[str, frozenset[str]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({
        OrderStatus.IN_SERVICE, OrderStatus.WAITING_SERVICE, OrderStatus.CANCELLED, OrderStatus.REFUNDED,
    }),
    OrderStatus.WAITING_SERVICE: frozenset({OrderStatus.IN_SERVICE, OrderStatus.CANCELLED, OrderStatus.REFUNDED}),
    OrderStatus.IN_SERVICE: frozenset({OrderStatus.SERVICE_ENDED, OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.SERVICE_ENDED: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Edges only an administrator may take explicitly.
ADMIN_OVERRIDES: dict[str, frozenset[str]] = {
    OrderStatus.CANCELLED: frozenset({OrderStatus.PENDING}),
}

TERMINAL_STATES = frozenset({OrderStatus.COMPLETED, OrderStatus.REFUNDED})


def can_transition(current: str, target: str, admin_override: bool = False) -> bool:
    if target in TRANSITIONS.get(current, frozenset()):
        return True
    return admin_override and target in ADMIN_OVERRIDES.get(current, frozenset())


def require_status(order: Order, *allowed: str, action: str = "continue") -> None:
    if order.status not in allowed:
        raise ValidationError(
            f"order {order.order_number} is {order.status}; must be {' or '.join(allowed)} to {action}",
            code="INVALID_ORDER_STATE",
        )


def load_order(db: Session, order_id: str, lock: bool = True) -> Order:
    """Fetch the order inside the current transaction, always re-reading the row."""
    stmt = select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    if lock:
        stmt = stmt.with_for_update()
    order = db.execute(stmt).scalar_one_or_none()
    if not order:
        raise NotFoundError("order not found")
    return order


def transition(db: Session, order: Order, target: str, *, admin_override: bool = False,
               now: datetime | None = None, **values) -> Order:
    """Move `order` to `target` plus any extra column `values`, guarded on its current status.

    Does not commit. The caller owns the transaction and its side effects.
    """
    expected = order.status
    if not can_transition(expected, target, admin_override=admin_override):
        raise ValidationError(
            f"order {order.order_number} cannot go from {expected} to {target}",
            code="INVALID_ORDER_STATE",
        )
    result = db.execute(
        update(Order)
        .where(Order.id == order.id, Order.status == expected)
        .values(status=target, updated_at=now or datetime.now(timezone.utc), **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ValidationError(
            f"order {order.order_number} is no longer {expected}; re-fetch and retry",
            code="STALE_ORDER_STATE",
        )
    db.refresh(order)
    return order
