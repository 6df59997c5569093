import pytest
from sqlalchemy import update

from guidetrip.core.errors import NotFoundError, ValidationError
from guidetrip.models.order import Order, OrderStatus
from guidetrip.services.order_state import (
    TERMINAL_STATES,
    TRANSITIONS,
    can_transition,
    load_order,
    require_status,
    transition,
)


def test_every_status_has_an_entry():
    statuses = {v for k, v in vars(OrderStatus).items() if not k.startswith("_")}
    assert set(TRANSITIONS) == statuses


@pytest.mark.parametrize("current,target", [
    (OrderStatus.PENDING, OrderStatus.PAID),
    (OrderStatus.PAID, OrderStatus.WAITING_SERVICE),
    (OrderStatus.PAID, OrderStatus.IN_SERVICE),
    (OrderStatus.WAITING_SERVICE, OrderStatus.REFUNDED),
    (OrderStatus.IN_SERVICE, OrderStatus.SERVICE_ENDED),
    (OrderStatus.SERVICE_ENDED, OrderStatus.COMPLETED),
])
def test_legal_edges(current, target):
    assert can_transition(current, target)


@pytest.mark.parametrize("current,target", [
    (OrderStatus.PENDING, OrderStatus.IN_SERVICE),
    (OrderStatus.IN_SERVICE, OrderStatus.REFUNDED),
    (OrderStatus.COMPLETED, OrderStatus.CANCELLED),
    (OrderStatus.REFUNDED, OrderStatus.PAID),
    (OrderStatus.CANCELLED, OrderStatus.PENDING),
])
def test_illegal_edges(current, target):
    assert not can_transition(current, target)


def test_terminal_states_have_no_exits():
    for state in TERMINAL_STATES:
        assert not TRANSITIONS[state]


def test_reopen_needs_admin_override():
    assert can_transition(OrderStatus.CANCELLED, OrderStatus.PENDING, admin_override=True)
    assert not can_transition(OrderStatus.COMPLETED, OrderStatus.PENDING, admin_override=True)


def test_require_status_names_current_state(db, customer, make_order):
    order = make_order(customer, status=OrderStatus.PAID)
    with pytest.raises(ValidationError) as exc:
        require_status(order, OrderStatus.IN_SERVICE, action="check in")
    assert exc.value.code == "INVALID_ORDER_STATE"
    assert "paid" in exc.value.message


def test_load_order_missing(db):
    with pytest.raises(NotFoundError):
        load_order(db, "missing")


def test_transition_applies_extra_values(db, customer, make_order, now):
    order = make_order(customer)
    transition(db, order, OrderStatus.PAID, now=now, paid_at=now)
    db.commit()
    assert order.status == OrderStatus.PAID
    assert order.paid_at == now


def test_transition_rejects_illegal_edge(db, customer, make_order):
    order = make_order(customer)
    with pytest.raises(ValidationError) as exc:
        transition(db, order, OrderStatus.COMPLETED)
    assert exc.value.code == "INVALID_ORDER_STATE"


def test_transition_loses_guard_when_row_moved(db, session_factory, customer, make_order):
    order = make_order(customer)
    # another writer cancels it while this session still holds the pending copy
    other = session_factory()
    other.execute(update(Order).where(Order.id == order.id).values(status=OrderStatus.CANCELLED))
    other.commit()
    other.close()

    with pytest.raises(ValidationError) as exc:
        transition(db, order, OrderStatus.PAID)
    assert exc.value.code == "STALE_ORDER_STATE"
