import logging
from datetime import timedelta

import pytest

from guidetrip.models.order import Order, OrderStatus
from guidetrip.models.wallet_log import WalletLog
from guidetrip.services import settlement_service
from guidetrip.services.settlement_service import (
    SETTLE_GRACE,
    UNPAID_GRACE,
    cancel_expired_orders,
    settle_order,
    settle_orders,
)


def test_auto_cancel_boundary(db, customer, guide, make_order, now):
    expired = make_order(customer, guide, created_at=now - UNPAID_GRACE - timedelta(seconds=1))
    on_the_line = make_order(customer, guide, created_at=now - UNPAID_GRACE)
    paid = make_order(customer, guide, status=OrderStatus.PAID, created_at=now - timedelta(days=1))

    assert cancel_expired_orders(db, now=now) == 1

    for order in (expired, on_the_line, paid):
        db.refresh(order)
    assert expired.status == OrderStatus.CANCELLED
    assert on_the_line.status == OrderStatus.PENDING
    assert paid.status == OrderStatus.PAID


def test_auto_cancel_nothing_to_do(db, now):
    assert cancel_expired_orders(db, now=now) == 0


def test_settle_pays_guide_income(db, customer, guide, make_order, now):
    order = make_order(customer, guide, status=OrderStatus.SERVICE_ENDED, amount=10000,
                       actual_end_time=now - SETTLE_GRACE - timedelta(minutes=1), guide_income=9375)

    stats = settle_orders(db, now=now)

    assert stats == {"processed": 1, "settled": 1, "skipped": 0, "failed": 0}
    db.refresh(order)
    db.refresh(guide)
    assert order.status == OrderStatus.COMPLETED
    assert guide.balance == 9375
    log = db.query(WalletLog).one()
    assert (log.type, log.amount, log.related_id) == ("income", 9375, order.id)


def test_settle_respects_grace_period(db, customer, guide, make_order, now):
    order = make_order(customer, guide, status=OrderStatus.SERVICE_ENDED, actual_end_time=now - SETTLE_GRACE)
    assert settle_orders(db, now=now)["processed"] == 0
    db.refresh(order)
    assert order.status == OrderStatus.SERVICE_ENDED


def test_settle_ignores_other_states(db, customer, guide, make_order, now):
    make_order(customer, guide, status=OrderStatus.IN_SERVICE, actual_end_time=now - timedelta(days=3))
    assert settle_orders(db, now=now)["processed"] == 0


def test_legacy_order_falls_back_to_base_share(db, customer, guide, make_order, now, caplog):
    make_order(customer, guide, status=OrderStatus.SERVICE_ENDED, amount=10000,
               actual_end_time=now - timedelta(days=2), guide_income=None)

    with caplog.at_level(logging.WARNING, logger="guidetrip.services.settlement_service"):
        settle_orders(db, now=now)

    db.refresh(guide)
    assert guide.balance == 7500
    assert "no guide_income" in caplog.text


def test_failed_row_does_not_block_others(db, customer, guide, make_order, now):
    ended = now - timedelta(days=2)
    orphan = make_order(customer, None, status=OrderStatus.SERVICE_ENDED, actual_end_time=ended)
    good = make_order(customer, guide, status=OrderStatus.SERVICE_ENDED, actual_end_time=ended)

    stats = settle_orders(db, now=now)

    assert stats["settled"] == 1
    assert stats["failed"] == 1
    db.refresh(orphan)
    db.refresh(good)
    assert orphan.status == OrderStatus.SERVICE_ENDED
    assert good.status == OrderStatus.COMPLETED
    assert db.query(WalletLog).count() == 1


def test_failed_row_rolls_back_completely(db, customer, make_user, make_order, now):
    ghost = make_user("guide", hourly_price=5000)
    order = make_order(customer, ghost, status=OrderStatus.SERVICE_ENDED, actual_end_time=now - timedelta(days=2))
    db.delete(ghost)
    db.commit()

    stats = settle_orders(db, now=now)

    assert stats["failed"] == 1
    db.refresh(order)
    assert order.status == OrderStatus.SERVICE_ENDED
    assert db.query(WalletLog).count() == 0


def test_settle_stops_at_row_ceiling(db, customer, guide, make_order, now, caplog):
    for _ in range(3):
        make_order(customer, guide, status=OrderStatus.SERVICE_ENDED, amount=10000,
                   actual_end_time=now - timedelta(days=2))

    with caplog.at_level(logging.WARNING, logger="guidetrip.services.settlement_service"):
        stats = settle_orders(db, now=now, batch_size=1, max_rows=2)

    assert stats == {"processed": 2, "settled": 2, "skipped": 0, "failed": 0}
    db.refresh(guide)
    assert guide.balance == 15000
    assert "ceiling" in caplog.text

    # the remaining order is picked up by the next run
    assert settle_orders(db, now=now)["settled"] == 1


@pytest.mark.parametrize("batch_size", [1, 2, 100])
def test_batching_settles_everything_once(db, customer, guide, make_order, now, batch_size):
    for _ in range(5):
        make_order(customer, guide, status=OrderStatus.SERVICE_ENDED, amount=10000,
                   actual_end_time=now - timedelta(days=2))

    stats = settle_orders(db, now=now, batch_size=batch_size)

    assert stats["settled"] == 5
    db.refresh(guide)
    assert guide.balance == 5 * 7500


def test_no_ceiling_warning_when_run_drains_exactly(db, customer, guide, make_order, now, caplog):
    for _ in range(2):
        make_order(customer, guide, status=OrderStatus.SERVICE_ENDED, actual_end_time=now - timedelta(days=2))

    with caplog.at_level(logging.WARNING, logger="guidetrip.services.settlement_service"):
        stats = settle_orders(db, now=now, batch_size=100, max_rows=2)

    assert stats["settled"] == 2
    assert "ceiling" not in caplog.text


def test_order_moved_before_its_row_transaction_is_skipped(db, session_factory, customer, guide, make_order, now):
    order = make_order(customer, guide, status=OrderStatus.SERVICE_ENDED, actual_end_time=now - timedelta(days=2))
    # completed elsewhere after the batch fetch picked it up
    other = session_factory()
    other.query(Order).filter_by(id=order.id).update({"status": OrderStatus.COMPLETED})
    other.commit()
    other.close()

    assert settle_order(db, order.id, now) is None
    db.refresh(guide)
    assert guide.balance == 0
    assert db.query(WalletLog).count() == 0


def test_settle_order_twice_credits_once(db, customer, guide, make_order, now):
    order = make_order(customer, guide, status=OrderStatus.SERVICE_ENDED, amount=10000,
                       actual_end_time=now - timedelta(days=2))

    assert settle_order(db, order.id, now) == 7500
    assert settle_order(db, order.id, now) is None

    db.refresh(guide)
    assert guide.balance == 7500
    assert db.query(WalletLog).filter_by(related_id=order.id).count() == 1


def test_skipped_rows_are_counted(db, customer, guide, make_order, now, monkeypatch):
    order = make_order(customer, guide, status=OrderStatus.SERVICE_ENDED, actual_end_time=now - timedelta(days=2))
    real_settle = settlement_service.settle_order

    def _settle_after_cancel(session, order_id, at):
        # an admin action lands between the batch fetch and this row
        session.query(Order).filter_by(id=order_id).update({"status": OrderStatus.CANCELLED})
        session.commit()
        return real_settle(session, order_id, at)

    monkeypatch.setattr(settlement_service, "settle_order", _settle_after_cancel)
    stats = settle_orders(db, now=now)

    assert stats == {"processed": 1, "settled": 0, "skipped": 1, "failed": 0}
    db.refresh(order)
    assert order.status == OrderStatus.CANCELLED
