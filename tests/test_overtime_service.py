from datetime import timedelta
from unittest.mock import Mock

import pytest

from guidetrip.core.errors import ForbiddenError, NotFoundError, PaymentProviderError, ValidationError
from guidetrip.models.order import OrderStatus
from guidetrip.models.overtime import OvertimeRecord
from guidetrip.models.payment import Payment
from guidetrip.services.overtime_service import create_overtime, pay_overtime
from guidetrip.services.payment_provider import ChargeResult, MockPaymentProvider, RefundResult


@pytest.fixture
def in_service(customer, guide, make_order):
    return make_order(customer, guide, status=OrderStatus.IN_SERVICE, amount=10000, price_per_hour=1250,
                      duration=8)


def test_create_overtime_leaves_totals(db, customer, in_service, now):
    record = create_overtime(db, in_service.id, customer.id, 2, now=now)

    assert record.status == "pending"
    assert record.fee == 2500
    db.refresh(in_service)
    assert in_service.total_amount == 10000
    assert in_service.total_duration == 8


@pytest.mark.parametrize("hours", [0, -1, 1.5, True])
def test_create_overtime_rejects_bad_duration(db, customer, in_service, hours):
    with pytest.raises(ValidationError):
        create_overtime(db, in_service.id, customer.id, hours)


def test_create_overtime_requires_in_service(db, customer, guide, make_order):
    order = make_order(customer, guide, status=OrderStatus.WAITING_SERVICE)
    with pytest.raises(ValidationError):
        create_overtime(db, order.id, customer.id, 1)


def test_create_overtime_only_by_customer(db, guide, in_service):
    with pytest.raises(ForbiddenError):
        create_overtime(db, in_service.id, guide.id, 1)


def test_pay_overtime_updates_totals(db, provider, customer, in_service, now):
    record = create_overtime(db, in_service.id, customer.id, 2, now=now)
    scheduled_end = in_service.service_end_time

    result = pay_overtime(db, provider, record.id, customer.id, now=now)

    assert result["fee"] == 2500
    assert result["totalAmount"] == 12500
    assert result["totalDuration"] == 10
    assert result["guideIncome"] == 7500 + 1875
    assert result["serviceEndTime"] == scheduled_end + timedelta(hours=2)
    payment = db.query(Payment).filter_by(related_type="overtime").one()
    assert payment.related_id == record.id
    assert payment.amount == 2500
    db.refresh(record)
    assert record.status == "paid"
    assert record.paid_at == now


def test_pay_overtime_extends_from_now_when_running_late(db, provider, customer, guide, make_order, now):
    order = make_order(customer, guide, status=OrderStatus.SERVICE_ENDED, price_per_hour=1250,
                       service_end_time=now - timedelta(hours=1))
    record = OvertimeRecord(id="ot-late", order_id=order.id, duration=1, fee=1250, status="pending", created_at=now)
    db.add(record)
    db.commit()

    result = pay_overtime(db, provider, "ot-late", customer.id, now=now)
    assert result["serviceEndTime"] == now + timedelta(hours=1)


def test_multiple_extensions_add_up(db, provider, customer, in_service, now):
    first = create_overtime(db, in_service.id, customer.id, 1, now=now)
    second = create_overtime(db, in_service.id, customer.id, 3, now=now)
    pay_overtime(db, provider, second.id, customer.id, now=now)
    pay_overtime(db, provider, first.id, customer.id, now=now)

    db.refresh(in_service)
    assert in_service.total_amount == 10000 + 5000
    assert in_service.total_duration == 12
    assert in_service.guide_income == 7500 + 2812 + 937


def test_pay_overtime_twice_does_not_double_credit(db, customer, in_service, now):
    provider = Mock(wraps=MockPaymentProvider())
    record = create_overtime(db, in_service.id, customer.id, 2, now=now)
    pay_overtime(db, provider, record.id, customer.id, now=now)

    with pytest.raises(ValidationError) as exc:
        pay_overtime(db, provider, record.id, customer.id, now=now)
    assert exc.value.code == "OVERTIME_ALREADY_PAID"
    assert provider.charge.call_count == 1
    db.refresh(in_service)
    assert in_service.total_amount == 12500
    assert db.query(Payment).filter_by(related_type="overtime").count() == 1


def test_concurrent_payment_loses_guard_and_voids_charge(db, customer, in_service, now):
    record = create_overtime(db, in_service.id, customer.id, 2, now=now)

    def _charge(order_ref, amount):
        # a parallel request marks the record paid first
        db.query(OvertimeRecord).filter_by(id=record.id).update({"status": "paid"})
        db.commit()
        return ChargeResult(success=True, transaction_id="TXN-RACE")

    provider = Mock()
    provider.charge.side_effect = _charge
    provider.refund.return_value = RefundResult(success=True, refund_transaction_id="REF-RACE")

    with pytest.raises(ValidationError):
        pay_overtime(db, provider, record.id, customer.id, now=now)
    provider.refund.assert_called_once()
    db.refresh(in_service)
    assert in_service.total_amount == 10000


def test_pay_overtime_declined(db, customer, in_service):
    record = create_overtime(db, in_service.id, customer.id, 1)
    provider = Mock()
    provider.charge.return_value = ChargeResult(success=False, error="insufficient funds")

    with pytest.raises(PaymentProviderError):
        pay_overtime(db, provider, record.id, customer.id)
    db.refresh(record)
    assert record.status == "pending"


def test_pay_overtime_after_settlement_rejected(db, provider, customer, in_service, now):
    record = create_overtime(db, in_service.id, customer.id, 1, now=now)
    in_service.status = OrderStatus.COMPLETED
    db.commit()
    with pytest.raises(ValidationError):
        pay_overtime(db, provider, record.id, customer.id, now=now)


def test_pay_overtime_checks_caller_and_record(db, provider, customer, guide, in_service):
    record = create_overtime(db, in_service.id, customer.id, 1)
    with pytest.raises(ForbiddenError):
        pay_overtime(db, provider, record.id, guide.id)
    with pytest.raises(NotFoundError):
        pay_overtime(db, provider, "missing", customer.id)
