"""Payment provider port.

The engine talks to the gateway only through `PaymentProvider`. The mock
gateway satisfies it in every environment; a real gateway would plug in via
`get_payment_provider`.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass
class ChargeResult:
    success: bool
    transaction_id: str = ""
    error: str | None = None


@dataclass
class RefundResult:
    success: bool
    refund_transaction_id: str = ""
    error: str | None = None


class PaymentProvider(Protocol):
    def charge(self, order_ref: str, amount: int) -> ChargeResult: ...

    def refund(self, order_ref: str, amount: int, original_transaction_id: str,
               out_refund_no: str, reason: str) -> RefundResult: ...


def _stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")


class MockPaymentProvider:
    """Always succeeds; transaction ids are random."""

    def charge(self, order_ref: str, amount: int) -> ChargeResult:
        logger.info("mock charge order=%s amount=%d", order_ref, amount)
        return ChargeResult(success=True, transaction_id=f"TXN{_stamp()}{uuid.uuid4().hex[:6].upper()}")

    def refund(self, order_ref: str, amount: int, original_transaction_id: str,
               out_refund_no: str, reason: str) -> RefundResult:
        logger.info(
            "mock refund order=%s amount=%d original_tx=%s out_refund_no=%s reason=%s",
            order_ref, amount, original_transaction_id, out_refund_no, reason,
        )
        return RefundResult(success=True, refund_transaction_id=f"REF{_stamp()}{uuid.uuid4().hex[:6].upper()}")


_provider = MockPaymentProvider()


def get_payment_provider() -> PaymentProvider:
    return _provider


def void_charge(provider: PaymentProvider, order_ref: str, amount: int, transaction_id: str, reason: str) -> None:
    """Give back a charge whose local commit did not happen.

    Called from an except block, so it never raises; the caller re-raises its own error.
    """
    try:
        result = provider.refund(order_ref, amount, transaction_id, f"VOID{transaction_id}", reason)
    except Exception:
        logger.exception("could not void charge %s on order %s; needs manual reconciliation", transaction_id, order_ref)
        return
    if not result.success:
        logger.error(
            "could not void charge %s on order %s (%s); needs manual reconciliation",
            transaction_id, order_ref, result.error,
        )
