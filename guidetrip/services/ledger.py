"""Money primitives.

All amounts are integers in currency minor units (cents / fen). Nothing in
the engine multiplies money by a float.
"""
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.orm import Session

from guidetrip.core.errors import NotFoundError, ValidationError
from guidetrip.models.user import User

# Platform commission in basis points (25%); the guide keeps the complement.
COMMISSION_RATE_BPS = 2500
BPS_DENOMINATOR = 10000


def guide_share(amount: int) -> int:
    """floor(amount * (1 - commission)) using integer math only."""
    ensure_minor_units(amount, "amount")
    return amount * (BPS_DENOMINATOR - COMMISSION_RATE_BPS) // BPS_DENOMINATOR


def ensure_minor_units(value, field: str = "amount") -> int:
    # bool is an int subclass; True is not a price
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer number of minor units")
    if value < 0:
        raise ValidationError(f"{field} must not be negative")
    return value


def credit_balance(db: Session, user_id: str, amount: int) -> None:
    """Atomically add `amount` to a user's balance inside the caller's transaction."""
    ensure_minor_units(amount)
    result = db.execute(
        update(User)
        .where(User.id == user_id)
        .values(balance=User.balance + amount, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise NotFoundError(f"user {user_id} not found")
