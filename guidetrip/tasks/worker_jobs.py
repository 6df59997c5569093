import logging

from sqlalchemy.orm import Session
from sqlalchemy.exc import OperationalError, ProgrammingError
from guidetrip.db.session import SessionLocal
from guidetrip.services.settlement_service import cancel_expired_orders, settle_orders

logger = logging.getLogger(__name__)


def auto_cancel_orders() -> dict:
    """Cancel unpaid orders past the payment window. Runs every 5 minutes via Celery beat."""
    db: Session = SessionLocal()
    try:
        try:
            cancelled = cancel_expired_orders(db)
        except (ProgrammingError, OperationalError):
            # DB not migrated yet; don't crash the worker.
            db.rollback()
            logger.warning("auto-cancel skipped: orders table missing")
            return {"skipped": True, "reason": "missing_tables"}
        return {"cancelled": cancelled}
    finally:
        db.close()


def auto_settle_orders(batch_size: int = 100, max_rows: int = 10000) -> dict:
    """Settle ended orders past the 24h grace period. Runs hourly via Celery beat."""
    db: Session = SessionLocal()
    try:
        try:
            return settle_orders(db, batch_size=batch_size, max_rows=max_rows)
        except (ProgrammingError, OperationalError):
            db.rollback()
            logger.warning("auto-settle skipped: orders table missing")
            return {"skipped": True, "reason": "missing_tables"}
    finally:
        db.close()
