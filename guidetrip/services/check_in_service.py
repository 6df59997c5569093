import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from guidetrip.core.errors import ForbiddenError, ValidationError
from guidetrip.models.attachment import Attachment
from guidetrip.models.check_in import CheckInRecord
from guidetrip.models.order import OrderStatus
from guidetrip.services.order_state import load_order, require_status, transition

logger = logging.getLogger(__name__)

CHECK_IN_USAGE = "check_in"

# check-in type -> (required status, next status)
CHECK_IN_EDGES = {
    "start": (OrderStatus.WAITING_SERVICE, OrderStatus.IN_SERVICE),
    "end": (OrderStatus.IN_SERVICE, OrderStatus.SERVICE_ENDED),
}


def check_in(db: Session, order_id: str, guide_id: str, type: str, attachment_id: str,
             lat: float, lng: float, now: datetime | None = None) -> dict:
    """Record a start/end proof photo and move the order in the same transaction.

    Only the order's assigned guide may check in. The `end` check-in stamps
    actual_end_time, which the settlement job counts its grace period from.
    """
    if type not in CHECK_IN_EDGES:
        raise ValidationError(f"unknown check-in type {type!r}")
    required, target = CHECK_IN_EDGES[type]
    now = now or datetime.now(timezone.utc)

    try:
        order = load_order(db, order_id)
        if not order.guide_id or order.guide_id != guide_id:
            raise ForbiddenError("only the assigned guide can check in")
        require_status(order, required, action=f"check in ({type})")

        attachment = db.get(Attachment, attachment_id)
        if not attachment:
            raise ValidationError("check-in photo not found")
        if attachment.usage_type != CHECK_IN_USAGE:
            raise ValidationError("photo was not uploaded for check-in")

        previous = order.status
        db.add(CheckInRecord(
            id=str(uuid.uuid4()),
            order_id=order.id,
            type=type,
            attachment_id=attachment.id,
            latitude=lat,
            longitude=lng,
            checked_in_at=now,
        ))
        extra = {"actual_end_time": now} if type == "end" else {}
        transition(db, order, target, now=now, **extra)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("order %s check-in %s by guide %s: %s -> %s", order.order_number, type, guide_id, previous, target)
    return {"previousStatus": previous, "currentStatus": target, "checkInTime": now}
