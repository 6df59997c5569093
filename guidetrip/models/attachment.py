from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from guidetrip.db.session import Base
from guidetrip.db.types import UTCDateTime

class Attachment(Base):
    """Owned by the upload service; the order engine only reads usage_type."""
    __tablename__ = "attachments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    usage_type: Mapped[str] = mapped_column(String(30), index=True)  # check_in, avatar, guide_photo, system
    uploader_id: Mapped[str] = mapped_column(String(36), index=True, default="")
    object_key: Mapped[str] = mapped_column(String(512), default="")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=lambda: datetime.now(timezone.utc))
