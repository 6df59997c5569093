from sqlalchemy import String, Float
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from guidetrip.db.session import Base
from guidetrip.db.types import UTCDateTime

class CheckInRecord(Base):
    __tablename__ = "check_in_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    order_id: Mapped[str] = mapped_column(String(36), index=True)
    type: Mapped[str] = mapped_column(String(8))  # start, end
    attachment_id: Mapped[str] = mapped_column(String(36))
    latitude: Mapped[float] = mapped_column(Float)
    longitude: Mapped[float] = mapped_column(Float)
    checked_in_at: Mapped[datetime] = mapped_column(UTCDateTime, default=lambda: datetime.now(timezone.utc))
