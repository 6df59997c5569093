from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from guidetrip.db.session import Base
from guidetrip.db.types import UTCDateTime

class OvertimeRecord(Base):
    __tablename__ = "overtime_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    order_id: Mapped[str] = mapped_column(String(36), index=True)
    duration: Mapped[int] = mapped_column(Integer)  # extra hours
    fee: Mapped[int] = mapped_column(Integer)  # duration * order.price_per_hour
    status: Mapped[str] = mapped_column(String(12), index=True, default="pending")  # pending, paid
    paid_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=lambda: datetime.now(timezone.utc))
