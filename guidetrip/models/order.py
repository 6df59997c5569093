from sqlalchemy import String, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from guidetrip.db.session import Base
from guidetrip.db.types import UTCDateTime


class OrderStatus:
    PENDING = "pending"                  # awaiting payment
    PAID = "paid"                        # paid, waiting for a guide to confirm
    WAITING_SERVICE = "waiting_service"  # guide confirmed
    IN_SERVICE = "in_service"
    SERVICE_ENDED = "service_ended"      # waiting for settlement
    COMPLETED = "completed"              # settled
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class OrderKind:
    STANDARD = "standard"
    CUSTOM = "custom"


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    order_number: Mapped[str] = mapped_column(String(40), unique=True, index=True)

    customer_id: Mapped[str] = mapped_column(String(36), index=True)
    guide_id: Mapped[str] = mapped_column(String(36), index=True, nullable=True)

    kind: Mapped[str] = mapped_column(String(12), default=OrderKind.STANDARD)
    status: Mapped[str] = mapped_column(String(30), index=True, default=OrderStatus.PENDING)

    # Money, minor units
    amount: Mapped[int] = mapped_column(Integer, default=0)
    total_amount: Mapped[int] = mapped_column(Integer, default=0)  # amount + paid overtime fees
    guide_income: Mapped[int] = mapped_column(Integer, nullable=True)  # NULL on legacy rows
    price_per_hour: Mapped[int] = mapped_column(Integer, default=0)  # snapshot at booking
    refund_amount: Mapped[int] = mapped_column(Integer, nullable=True)

    # Hours
    duration: Mapped[int] = mapped_column(Integer, default=0)
    total_duration: Mapped[int] = mapped_column(Integer, default=0)

    service_start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=True)
    service_end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=True)
    # Set once by the end check-in; settlement grace period counts from here.
    actual_end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=True, index=True)
    paid_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=True)
    # Set by an admin reopen; the unpaid window counts from here instead of created_at.
    reopened_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=True)

    remark: Mapped[str] = mapped_column(Text, default="")

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, index=True, default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=lambda: datetime.now(timezone.utc))
