"""Shared fixtures: in-memory SQLite, model factories and an API client.

Settings are read at import time, so the environment is prepared before any
guidetrip module is imported.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from guidetrip.core.security import create_access_token
from guidetrip.db.session import Base, get_db
from guidetrip.models.attachment import Attachment
from guidetrip.models.order import Order, OrderKind, OrderStatus
from guidetrip.models.payment import Payment
from guidetrip.models.user import User
from guidetrip.services.ledger import guide_share
from guidetrip.services.order_service import make_order_number
from guidetrip.services.payment_provider import MockPaymentProvider, get_payment_provider

# registers every table on Base.metadata
import guidetrip.models.audit_log  # noqa: F401
import guidetrip.models.check_in  # noqa: F401
import guidetrip.models.custom_requirement  # noqa: F401
import guidetrip.models.overtime  # noqa: F401
import guidetrip.models.refund  # noqa: F401
import guidetrip.models.wallet_log  # noqa: F401

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def provider():
    return MockPaymentProvider()


@pytest.fixture
def make_user(db):
    def _make(role="customer", hourly_price=None, nickname="", is_active=True, balance=0):
        user = User(
            id=str(uuid.uuid4()),
            nickname=nickname or role,
            role=role,
            hourly_price=hourly_price,
            balance=balance,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def customer(make_user):
    return make_user("customer", nickname="alice")


@pytest.fixture
def guide(make_user):
    return make_user("guide", hourly_price=5000, nickname="bob")


@pytest.fixture
def admin(make_user):
    return make_user("admin", nickname="root")


@pytest.fixture
def make_order(db):
    def _make(customer, guide=None, status=OrderStatus.PENDING, amount=10000, price_per_hour=5000,
              duration=2, kind=OrderKind.STANDARD, created_at=NOW, paid_at=None,
              actual_end_time=None, service_end_time=None, guide_income="share"):
        start = created_at + timedelta(days=1)
        order = Order(
            id=str(uuid.uuid4()),
            order_number=make_order_number(created_at),
            customer_id=customer.id,
            guide_id=guide.id if guide else None,
            kind=kind,
            status=status,
            amount=amount,
            total_amount=amount,
            guide_income=guide_share(amount) if guide_income == "share" else guide_income,
            price_per_hour=price_per_hour,
            duration=duration,
            total_duration=duration,
            service_start_time=start,
            service_end_time=service_end_time or start + timedelta(hours=duration),
            actual_end_time=actual_end_time,
            paid_at=paid_at,
            created_at=created_at,
            updated_at=created_at,
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        return order
    return _make


@pytest.fixture
def make_payment(db):
    def _make(order, paid_at=NOW, amount=None, related_type="order", related_id=None):
        payment = Payment(
            id=str(uuid.uuid4()),
            order_id=order.id,
            related_type=related_type,
            related_id=related_id or order.id,
            method="mock",
            transaction_id=f"TXN{uuid.uuid4().hex[:10].upper()}",
            amount=order.total_amount if amount is None else amount,
            status="success",
            paid_at=paid_at,
            created_at=paid_at,
        )
        db.add(payment)
        db.commit()
        return payment
    return _make


@pytest.fixture
def make_attachment(db):
    def _make(usage_type="check_in", uploader_id=""):
        attachment = Attachment(
            id=str(uuid.uuid4()),
            usage_type=usage_type,
            uploader_id=uploader_id,
            object_key=f"uploads/{uuid.uuid4().hex}.jpg",
        )
        db.add(attachment)
        db.commit()
        return attachment
    return _make


@pytest.fixture
def client(db, provider):
    from guidetrip.main import app

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_payment_provider] = lambda: provider
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}
    return _headers
