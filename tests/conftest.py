import os
from datetime import datetime, timezone
from decimal import Decimal
from io import BytesIO
from types import SimpleNamespace

import pytest

# Set test environment before importing app modules
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTH_JWT_SECRET", "test-secret")
os.environ.setdefault("BOOKING_TIMEZONE", "UTC")

from fastapi import Depends
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import update
from sqlalchemy.orm import Session, sessionmaker

from src.api.deps import (
    create_access_token,
    get_booking_service,
    get_db,
    get_file_storage,
)
from src.application.booking_service import BookingService, CustomerContact
from src.domain.actors import ActorRole, Principal
from src.domain.state_machine import BookingStatus
from src.infrastructure.db.models import Base, Booking, Customer, Service, ServiceProvider
from src.infrastructure.db.session import build_engine
from src.infrastructure.storage.file_storage import LocalFileStorage
from src.main import app


class FixedClock:
    """Test clock; move it by assigning ``now``."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def at(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'bookings.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(at("2025-02-28T09:00:00"))


@pytest.fixture
def seed(db):
    provider = ServiceProvider(name="Sparkle Cleaning", email="provider@example.com")
    other_provider = ServiceProvider(name="Other Provider", email="other@example.com")
    customer = Customer(name="Casey Customer", email="casey@example.com")
    other_customer = Customer(name="Sam Stranger", email="sam@example.com")
    db.add_all([provider, other_provider, customer, other_customer])
    db.flush()

    deep_clean = Service(name="Deep Clean", category="CLEANING", price=Decimal("80.00"), provider_id=provider.id)
    windows = Service(name="Window Washing", category="CLEANING", price=Decimal("45.50"), provider_id=provider.id)
    db.add_all([deep_clean, windows])
    db.commit()

    return SimpleNamespace(
        provider=provider,
        other_provider=other_provider,
        customer=customer,
        other_customer=other_customer,
        service=deep_clean,
        cheap_service=windows,
        customer_principal=Principal(customer.id, customer.email, ActorRole.CUSTOMER),
        provider_principal=Principal(provider.id, provider.email, ActorRole.PROVIDER),
        other_customer_principal=Principal(other_customer.id, other_customer.email, ActorRole.CUSTOMER),
        other_provider_principal=Principal(other_provider.id, other_provider.email, ActorRole.PROVIDER),
    )


@pytest.fixture
def booking_service(db, clock):
    return BookingService(db, clock=clock, tz="UTC")


@pytest.fixture
def contact():
    return CustomerContact(
        name="Casey Customer",
        email="casey@example.com",
        phone="555-0100",
        address="1 Main Street",
    )


@pytest.fixture
def set_status(session_factory):
    def _set(booking_id: int, status: BookingStatus) -> None:
        session = session_factory()
        try:
            session.execute(
                update(Booking).where(Booking.id == booking_id).values(status=status)
            )
            session.commit()
        finally:
            session.close()

    return _set


@pytest.fixture
def make_booking(booking_service, set_status, seed, contact):
    def _make(status: BookingStatus = BookingStatus.PENDING, service=None) -> int:
        booking = booking_service.create_booking(
            customer_id=seed.customer.id,
            service_id=(service or seed.service).id,
            scheduled_date="2025-03-01",
            scheduled_time="14:00",
            contact=contact,
        )
        if status is not BookingStatus.PENDING:
            set_status(booking.id, status)
        return booking.id

    return _make


@pytest.fixture
def png_bytes():
    buffer = BytesIO()
    Image.new("RGB", (8, 8), (200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def file_storage(tmp_path):
    return LocalFileStorage(tmp_path / "uploads")


@pytest.fixture
def client(session_factory, clock, file_storage):
    def override_get_db():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def override_get_booking_service(db: Session = Depends(get_db)):
        return BookingService(db, clock=clock, tz="UTC")

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_booking_service] = override_get_booking_service
    app.dependency_overrides[get_file_storage] = lambda: file_storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(principal: Principal) -> dict[str, str]:
        token = create_access_token(principal.id, principal.email, principal.role)
        return {"Authorization": f"Bearer {token}"}

    return _headers
