"""
Shared fixtures for booking core tests.

Every test gets a fresh in-memory SQLite database seeded with one business
open Monday 09:00-17:00 and one 60-minute service.
"""
import os

# Must be set before anything imports booking_core.config.database
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime, timedelta, timezone
from decimal import Decimal
import uuid

import pytest

from booking_core.config.database import build_engine, build_session_factory, create_tables
from booking_core.config.settings import get_settings
from booking_core.models import Business, Service, WeeklyAvailability
from booking_core.services.container import build_services
from booking_core.services.notification.channels import ChannelAdapter, ChannelRouter

# 2030-01-07 is a Monday
MONDAY = "2030-01-07"
TUESDAY = "2030-01-08"


class FrozenClock:
    """Callable clock the services read instead of the wall clock"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime):
        self.now = now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class RecordingChannel(ChannelAdapter):
    """Channel double that records messages instead of sending them"""

    def __init__(self, name: str, result: bool = True, error: Exception = None, needs_phone: bool = False):
        self.name = name
        self.result = result
        self.error = error
        self.needs_phone = needs_phone
        self.sent = []

    def can_deliver(self, message) -> bool:
        return bool(message.recipient_phone) if self.needs_phone else bool(message.recipient_email)

    def send(self, message) -> bool:
        if self.error is not None:
            raise self.error
        self.sent.append(message)
        return self.result


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def seed_business(session, timezone_name: str = "UTC"):
    """One business open Monday 09:00-17:00 with a 60-minute service"""
    business = Business(
        id=uuid.uuid4(),
        name="Studio Nine",
        email="owner@studionine.test",
        phone_number="+15550001111",
        timezone=timezone_name,
        is_active=True,
    )
    service = Service(
        id=uuid.uuid4(),
        business_id=business.id,
        name="Haircut",
        price=Decimal("50.00"),
        duration_minutes=60,
        buffer_minutes=0,
        is_active=True,
    )
    monday = WeeklyAvailability(
        business_id=business.id,
        day_of_week=1,
        start_time="09:00",
        end_time="17:00",
        is_available=True,
    )
    session.add_all([business, service, monday])
    session.commit()
    return business, service


@pytest.fixture
def seeded(db):
    """(business, service) committed to the test database"""
    return seed_business(db)


# ============================================================================
# SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def clock():
    return FrozenClock(datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def email_channel():
    return RecordingChannel("email")


@pytest.fixture
def whatsapp_channel():
    return RecordingChannel("whatsapp", needs_phone=True)


@pytest.fixture
def router(email_channel, whatsapp_channel):
    return ChannelRouter(email=email_channel, whatsapp=whatsapp_channel)


@pytest.fixture
def services(session_factory, router, clock):
    services = build_services(
        session_factory=session_factory,
        router=router,
        clock=clock,
        settings=get_settings(),
    )
    yield services
    services.processor.shutdown()


@pytest.fixture
def booking_request(seeded):
    business, service = seeded

    def make(start_time="09:00", date=MONDAY, **overrides):
        data = {
            "business_id": str(business.id),
            "service_id": str(service.id),
            "customer_name": "Ada Lovelace",
            "customer_email": "ada@example.com",
            "customer_phone": "+15557654321",
            "appointment_date": date,
            "start_time": start_time,
        }
        data.update(overrides)
        return data

    return make
