"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from slotengine.booking import ProviderLocks, SchedulingService
from slotengine.config import Settings
from slotengine.lifecycle import CancellationService
from slotengine.repository import ScheduleRepository
from slotengine.schema import Appointment, AppointmentStatus, AvailabilityRule, Provider
from slotengine.storage import MemoryStore

UTC = timezone.utc

# Wednesday morning; the next Monday is 2025-02-10.
NOW = datetime(2025, 2, 5, 8, 0, tzinfo=UTC)
NEXT_MONDAY = datetime(2025, 2, 10, tzinfo=UTC)


class FakeClock:
    """Settable "now" for services."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def at(day: datetime, hhmm: str) -> datetime:
    """day's date at HH:MM UTC."""
    hour, minute = (int(p) for p in hhmm.split(":"))
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


def make_appointment(provider_id: str, start: datetime, minutes: int = 30, **kwargs) -> Appointment:
    return Appointment(
        provider_id=provider_id,
        owner_name=kwargs.pop("owner_name", "John Smith"),
        subject_name=kwargs.pop("subject_name", "Buddy"),
        start=start,
        end=start + timedelta(minutes=minutes),
        status=kwargs.pop("status", AppointmentStatus.SCHEDULED),
        **kwargs,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(timezone="UTC")


@pytest.fixture
def monday_provider() -> Provider:
    """Provider available Mondays 09:00-12:00, plain weekly."""
    return Provider(
        id="dr-johnson",
        name="Dr. Sarah Johnson",
        specialties=["dental", "general"],
        availability=[
            AvailabilityRule(id="mon-am", weekday=1, start_time="09:00", end_time="12:00"),
        ],
        rating=4.8,
        location="Downtown Clinic",
    )


@pytest.fixture
def repository(monday_provider) -> ScheduleRepository:
    repo = ScheduleRepository(MemoryStore())
    repo.create_provider(monday_provider)
    return repo


@pytest.fixture
def locks() -> ProviderLocks:
    return ProviderLocks()


@pytest.fixture
def scheduling(repository, settings, clock, locks) -> SchedulingService:
    return SchedulingService(repository, settings, clock=clock, locks=locks)


@pytest.fixture
def cancellation(repository, settings, clock, locks) -> CancellationService:
    return CancellationService(repository, settings, clock=clock, locks=locks)
