"""Slot listing and the booking / reschedule transaction."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable

from slotengine.config import Settings
from slotengine.errors import InThePast, InvalidRequest, NotFound, SchedulingError, SlotUnavailable
from slotengine.repository import ScheduleRepository
from slotengine.scheduler import compute_slots, day_bounds
from slotengine.schema import (
    Appointment,
    AppointmentStatus,
    BookingRequest,
    BookingResult,
    CandidateSlot,
    RescheduleRequest,
    new_id,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class ProviderLocks:
    """One lock per provider id, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = defaultdict(threading.Lock)

    def for_provider(self, provider_id: str) -> threading.Lock:
        with self._guard:
            return self._locks[provider_id]


class SchedulingService:
    """Availability queries and bookings for all providers in a repository."""

    def __init__(
        self,
        repository: ScheduleRepository,
        settings: Settings | None = None,
        clock: Clock | None = None,
        locks: ProviderLocks | None = None,
    ) -> None:
        self.repository = repository
        self.settings = settings or Settings()
        self.tz = self.settings.tz
        self._clock = clock or (lambda: datetime.now(self.tz))
        self.locks = locks or ProviderLocks()

    def now(self) -> datetime:
        return self._clock()

    def _aware(self, value: datetime) -> datetime:
        """Naive datetimes are read as wall-clock in the configured zone."""
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value

    # --- Availability ---

    def list_available_slots(
        self,
        provider_id: str,
        window_start: datetime,
        window_end: datetime,
        slot_duration_minutes: int | None = None,
    ) -> list[CandidateSlot]:
        """Free, future slots for provider within [window_start, window_end], ordered by start."""
        duration = slot_duration_minutes
        if duration is None:
            duration = self.settings.slot_duration_minutes
        if duration <= 0:
            raise InvalidRequest("Slot duration must be a positive number of minutes")
        provider = self.repository.get_provider(provider_id)
        if provider is None:
            raise NotFound(f"Provider {provider_id} not found")

        window_start = self._aware(window_start)
        window_end = self._aware(window_end)
        # Blocks on the first and last dates are built whole, so conflicts are
        # looked up over those full calendar days.
        fetch_start = day_bounds(window_start.astimezone(self.tz).date(), self.tz)[0]
        fetch_end = day_bounds(window_end.astimezone(self.tz).date(), self.tz)[1]
        appointments = self.repository.appointments_in_range(provider_id, fetch_start, fetch_end)

        return compute_slots(
            provider,
            appointments,
            window_start,
            window_end,
            now=self.now(),
            tz=self.tz,
            duration_minutes=duration,
        )

    def next_available_slots(
        self,
        provider_id: str,
        count: int | None = None,
        slot_duration_minutes: int | None = None,
    ) -> list[CandidateSlot]:
        """First count free slots within the configured horizon from now."""
        if count is None:
            count = self.settings.alternatives_count
        now = self.now()
        horizon = now + timedelta(days=self.settings.alternatives_horizon_days)
        slots = self.list_available_slots(provider_id, now, horizon, slot_duration_minutes)
        return slots[:count]

    # --- Booking ---

    def _validate_times(
        self,
        start: datetime | None,
        end: datetime | None,
    ) -> tuple[datetime, datetime]:
        if start is None or end is None:
            raise InvalidRequest("Missing required appointment data")
        start, end = self._aware(start), self._aware(end)
        if end <= start:
            raise InvalidRequest("End time must be after start time")
        if start < self.now():
            raise InThePast("Cannot book appointments in the past")
        return start, end

    def _require_exact_slot(
        self,
        provider_id: str,
        start: datetime,
        end: datetime,
        slot_duration_minutes: int | None,
    ) -> None:
        day_start, day_end = day_bounds(start.astimezone(self.tz).date(), self.tz)
        candidates = self.list_available_slots(
            provider_id, day_start, day_end, slot_duration_minutes
        )
        if any(c.start == start and c.end == end for c in candidates):
            return

        alternatives = self.next_available_slots(
            provider_id, slot_duration_minutes=slot_duration_minutes
        )
        raise SlotUnavailable("Requested slot is not available", alternatives=alternatives)

    def _create(self, request: BookingRequest) -> Appointment:
        if not request.provider_id:
            raise InvalidRequest("Missing required appointment data")
        start, end = self._validate_times(request.start, request.end)

        with self.locks.for_provider(request.provider_id):
            provider = self.repository.get_provider(request.provider_id)
            if provider is None:
                raise NotFound(f"Provider {request.provider_id} not found")

            self._require_exact_slot(provider.id, start, end, request.slot_duration_minutes)

            now = self.now()
            appointment = Appointment(
                id=new_id(),
                provider_id=provider.id,
                owner_name=request.owner_name,
                subject_name=request.subject_name,
                reason=request.reason,
                start=start,
                end=end,
                status=AppointmentStatus.SCHEDULED,
                location=request.location or provider.location or None,
                notes=request.notes,
                created_at=now,
                updated_at=now,
            )
            return self.repository.create_appointment(appointment)

    def book(self, request: BookingRequest) -> BookingResult:
        try:
            appointment = self._create(request)
        except SchedulingError as e:
            logger.info("Booking rejected for provider %s: %s", request.provider_id, e.code)
            return _failure(e)
        logger.info(
            "Booked appointment %s with provider %s at %s",
            appointment.id,
            appointment.provider_id,
            appointment.start.isoformat(),
        )
        return BookingResult(success=True, appointment=appointment)

    def book_many(self, requests: list[BookingRequest]) -> list[BookingResult]:
        """Book each request independently; one failure does not stop the rest."""
        return [self.book(r) for r in requests]

    def _move(self, appointment_id: str, request: RescheduleRequest) -> Appointment:
        existing = self.repository.get_appointment(appointment_id)
        if existing is None:
            raise NotFound(f"Appointment {appointment_id} not found")
        start, end = self._validate_times(request.start, request.end)

        with self.locks.for_provider(existing.provider_id):
            self._require_exact_slot(
                existing.provider_id, start, end, request.slot_duration_minutes
            )
            # Cancellation takes the same provider lock, so this read is current.
            current = self.repository.get_appointment(appointment_id)
            if current is None:
                raise NotFound(f"Appointment {appointment_id} not found")
            updated = current.model_copy(
                update={"start": start, "end": end, "updated_at": self.now()}
            )
            return self.repository.update_appointment(updated)

    def reschedule(self, appointment_id: str, request: RescheduleRequest) -> BookingResult:
        try:
            appointment = self._move(appointment_id, request)
        except SchedulingError as e:
            logger.info("Reschedule rejected for appointment %s: %s", appointment_id, e.code)
            return _failure(e)
        logger.info(
            "Rescheduled appointment %s to %s",
            appointment.id,
            appointment.start.isoformat(),
        )
        return BookingResult(success=True, appointment=appointment)


def _failure(error: SchedulingError) -> BookingResult:
    return BookingResult(
        success=False,
        error=error.code,
        message=error.message,
        alternatives=getattr(error, "alternatives", []),
    )
