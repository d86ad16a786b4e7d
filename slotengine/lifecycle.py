"""Appointment cancellation."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable

from slotengine.booking import ProviderLocks
from slotengine.config import Settings
from slotengine.errors import AlreadyCancelled, InThePast, InvalidRequest, NotFound, SchedulingError
from slotengine.repository import ScheduleRepository
from slotengine.scheduler import day_bounds
from slotengine.schema import Appointment, AppointmentStatus, CancelResult

logger = logging.getLogger(__name__)


def append_note(existing: str | None, reason: str | None) -> str | None:
    """Add a cancellation reason on a new line after any existing notes."""
    if not reason:
        return existing
    return f"{existing or ''}\nCancellation reason: {reason}".strip()


class CancellationService:
    """{scheduled, confirmed} -> cancelled, with guards.

    Pass the SchedulingService's locks so a cancel and a reschedule of the
    same provider never interleave their read and write.
    """

    def __init__(
        self,
        repository: ScheduleRepository,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
        locks: ProviderLocks | None = None,
    ) -> None:
        self.repository = repository
        self.settings = settings or Settings()
        self.tz = self.settings.tz
        self._clock = clock or (lambda: datetime.now(self.tz))
        self.locks = locks or ProviderLocks()

    def _cancel(self, appointment_id: str, reason: str | None) -> Appointment:
        existing = self.repository.get_appointment(appointment_id)
        if existing is None:
            raise NotFound(f"Appointment {appointment_id} not found")

        with self.locks.for_provider(existing.provider_id):
            existing = self.repository.get_appointment(appointment_id)
            if existing is None:
                raise NotFound(f"Appointment {appointment_id} not found")
            if existing.status == AppointmentStatus.CANCELLED:
                raise AlreadyCancelled("Appointment is already cancelled")
            if existing.status == AppointmentStatus.COMPLETED:
                raise InvalidRequest("Completed appointments cannot be cancelled")

            now = self._clock()
            if existing.start < now:
                raise InThePast("Cannot cancel past appointments")

            cancelled = existing.model_copy(
                update={
                    "status": AppointmentStatus.CANCELLED,
                    "notes": append_note(existing.notes, reason),
                    "updated_at": now,
                }
            )
            return self.repository.update_appointment(cancelled)

    def cancel(self, appointment_id: str, reason: str | None = None) -> CancelResult:
        try:
            appointment = self._cancel(appointment_id, reason)
        except SchedulingError as e:
            logger.info("Cancel rejected for appointment %s: %s", appointment_id, e.code)
            return CancelResult(
                success=False,
                appointment_id=appointment_id,
                error=e.code,
                message=e.message,
            )
        logger.info("Cancelled appointment %s", appointment_id)
        return CancelResult(success=True, appointment_id=appointment_id, appointment=appointment)

    def cancel_many(self, appointment_ids: list[str], reason: str | None = None) -> list[CancelResult]:
        return [self.cancel(appointment_id, reason) for appointment_id in appointment_ids]

    def cancel_all_for_provider_on_date(
        self,
        provider_id: str,
        day: date,
        reason: str | None = None,
    ) -> list[CancelResult]:
        """
        Cancel every non-cancelled appointment of provider touching day.
        Each appointment is cancelled on its own; the results are reported one by one.
        """
        day_start, day_end = day_bounds(day, self.tz)
        appointments = self.repository.appointments_in_range(provider_id, day_start, day_end)
        active = [a.id for a in appointments if a.status != AppointmentStatus.CANCELLED]
        logger.info(
            "Cancelling %d appointment(s) for provider %s on %s",
            len(active),
            provider_id,
            day.isoformat(),
        )
        return self.cancel_many(active, reason)
