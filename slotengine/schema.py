"""Pydantic models for providers, appointments, candidate slots and results."""

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from slotengine.recurrence import Recurrence, RecurrenceParseError

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def new_id() -> str:
    return str(uuid.uuid4())


# --- Provider schedule ---


class AvailabilityRule(BaseModel):
    """One recurring weekly block of bookable time (wall-clock HH:MM, same day)."""

    id: str = Field(default_factory=new_id)
    weekday: int = Field(..., ge=0, le=6, description="0=Sunday, 6=Saturday")
    start_time: str = Field(..., pattern=HHMM_PATTERN, description="Start time HH:MM")
    end_time: str = Field(..., pattern=HHMM_PATTERN, description="End time HH:MM")
    recurrence: Optional[str] = Field(
        default=None,
        description="FREQ=WEEKLY;INTERVAL=<1|2>;BYDAY=<code>",
    )

    @model_validator(mode="after")
    def check_times_and_recurrence(self) -> "AvailabilityRule":
        # Zero-padded HH:MM compares correctly as text.
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        if self.recurrence:
            try:
                parsed = Recurrence.parse(self.recurrence)
            except RecurrenceParseError:
                # Expansion falls back to plain weekly for unparseable text.
                return self
            if parsed.weekday != self.weekday:
                raise ValueError("recurrence BYDAY does not match weekday")
        return self


class Provider(BaseModel):
    """A schedulable entity owning its availability rules."""

    id: str = Field(default_factory=new_id)
    name: str
    specialties: list[str] = Field(default_factory=list)
    availability: list[AvailabilityRule] = Field(default_factory=list)
    rating: float = Field(default=0.0, ge=0)
    location: str = ""


class AvailabilityUpdate(BaseModel):
    """Whole-list replacement of a provider's availability."""

    rules: list[AvailabilityRule]


# --- Appointments ---


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Appointment(BaseModel):
    """A booking against one provider."""

    id: str = Field(default_factory=new_id)
    provider_id: str
    owner_name: str = ""
    subject_name: str = ""
    reason: Optional[str] = None
    start: datetime
    end: datetime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    location: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_interval(self) -> "Appointment":
        if self.start >= self.end:
            raise ValueError("start must be before end")
        return self


class CandidateSlot(BaseModel):
    """A transient bookable unit; recomputed on every query, never stored."""

    start: datetime
    end: datetime
    provider_id: str


# --- Request / Response ---


class BookingRequest(BaseModel):
    """
    Request body for booking one appointment.
    provider_id/start/end are checked by the booking service, not here, so a
    missing value is reported as invalid_request rather than a schema error.
    """

    provider_id: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    owner_name: str = ""
    subject_name: str = ""
    reason: Optional[str] = None
    notes: Optional[str] = None
    location: Optional[str] = None
    slot_duration_minutes: Optional[int] = Field(
        default=None,
        gt=0,
        description="Slicing used for the exact-match check (defaults to settings)",
    )


class RescheduleRequest(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    slot_duration_minutes: Optional[int] = Field(default=None, gt=0)


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class CancelDayRequest(BaseModel):
    date: date
    reason: Optional[str] = None


class BookingResult(BaseModel):
    """Outcome of book/reschedule."""

    success: bool
    appointment: Optional[Appointment] = None
    error: Optional[str] = Field(default=None, description="Error code when success is false")
    message: Optional[str] = None
    alternatives: list[CandidateSlot] = Field(default_factory=list)


class CancelResult(BaseModel):
    """Outcome of one cancellation."""

    success: bool
    appointment_id: Optional[str] = None
    appointment: Optional[Appointment] = None
    error: Optional[str] = None
    message: Optional[str] = None
