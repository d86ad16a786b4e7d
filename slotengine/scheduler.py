"""Deterministic computation of bookable slots from weekly availability."""

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable, Iterator

from slotengine.recurrence import expand_rule_dates
from slotengine.schema import Appointment, AppointmentStatus, CandidateSlot, Provider


def _parse_time(s: str) -> tuple[int, int]:
    """Parse HH:MM to (hour, minute)."""
    parts = s.split(":")
    return int(parts[0]), int(parts[1])


def combine_date_and_time(day: date, hhmm: str, tz: tzinfo) -> datetime:
    """Wall-clock HH:MM on day, as an aware instant in tz."""
    hour, minute = _parse_time(hhmm)
    return datetime(day.year, day.month, day.day, hour, minute, 0, tzinfo=tz)


def day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """[00:00:00.000, 23:59:59.999] of day in tz."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day, time(23, 59, 59, 999000), tzinfo=tz)
    return start, end


def slice_block(
    block_start: datetime,
    block_end: datetime,
    duration_minutes: int = 30,
) -> Iterator[tuple[datetime, datetime]]:
    """
    Yield contiguous [start, end) pairs of exactly duration_minutes inside the block.
    A trailing remainder shorter than the duration is dropped.
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")
    step = timedelta(minutes=duration_minutes)
    current = block_start
    while current + step <= block_end:
        yield current, current + step
        current += step


def overlaps(
    slot_start: datetime,
    slot_end: datetime,
    appt_start: datetime,
    appt_end: datetime,
) -> bool:
    """
    Conflict test between a slot and an appointment.

    True when the slot starts in [appt_start, appt_end), ends in
    (appt_start, appt_end], or fully contains the appointment.
    """
    return (
        (appt_start <= slot_start < appt_end)
        or (appt_start < slot_end <= appt_end)
        or (slot_start <= appt_start and slot_end >= appt_end)
    )


def filter_conflicts(
    slots: Iterable[CandidateSlot],
    appointments: list[Appointment],
) -> list[CandidateSlot]:
    """Drop slots overlapping any non-cancelled appointment."""
    active = [a for a in appointments if a.status != AppointmentStatus.CANCELLED]
    return [
        s for s in slots
        if not any(overlaps(s.start, s.end, a.start, a.end) for a in active)
    ]


def compute_slots(
    provider: Provider,
    appointments: list[Appointment],
    window_start: datetime,
    window_end: datetime,
    now: datetime,
    tz: tzinfo,
    duration_minutes: int = 30,
) -> list[CandidateSlot]:
    """
    Candidate slots for provider within [window_start, window_end].

    Expands every availability rule, slices each block, skips anything already
    started before now, removes conflicts and returns a start-ordered list.
    """
    local_start = window_start.astimezone(tz)
    local_end = window_end.astimezone(tz)

    candidates: list[CandidateSlot] = []
    for rule in provider.availability:
        for day in expand_rule_dates(rule, local_start, local_end):
            block_start = combine_date_and_time(day, rule.start_time, tz)
            block_end = combine_date_and_time(day, rule.end_time, tz)

            if block_end < now:
                continue

            for slot_start, slot_end in slice_block(block_start, block_end, duration_minutes):
                if slot_start < now:
                    continue
                candidates.append(
                    CandidateSlot(start=slot_start, end=slot_end, provider_id=provider.id)
                )

    available = filter_conflicts(candidates, appointments)
    # list.sort is stable: equal starts keep rule order.
    available.sort(key=lambda s: s.start)
    return available
