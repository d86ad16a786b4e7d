"""Weekly recurrence descriptors and expansion of availability rules into dates.

Descriptors use a small closed grammar:

    FREQ=WEEKLY;INTERVAL=<1|2>;BYDAY=<SU|MO|TU|WE|TH|FR|SA>

Weekdays follow the rule convention 0=Sunday ... 6=Saturday.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from slotengine.schema import AvailabilityRule

logger = logging.getLogger(__name__)

WEEKDAY_CODES = ("SU", "MO", "TU", "WE", "TH", "FR", "SA")
ALLOWED_INTERVALS = (1, 2)

# Bi-weekly phase is counted in whole weeks from this Sunday, so that a
# one-day window and a month-long window agree on which weeks are "on".
REFERENCE_SUNDAY = date(1970, 1, 4)


class RecurrenceParseError(ValueError):
    """Descriptor text does not match the weekly grammar."""


def rule_weekday(d: date) -> int:
    """Weekday of d with 0=Sunday, 6=Saturday."""
    # Python: Monday=0, Sunday=6
    return (d.weekday() + 1) % 7


def _week_index(d: date) -> int:
    return (d - REFERENCE_SUNDAY).days // 7


@dataclass(frozen=True)
class Recurrence:
    weekday: int
    interval: int = 1

    def __post_init__(self) -> None:
        if not 0 <= self.weekday <= 6:
            raise RecurrenceParseError(f"weekday out of range: {self.weekday}")
        if self.interval not in ALLOWED_INTERVALS:
            raise RecurrenceParseError(f"unsupported interval: {self.interval}")

    @classmethod
    def parse(cls, text: str) -> "Recurrence":
        if not text or not text.strip():
            raise RecurrenceParseError("empty descriptor")

        parts: dict[str, str] = {}
        for chunk in text.strip().rstrip(";").split(";"):
            key, sep, value = chunk.partition("=")
            key = key.strip().upper()
            if not sep or not key or key in parts:
                raise RecurrenceParseError(f"malformed part {chunk!r} in {text!r}")
            parts[key] = value.strip().upper()

        unknown = set(parts) - {"FREQ", "INTERVAL", "BYDAY"}
        if unknown:
            raise RecurrenceParseError(f"unsupported keys {sorted(unknown)} in {text!r}")
        if parts.get("FREQ") != "WEEKLY":
            raise RecurrenceParseError(f"only FREQ=WEEKLY is supported: {text!r}")
        if parts.get("BYDAY") not in WEEKDAY_CODES:
            raise RecurrenceParseError(f"BYDAY must be one weekday code: {text!r}")

        raw_interval = parts.get("INTERVAL", "1")
        try:
            interval = int(raw_interval)
        except ValueError as e:
            raise RecurrenceParseError(f"INTERVAL is not a number: {text!r}") from e

        return cls(weekday=WEEKDAY_CODES.index(parts["BYDAY"]), interval=interval)

    def format(self) -> str:
        return f"FREQ=WEEKLY;INTERVAL={self.interval};BYDAY={WEEKDAY_CODES[self.weekday]}"

    def is_on_week(self, d: date) -> bool:
        """True when d falls in an active week for this interval.

        Weeks run Sunday to Saturday and are numbered from Sunday 1970-01-04;
        a week is active when its number is divisible by interval.
        """
        return _week_index(d) % self.interval == 0


def weekly_descriptor(weekday: int) -> str:
    return Recurrence(weekday=weekday, interval=1).format()


def biweekly_descriptor(weekday: int) -> str:
    return Recurrence(weekday=weekday, interval=2).format()


def expand_rule_dates(
    rule: "AvailabilityRule",
    window_start: datetime,
    window_end: datetime,
) -> Iterator[date]:
    """
    Yield the calendar dates on which rule applies within [window_start, window_end].

    Both bounds are inclusive and should already be expressed in the zone the
    rule's wall-clock times are written in. A descriptor that cannot be parsed
    is logged and the rule is expanded as plain weekly availability.
    """
    recurrence: Recurrence | None = None
    if rule.recurrence:
        try:
            recurrence = Recurrence.parse(rule.recurrence)
        except RecurrenceParseError as e:
            logger.warning(
                "Unparseable recurrence %r on rule %s, using plain weekly: %s",
                rule.recurrence,
                rule.id,
                e,
            )

    current = window_start
    while rule_weekday(current.date()) != rule.weekday and current <= window_end:
        current += timedelta(days=1)

    step = 7
    if recurrence is not None:
        step = 7 * recurrence.interval
        if not recurrence.is_on_week(current.date()):
            current += timedelta(days=7)

    while current <= window_end:
        yield current.date()
        current += timedelta(days=step)
