"""Scheduling error taxonomy.

Every error is recoverable by the caller. Services raise these internally and
the public booking/cancel operations turn them into structured results.
"""

from typing import Any


class SchedulingError(Exception):
    """Base class for all engine errors."""

    code = "scheduling_error"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequest(SchedulingError):
    code = "invalid_request"
    status_code = 422


class InThePast(SchedulingError):
    code = "in_the_past"
    status_code = 422


class SlotUnavailable(SchedulingError):
    code = "slot_unavailable"
    status_code = 409

    def __init__(self, message: str, alternatives: list[Any] | None = None) -> None:
        super().__init__(message)
        self.alternatives = alternatives or []


class NotFound(SchedulingError):
    code = "not_found"
    status_code = 404


class AlreadyCancelled(SchedulingError):
    code = "already_cancelled"
    status_code = 409


ERROR_STATUS = {
    cls.code: cls.status_code
    for cls in (InvalidRequest, InThePast, SlotUnavailable, NotFound, AlreadyCancelled)
}
