"""Exception hierarchy for taskcontrol.

All project exceptions inherit from TaskControlError, so callers can catch
broadly or narrowly (e.g. only InvalidPlanError). Validation errors also
inherit from ValueError because they describe bad input values.

None of these are raised on the dispatch path: a task that cannot run on a
CPU is an ordinary outcome there, not an error.
"""

from __future__ import annotations


class TaskControlError(Exception):
    """Base exception for all taskcontrol errors."""


class InvalidSettingError(TaskControlError, ValueError):
    """Raised when a scheduling setting is constructed with invalid values.

    Example: a lottery priority of zero or below.
    """


class InvalidPlanError(TaskControlError, ValueError):
    """Raised when plan text fails the grammar or phase validation.

    The message always names the offending plan text or phase, and is
    returned verbatim to control-protocol callers.
    """


class CapacityExceededError(TaskControlError):
    """Raised when a settings store is full and a new id cannot be inserted."""

    def __init__(self, capacity: int, entity_id: int) -> None:
        super().__init__(
            f"settings store is full ({capacity} entries), cannot add id {entity_id}"
        )
        self.capacity = capacity
        self.entity_id = entity_id


class BadRequestError(TaskControlError):
    """Raised for malformed identifiers or conflicting request parameters.

    Always raised before any state is touched.
    """


class SchedulerUnavailableError(TaskControlError):
    """Raised by the client when the control server cannot be reached."""


class RequestRejectedError(TaskControlError):
    """Raised by the client when the server rejects a request other than with 400.

    Example: HTTP 507 when a settings store is full.
    """

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
