"""Core infrastructure shared by the scheduler, plan engine and control server."""

from taskcontrol.core.config import ControlConfig
from taskcontrol.core.errors import (
    BadRequestError,
    CapacityExceededError,
    InvalidPlanError,
    InvalidSettingError,
    RequestRejectedError,
    SchedulerUnavailableError,
    TaskControlError,
)
from taskcontrol.core.logging import configure_logging, get_logger

__all__ = [
    "BadRequestError",
    "CapacityExceededError",
    "ControlConfig",
    "InvalidPlanError",
    "InvalidSettingError",
    "RequestRejectedError",
    "SchedulerUnavailableError",
    "TaskControlError",
    "configure_logging",
    "get_logger",
]
