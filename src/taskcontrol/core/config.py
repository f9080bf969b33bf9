"""Configuration model for the taskcontrol server.

Defines a Pydantic v2 model for server-wide settings: network binding,
the dispatch policy to attach, settings-store sizing, plan limits and
logging. Values come from defaults, an optional YAML file, and CLI
overrides, in that order.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

DEFAULT_PORT = 8087
DEFAULT_STORE_CAPACITY = 10_000
BASE_SLICE_NS = 5_000_000
MAX_STOP_PHASE_SECONDS = 25.0


class ControlConfig(BaseModel):
    """Top-level configuration for the scheduler control server.

    Follows the same Field() conventions as the rest of the project:
    every field carries a default, bounds and a description.
    """

    host: str = Field(
        default="127.0.0.1",
        description="Interface the control server binds to.",
    )
    port: int = Field(
        default=DEFAULT_PORT,
        ge=1,
        le=65535,
        description="Port the control server listens on.",
    )
    scheduler: Literal["fifo", "lottery"] = Field(
        default="fifo",
        description="Dispatch policy to attach. Chosen once at startup.",
    )
    store_capacity: int = Field(
        default=DEFAULT_STORE_CAPACITY,
        ge=1,
        description="Maximum number of ids per settings store "
        "(task-level and group-level each get their own store).",
    )
    base_slice_ns: int = Field(
        default=BASE_SLICE_NS,
        ge=1,
        description="Time-slice budget in nanoseconds, divided by the queue "
        "length when a task is enqueued.",
    )
    max_stop_phase_seconds: float = Field(
        default=MAX_STOP_PHASE_SECONDS,
        gt=0,
        description="Longest a single stop phase of a plan may last.",
    )
    cpus: int | None = Field(
        default=None,
        ge=1,
        description="Number of CPUs the host binding exposes. "
        "None means os.cpu_count().",
    )
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Minimum log level for structlog output.",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        description="Console output for humans, JSON for log shipping.",
    )
    log_file: Path | None = Field(
        default=None,
        description="Log file path. None means log to stderr only.",
    )

    @property
    def cpu_count(self) -> int:
        """Resolved CPU count for the host binding."""
        return self.cpus or os.cpu_count() or 1

    @classmethod
    def from_yaml(cls, path: Path) -> ControlConfig:
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.model_validate(data)

    def with_overrides(self, **overrides: Any) -> ControlConfig:
        """Return a copy with non-None overrides applied and re-validated."""
        values = {key: value for key, value in overrides.items() if value is not None}
        if not values:
            return self
        return ControlConfig.model_validate({**self.model_dump(), **values})
