"""Structured logging for taskcontrol.

Wraps structlog so every log line carries the emitting component and, when
one is active, the entity (task or task group) a plan is driving.

Example usage:
    from taskcontrol.core.logging import configure_logging, entity_context, get_logger

    configure_logging(level="DEBUG", format="console")

    logger = get_logger("plans.runner")
    logger.info("plan.installed", plan="s2,r3")

    with entity_context(EntityContext(kind="task", entity_id=42)):
        logger.info("plan.phase_entered")  # includes kind=task, entity_id=42

The dispatch policies never log: they run inside a scheduler callback.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger


@dataclass(frozen=True)
class EntityContext:
    """Identifies the task or task group a block of work acts on.

    Attributes:
        kind: Namespace of the id, "task" or "taskGroup".
        entity_id: Numeric task id or group id.
    """

    kind: str
    entity_id: int

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "entity_id": self.entity_id}


# ContextVar keeps each asyncio task's context isolated
_current_entity: ContextVar[EntityContext | None] = ContextVar(
    "taskcontrol_entity", default=None
)


def get_current_entity() -> EntityContext | None:
    """Return the active EntityContext, or None outside an entity block."""
    return _current_entity.get()


@contextmanager
def entity_context(ctx: EntityContext) -> Iterator[EntityContext]:
    """Attach ``ctx`` to every log line emitted inside the block."""
    token = _current_entity.set(ctx)
    try:
        yield ctx
    finally:
        _current_entity.reset(token)


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds an ISO8601 UTC timestamp."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_entity(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds the active EntityContext fields.

    Explicitly bound keys take precedence over the context.
    """
    ctx = get_current_entity()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            event_dict.setdefault(key, value)
    return event_dict


class TaskControlLogger:
    """Component logger wrapping structlog.

    The structlog logger is fetched on every call so that loggers created
    at import time still respect configure_logging() called later.
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    def bind(self, **context: Any) -> TaskControlLogger:
        """Return a new logger with additional bound context."""
        new_logger = TaskControlLogger.__new__(TaskControlLogger)
        new_logger._context = {**self._context, **context}
        return new_logger

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log an exception with traceback. Call from an except block."""
        self._get_logger().exception(event, **kw)


def _build_processors(
    format: Literal["console", "json"],  # noqa: A002
    include_timestamps: bool,
) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _add_entity,
    ]
    if include_timestamps:
        processors.append(_add_timestamp)
    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ])
    if format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    return processors


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    format: Literal["console", "json"] = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 20,
    backup_count: int = 3,
    include_timestamps: bool = True,
) -> None:
    """Configure structured logging. Call once at startup.

    Args:
        level: Minimum log level to emit.
        format: "console" for human-readable output, "json" for one JSON
            object per line.
        file_path: Optional rotating log file, written in addition to stderr.
        max_file_size_mb: Size at which the log file rotates.
        backup_count: Number of rotated files to keep.
        include_timestamps: Whether to stamp entries with ISO8601 UTC time.
    """
    log_level = getattr(logging, level.upper())

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if file_path is not None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                file_path,
                maxBytes=max_file_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding="utf-8",
            )
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    # cache_logger_on_first_use=False so module-level loggers pick up this config
    structlog.configure(
        processors=_build_processors(format, include_timestamps),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> TaskControlLogger:
    """Get a logger bound to a component name (e.g. "plans.registry")."""
    return TaskControlLogger(component, **initial_context)


__all__ = [
    "EntityContext",
    "TaskControlLogger",
    "configure_logging",
    "entity_context",
    "get_current_entity",
    "get_logger",
]
