"""Helpers for background asyncio.Task lifecycles.

Plan runners are fire-and-forget tasks; without a done-callback that
inspects them, an exception raised inside one would only surface as an
"exception was never retrieved" warning at garbage collection.
"""

from __future__ import annotations

import asyncio
from typing import Any


def log_task_exception(
    task: asyncio.Task[Any],
    logger: Any,
    event: str,
) -> BaseException | None:
    """Log the exception a finished task raised, if any.

    Args:
        task: The completed task to inspect.
        logger: Logger with an ``.error()`` method.
        event: Structlog event name (e.g. ``"plan.runner_failed"``).

    Returns:
        The exception, or None if the task succeeded or was cancelled.
    """
    if task.cancelled():
        return None
    exc = task.exception()
    if exc is not None:
        logger.error(event, error=str(exc), error_type=type(exc).__name__, task_name=task.get_name())
    return exc
