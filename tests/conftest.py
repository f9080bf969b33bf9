"""Pytest fixtures for taskcontrol tests."""

from __future__ import annotations

import logging
from collections.abc import Generator

import pytest
import structlog

from taskcontrol.scheduler.settings import EntityKind, SchedulerState, Setting, SettingsStore


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset structlog and root handlers so tests don't leak logging config."""
    structlog.reset_defaults()
    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level

    yield

    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture
def state() -> SchedulerState:
    """Fresh task-level and group-level stores."""
    return SchedulerState(capacity=100)


@pytest.fixture
def task_store(state: SchedulerState) -> SettingsStore:
    return state.tasks


class RecordingStore(SettingsStore):
    """SettingsStore that records every stop-flag write in order."""

    def __init__(self, kind: EntityKind = EntityKind.TASK, capacity: int = 100) -> None:
        super().__init__(kind, capacity)
        self.stop_writes: list[tuple[int, bool]] = []

    def set_stop(self, entity_id: int, stop: bool) -> Setting:
        self.stop_writes.append((entity_id, stop))
        return super().set_stop(entity_id, stop)


@pytest.fixture
def recording_store() -> RecordingStore:
    return RecordingStore()
