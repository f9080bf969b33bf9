"""Scheduling settings shared by the dispatch policies and the control plane.

Two independent namespaces exist: task ids and task-group ids. Each gets
its own SettingsStore. A group id and a task id with the same number are
unrelated.

Concurrency model:
  - Readers (the dispatch policies) call ``get()`` without taking a lock.
    Setting is immutable and a dict lookup returns one complete object,
    so a reader sees either the old or the new value, never a mix.
  - Writers (control requests, plan runners) go through ``_write_lock``
    so the capacity check and read-modify-write helpers are atomic.
    A new value always replaces the old object wholesale.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from dataclasses import dataclass, replace
from enum import Enum

from taskcontrol.core.config import DEFAULT_STORE_CAPACITY
from taskcontrol.core.errors import CapacityExceededError, InvalidSettingError
from taskcontrol.core.logging import get_logger

_logger = get_logger("scheduler.settings")


class EntityKind(str, Enum):
    """Namespace of an entity id.

    Values match the control-protocol path segments.
    """

    TASK = "task"
    GROUP = "taskGroup"


@dataclass(frozen=True, slots=True)
class Setting:
    """Scheduling setting for one task or task group.

    Attributes:
        stop: When True the entity must not be dispatched.
        priority: Lottery weight, strictly positive. 1 is the lowest.
    """

    stop: bool = False
    priority: int = 1

    def __post_init__(self) -> None:
        if self.priority <= 0:
            raise InvalidSettingError(
                f"priority has to be positive, got {self.priority}"
            )


DEFAULT_SETTING = Setting()


class SettingsStore:
    """Bounded map from entity id to Setting for one namespace."""

    def __init__(self, kind: EntityKind, capacity: int = DEFAULT_STORE_CAPACITY) -> None:
        self.kind = kind
        self.capacity = capacity
        self._entries: dict[int, Setting] = {}
        self._write_lock = threading.Lock()

    def get(self, entity_id: int) -> Setting | None:
        """Return the stored setting, or None if the id was never set.

        Lock-free; safe to call from the dispatch path.
        """
        return self._entries.get(entity_id)

    def resolve(self, entity_id: int) -> Setting:
        """Return the stored setting, or the default ``Setting()``."""
        return self._entries.get(entity_id, DEFAULT_SETTING)

    def put(self, entity_id: int, setting: Setting) -> None:
        """Insert or replace the setting for ``entity_id``.

        Raises:
            CapacityExceededError: If the id is new and the store is full.
        """
        with self._write_lock:
            self._store(entity_id, setting)
        _logger.debug(
            "settings.put",
            kind=self.kind.value,
            entity_id=entity_id,
            stop=setting.stop,
            priority=setting.priority,
        )

    def set_stop(self, entity_id: int, stop: bool) -> Setting:
        """Flip the stop flag, keeping the current priority.

        Returns:
            The setting now stored.
        """
        with self._write_lock:
            current = self.resolve(entity_id)
            updated = current if current.stop == stop else replace(current, stop=stop)
            self._store(entity_id, updated)
        _logger.debug("settings.stop_set", kind=self.kind.value, entity_id=entity_id, stop=stop)
        return updated

    def set_priority(self, entity_id: int, priority: int) -> Setting:
        """Change the lottery priority, keeping the current stop flag."""
        with self._write_lock:
            current = self.resolve(entity_id)
            updated = replace(current, priority=priority)
            self._store(entity_id, updated)
        _logger.debug(
            "settings.priority_set", kind=self.kind.value, entity_id=entity_id, priority=priority,
        )
        return updated

    def _store(self, entity_id: int, setting: Setting) -> None:
        # caller holds _write_lock
        if entity_id not in self._entries and len(self._entries) >= self.capacity:
            _logger.warning(
                "settings.capacity_exceeded",
                kind=self.kind.value,
                entity_id=entity_id,
                capacity=self.capacity,
            )
            raise CapacityExceededError(self.capacity, entity_id)
        self._entries[entity_id] = setting

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._entries))


class SchedulerState:
    """The task-level and group-level stores, as seen by the policies.

    Resolution rules for a task with id ``pid`` in group ``tgid``:
      - stopped if either the task setting or the group setting says stop
      - priority from the task setting if one exists, else from the group
        setting, else 1
    """

    def __init__(self, capacity: int = DEFAULT_STORE_CAPACITY) -> None:
        self.tasks = SettingsStore(EntityKind.TASK, capacity)
        self.groups = SettingsStore(EntityKind.GROUP, capacity)

    def store_for(self, kind: EntityKind) -> SettingsStore:
        return self.tasks if kind is EntityKind.TASK else self.groups

    def is_stopped(self, pid: int, tgid: int) -> bool:
        task_setting = self.tasks.get(pid)
        if task_setting is not None and task_setting.stop:
            return True
        group_setting = self.groups.get(tgid)
        return group_setting is not None and group_setting.stop

    def effective_weight(self, pid: int, tgid: int) -> int:
        """Lottery weight: the resolved priority, or 0 when stopped."""
        task_setting = self.tasks.get(pid)
        group_setting = self.groups.get(tgid)
        if (task_setting is not None and task_setting.stop) or (
            group_setting is not None and group_setting.stop
        ):
            return 0
        if task_setting is not None:
            return task_setting.priority
        if group_setting is not None:
            return group_setting.priority
        return DEFAULT_SETTING.priority
