"""Control-plane service behind the REST routes.

Translates control requests into SettingsStore and PlanRegistry calls.
Everything here is transport-independent: the FastAPI routes only pass raw
path and query strings in and send the returned text back.

Every parameter is parsed and validated before any state is touched, so a
rejected request never leaves a partial change behind.
"""

from __future__ import annotations

import re
from typing import Any

from taskcontrol.core.config import MAX_STOP_PHASE_SECONDS
from taskcontrol.core.errors import BadRequestError
from taskcontrol.core.logging import get_logger
from taskcontrol.plans.registry import PlanRegistry
from taskcontrol.scheduler.base import DispatchPolicy
from taskcontrol.scheduler.settings import EntityKind, SchedulerState, Setting

_logger = get_logger("server.control")

STATUS_RUNNING = "running"
STATUS_STOPPING = "stopping"
STATUS_NOT_FOUND = "not found"
NO_PLAN = "no plan"
OK = "ok"

INTEGER_PATTERN = re.compile(r"[+-]?\d+", re.ASCII)


def parse_entity_id(raw: str) -> int:
    """Parse a path id; raises BadRequestError if it is not an integer.

    Only ASCII digits with an optional sign are accepted: no whitespace,
    no underscores, no non-ASCII digits.
    """
    if not INTEGER_PATTERN.fullmatch(raw):
        raise BadRequestError(f"Bad Request: id must be an integer, got {raw!r}")
    return int(raw)


def parse_flag(name: str, raw: str) -> bool:
    """Parse a ``true``/``false`` query parameter (case-insensitive)."""
    lowered = raw.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise BadRequestError(f"Bad Request: {name} must be true or false, got {raw!r}")


def parse_priority(raw: str) -> int:
    """Parse a lottery priority; it must be a positive integer."""
    if not INTEGER_PATTERN.fullmatch(raw):
        raise BadRequestError(f"Bad Request: priority must be an integer, got {raw!r}")
    priority = int(raw)
    # Setting() rejects non-positive priorities with InvalidSettingError
    Setting(priority=priority)
    return priority


class SchedulerController:
    """Owns the plan registries and answers control requests.

    Args:
        state: Task-level and group-level settings stores.
        max_stop_seconds: Longest stop phase a plan may contain.
        policy: The attached dispatch policy, reported by ``describe()``.
    """

    def __init__(
        self,
        state: SchedulerState,
        max_stop_seconds: float = MAX_STOP_PHASE_SECONDS,
        policy: DispatchPolicy | None = None,
    ) -> None:
        self.state = state
        self.policy = policy
        self.registries: dict[EntityKind, PlanRegistry] = {
            kind: PlanRegistry(state.store_for(kind), max_stop_seconds) for kind in EntityKind
        }

    # ─── Settings ────────────────────────────────────────────────────

    def status(self, kind: EntityKind, entity_id: int) -> str:
        setting = self.state.store_for(kind).get(entity_id)
        if setting is None:
            return STATUS_NOT_FOUND
        return STATUS_STOPPING if setting.stop else STATUS_RUNNING

    def update_setting(
        self,
        kind: EntityKind,
        entity_id: int,
        stopping: bool | None = None,
        priority: int | None = None,
    ) -> Setting:
        """Write the stop flag and/or priority, keeping whichever is not given."""
        store = self.state.store_for(kind)
        if stopping is not None and priority is not None:
            setting = Setting(stop=stopping, priority=priority)
            store.put(entity_id, setting)
        elif priority is not None:
            setting = store.set_priority(entity_id, priority)
        elif stopping is not None:
            setting = store.set_stop(entity_id, stopping)
        else:
            raise BadRequestError("Bad Request: nothing to update")
        _logger.info(
            "settings.updated",
            kind=kind.value,
            entity_id=entity_id,
            stop=setting.stop,
            priority=setting.priority,
        )
        return setting

    def handle_settings_request(
        self,
        kind: EntityKind,
        raw_id: str,
        stopping: str | None = None,
        priority: str | None = None,
    ) -> str:
        """``task/{id}`` and ``taskGroup/{id}``: query or update one entity."""
        entity_id = parse_entity_id(raw_id)
        stop_flag = parse_flag("stopping", stopping) if stopping is not None else None
        new_priority = parse_priority(priority) if priority is not None else None
        if stop_flag is None and new_priority is None:
            return self.status(kind, entity_id)
        self.update_setting(kind, entity_id, stop_flag, new_priority)
        return OK

    # ─── Plans ───────────────────────────────────────────────────────

    def get_plan(self, kind: EntityKind, entity_id: int) -> str:
        info = self.registries[kind].get_current_plan(entity_id)
        return info.plan if info is not None else NO_PLAN

    async def handle_plan_request(
        self,
        kind: EntityKind,
        raw_id: str,
        plan: str | None = None,
        stopping_plan: str | None = None,
    ) -> str:
        """``task/plan/{id}`` and ``taskGroup/plan/{id}``: query, set or cancel."""
        entity_id = parse_entity_id(raw_id)
        if plan is not None and stopping_plan is not None:
            raise BadRequestError("Bad Request: plan and stoppingPlan are mutually exclusive")
        registry = self.registries[kind]
        if plan is not None:
            await registry.set_plan(entity_id, plan)
            return OK
        if stopping_plan is not None and parse_flag("stoppingPlan", stopping_plan):
            await registry.stop_plan(entity_id)
            return OK
        return self.get_plan(kind, entity_id)

    def list_plans(self) -> dict[str, list[dict[str, Any]]]:
        """All active plans, keyed by namespace."""
        return {
            kind.value: [info.to_dict() for info in registry.get_current_plans()]
            for kind, registry in self.registries.items()
        }

    # ─── Lifecycle ───────────────────────────────────────────────────

    def describe(self) -> dict[str, Any]:
        return {
            "scheduler": self.policy.name if self.policy is not None else None,
            "tasks": len(self.state.tasks),
            "task_groups": len(self.state.groups),
            "active_plans": sum(len(registry) for registry in self.registries.values()),
        }

    async def shutdown(self) -> None:
        for registry in self.registries.values():
            await registry.shutdown()
