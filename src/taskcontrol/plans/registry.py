"""Plan registry: at most one live PlanRunner per entity id.

One registry exists per namespace (tasks, task groups), each bound to the
matching SettingsStore.

``set_plan`` and ``stop_plan`` run under a single asyncio.Lock, so the
read-current / cancel / install sequence is atomic with respect to other
calls. Replacing a plan waits for the old runner to reset its entity
before the new runner writes its first phase; the two never drive the
same id at the same time.

Runners deregister themselves when they end. Deregistration is a plain
synchronous identity check, so it needs no lock and cannot remove a
successor that has already taken the slot.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from taskcontrol.core.config import MAX_STOP_PHASE_SECONDS
from taskcontrol.core.logging import get_logger
from taskcontrol.plans.parser import parse_plan
from taskcontrol.plans.runner import PlanRunner
from taskcontrol.scheduler.settings import EntityKind, SettingsStore

_logger = get_logger("plans.registry")


@dataclass(frozen=True)
class PlanInfo:
    """Snapshot of one registered plan."""

    kind: EntityKind
    entity_id: int
    plan: str
    started_at: float | None

    def to_dict(self) -> dict[str, Any]:
        started = (
            datetime.fromtimestamp(self.started_at, UTC).isoformat()
            if self.started_at is not None
            else None
        )
        return {"id": self.entity_id, "plan": self.plan, "started_at": started}


class PlanRegistry:
    """Owns the active plan runners of one namespace."""

    def __init__(
        self,
        store: SettingsStore,
        max_stop_seconds: float = MAX_STOP_PHASE_SECONDS,
    ) -> None:
        self._store = store
        self._max_stop_seconds = max_stop_seconds
        self._runners: dict[int, PlanRunner] = {}
        self._lock = asyncio.Lock()

    @property
    def kind(self) -> EntityKind:
        return self._store.kind

    async def set_plan(self, entity_id: int, plan_text: str) -> PlanRunner:
        """Parse ``plan_text`` and make it the only plan driving ``entity_id``.

        A previous plan for the id is cancelled first. Re-applying the
        same text restarts the plan.

        Raises:
            InvalidPlanError: If the text is invalid. Nothing changes,
                including any plan already running for the id.
            CapacityExceededError: If the id is new and the store is full.
        """
        plan = parse_plan(plan_text, self._max_stop_seconds)
        async with self._lock:
            previous = self._runners.get(entity_id)
            if previous is not None:
                await previous.cancel()
                _logger.info(
                    "plan.replaced",
                    kind=self.kind.value,
                    entity_id=entity_id,
                    old_plan=previous.plan_text,
                    new_plan=plan.to_text(),
                )
            runner = PlanRunner(entity_id, plan, self._store, on_exit=self._release)
            self._runners[entity_id] = runner
            try:
                runner.start()
            except Exception:
                self._runners.pop(entity_id, None)
                raise
        return runner

    async def stop_plan(self, entity_id: int) -> bool:
        """Cancel the plan for ``entity_id``; returns False if there was none.

        Returns once the runner has reset the entity to running.
        """
        async with self._lock:
            runner = self._runners.get(entity_id)
            if runner is None:
                return False
            await runner.cancel()
        _logger.info("plan.stopped", kind=self.kind.value, entity_id=entity_id)
        return True

    def get_current_plan(self, entity_id: int) -> PlanInfo | None:
        """Snapshot of the plan driving ``entity_id``, or None if none is."""
        runner = self._runners.get(entity_id)
        if runner is None:
            return None
        return PlanInfo(self.kind, entity_id, runner.plan_text, runner.started_at)

    def get_current_plans(self) -> list[PlanInfo]:
        """Snapshots of all registered plans, ordered by id."""
        return [
            PlanInfo(self.kind, entity_id, runner.plan_text, runner.started_at)
            for entity_id, runner in sorted(self._runners.items())
        ]

    async def shutdown(self) -> None:
        """Cancel every runner, leaving all entities running."""
        async with self._lock:
            runners = list(self._runners.values())
            if runners:
                await asyncio.gather(*(runner.cancel() for runner in runners))
        if runners:
            _logger.info("plans.shutdown", kind=self.kind.value, cancelled=len(runners))

    def _release(self, runner: PlanRunner) -> None:
        if self._runners.get(runner.entity_id) is runner:
            del self._runners[runner.entity_id]
            _logger.debug("plan.deregistered", kind=self.kind.value, entity_id=runner.entity_id)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._runners

    def __len__(self) -> int:
        return len(self._runners)
