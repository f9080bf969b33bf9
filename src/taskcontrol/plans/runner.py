"""Plan runner: drives one entity through one plan.

Each active plan is one asyncio.Task. The runner writes the stop flag for
each phase and sleeps for the phase's duration. The sleep waits on a
cancellation event, so a cancelled runner wakes at once instead of
finishing the phase.

Whatever way the runner ends (plan finished, cancelled, or the task
itself cancelled at shutdown) it writes ``stop=False`` for its entity
before exiting, so no entity stays parked in a stop phase.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from taskcontrol.core.logging import EntityContext, entity_context, get_logger
from taskcontrol.core.task_utils import log_task_exception
from taskcontrol.plans.parser import Plan
from taskcontrol.scheduler.settings import SettingsStore

_logger = get_logger("plans.runner")


class PlanRunner:
    """Sequential driver of one Plan for one entity id.

    Lifecycle: ``start()`` applies the first phase synchronously and spawns
    the driving task; ``cancel()`` signals the task and waits until it has
    reset the entity. ``on_exit`` is called exactly once when the task ends,
    so the owning registry can drop its reference.
    """

    def __init__(
        self,
        entity_id: int,
        plan: Plan,
        store: SettingsStore,
        on_exit: Callable[[PlanRunner], None] | None = None,
    ) -> None:
        self.entity_id = entity_id
        self.plan = plan
        self.started_at: float | None = None
        self._store = store
        self._on_exit = on_exit
        self._cancelled = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._context = EntityContext(kind=store.kind.value, entity_id=entity_id)

    # ─── Read-only views (safe while the runner is live) ─────────────

    @property
    def plan_text(self) -> str:
        return self.plan.to_text()

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def cancel_requested(self) -> bool:
        return self._cancelled.is_set()

    # ─── Lifecycle ───────────────────────────────────────────────────

    def start(self) -> None:
        """Apply the first phase and start driving the rest.

        Must be called from a running event loop.

        Raises:
            CapacityExceededError: If the entity is new and the store is
                full; nothing is started in that case.
            RuntimeError: If the runner was already started.
        """
        if self._task is not None:
            raise RuntimeError(f"plan runner for id {self.entity_id} already started")
        self.started_at = time.time()
        first = self.plan.phases[0]
        self._store.set_stop(self.entity_id, first.stopping)
        self._task = asyncio.create_task(
            self._drive(),
            name=f"plan-{self._store.kind.value}-{self.entity_id}",
        )
        self._task.add_done_callback(self._on_task_done)
        with entity_context(self._context):
            _logger.info(
                "plan.started",
                plan=self.plan_text,
                phases=len(self.plan),
                total_seconds=float(self.plan.total_seconds),
            )

    async def cancel(self) -> None:
        """Signal cancellation and wait until the entity has been reset."""
        self._cancelled.set()
        if self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    async def wait(self) -> None:
        """Wait for the plan to finish or be cancelled."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def _drive(self) -> None:
        completed = False
        with entity_context(self._context):
            try:
                for index, phase in enumerate(self.plan.phases):
                    if index > 0:
                        if self._cancelled.is_set():
                            break
                        self._store.set_stop(self.entity_id, phase.stopping)
                    _logger.debug(
                        "plan.phase_entered",
                        index=index,
                        stopping=phase.stopping,
                        seconds=phase.duration,
                    )
                    if await self._sleep(phase.duration):
                        break
                else:
                    completed = True
            finally:
                self._store.set_stop(self.entity_id, False)
                if completed:
                    _logger.info("plan.completed", plan=self.plan_text)
                else:
                    _logger.info("plan.cancelled", plan=self.plan_text)

    async def _sleep(self, seconds: float) -> bool:
        """Sleep for ``seconds`` unless cancelled. Returns True if cancelled."""
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=seconds)
        except TimeoutError:
            return False
        return True

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        log_task_exception(task, _logger, "plan.runner_failed")
        if self._on_exit is not None:
            self._on_exit(self)

    def __repr__(self) -> str:
        return (
            f"PlanRunner(kind={self._store.kind.value!r}, id={self.entity_id}, "
            f"plan={self.plan_text!r}, active={self.active})"
        )
