"""Base class for dispatch policies.

A policy is the per-CPU decision procedure the host scheduler core calls
into. Both callbacks run in dispatch context: they never block, never
log, never write settings, and finish in time proportional to the queue
length. Every "cannot run" outcome (stopped, wrong CPU, empty queue) is a
normal return value, not an exception.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar

from taskcontrol.core.config import BASE_SLICE_NS
from taskcontrol.scheduler.host import Dispatch, DispatchQueue, QueuedTask, TaskUnit
from taskcontrol.scheduler.settings import SchedulerState


class DispatchPolicy(ABC):
    """Shared enqueue, admission and dispatch plumbing for all policies."""

    name: ClassVar[str]

    def __init__(self, state: SchedulerState, base_slice_ns: int = BASE_SLICE_NS) -> None:
        self.state = state
        self.base_slice_ns = base_slice_ns

    def slice_for(self, queued: int) -> int:
        """Slice granted at enqueue: the base budget split across the queue."""
        return self.base_slice_ns // max(queued, 1)

    def enqueue(self, queue: DispatchQueue, unit: TaskUnit) -> None:
        queue.insert(unit, self.slice_for(len(queue)))

    def is_admitted(self, unit: TaskUnit, cpu: int) -> bool:
        """Admission test: not stopped at task or group level, and CPU allowed."""
        return not self.state.is_stopped(unit.pid, unit.tgid) and unit.allows_cpu(cpu)

    @abstractmethod
    def select(self, queue: DispatchQueue, cpu: int) -> QueuedTask | None:
        """Pick the queued task to run on ``cpu`` without removing it."""

    def dispatch(self, queue: DispatchQueue, cpu: int) -> Dispatch | None:
        chosen = self.select(queue, cpu)
        if chosen is None:
            return None
        queue.remove(chosen.unit.pid)
        return Dispatch(unit=chosen.unit, cpu=cpu, slice_ns=chosen.slice_ns, preempt=True)
