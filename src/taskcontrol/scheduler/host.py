"""Host-scheduler binding layer.

The dispatch policies are written against this small surface, which
mirrors what a sched_ext-style host scheduler core provides:

  - a shared dispatch queue (DSQ) that tasks are inserted into on enqueue
  - a way to move one queued task onto a CPU's local queue, optionally
    preempting whatever runs there
  - per-CPU "request for work" callbacks

``SchedulerHost`` drives a policy through those callbacks in-process.
It is the harness the policies run in for tests and simulations, and the
seam a kernel binding plugs into.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Protocol

SHARED_DSQ_ID = 0


@dataclass(frozen=True, slots=True)
class TaskUnit:
    """A schedulable task as the host scheduler reports it.

    Attributes:
        pid: Task (thread) id, looked up in the task-level store.
        tgid: Task-group (process) id, looked up in the group-level store.
        cpus: CPUs the task may run on. None means any CPU.
    """

    pid: int
    tgid: int
    cpus: frozenset[int] | None = None

    def allows_cpu(self, cpu: int) -> bool:
        return self.cpus is None or cpu in self.cpus


@dataclass(slots=True)
class QueuedTask:
    """A task waiting in a dispatch queue with its granted slice."""

    unit: TaskUnit
    slice_ns: int


@dataclass(frozen=True, slots=True)
class Dispatch:
    """A task bound to a CPU by a dispatch decision."""

    unit: TaskUnit
    cpu: int
    slice_ns: int
    preempt: bool = True


class DispatchQueue:
    """Shared FIFO dispatch queue.

    Keyed by pid and kept in insertion order, so iteration is FIFO and a
    chosen task can be removed without shifting the rest. A task is queued
    at most once; inserting a queued pid again moves it to the tail.
    """

    def __init__(self, dsq_id: int = SHARED_DSQ_ID) -> None:
        self.dsq_id = dsq_id
        self._entries: dict[int, QueuedTask] = {}

    def insert(self, unit: TaskUnit, slice_ns: int) -> None:
        self._entries.pop(unit.pid, None)
        self._entries[unit.pid] = QueuedTask(unit, slice_ns)

    def remove(self, pid: int) -> QueuedTask | None:
        return self._entries.pop(pid, None)

    def __contains__(self, pid: object) -> bool:
        return pid in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[QueuedTask]:
        # Iterates the live view: callers must not mutate while scanning
        return iter(self._entries.values())

    def pids(self) -> list[int]:
        return list(self._entries)


class DispatchPolicyLike(Protocol):
    """Policy callbacks SchedulerHost invokes (satisfied by DispatchPolicy)."""

    def enqueue(self, queue: DispatchQueue, unit: TaskUnit) -> None: ...

    def dispatch(self, queue: DispatchQueue, cpu: int) -> Dispatch | None: ...


class SchedulerHost:
    """In-process host scheduler core driving one dispatch policy.

    Each CPU runs at most one task. ``request_work(cpu)`` models the end of
    the running task's slice: the task goes back through ``enqueue`` and
    the policy is asked to dispatch a task onto the CPU.
    """

    def __init__(self, policy: DispatchPolicyLike, cpu_count: int) -> None:
        if cpu_count < 1:
            raise ValueError(f"cpu_count must be at least 1, got {cpu_count}")
        self.policy = policy
        self.queue = DispatchQueue()
        self.cpu_count = cpu_count
        self._running: list[Dispatch | None] = [None] * cpu_count

    def enqueue(self, unit: TaskUnit) -> None:
        """A task became runnable."""
        self.policy.enqueue(self.queue, unit)

    def remove(self, pid: int) -> None:
        """A task exited or blocked: drop it from the queue and its CPU."""
        self.queue.remove(pid)
        for cpu, current in enumerate(self._running):
            if current is not None and current.unit.pid == pid:
                self._running[cpu] = None

    def request_work(self, cpu: int) -> Dispatch | None:
        """Ask the policy for the next task on ``cpu``.

        The task currently on the CPU is re-enqueued first. Returns the new
        dispatch, or None if nothing is eligible and the CPU goes idle.
        """
        previous = self._running[cpu]
        if previous is not None:
            self._running[cpu] = None
            self.policy.enqueue(self.queue, previous.unit)
        decision = self.policy.dispatch(self.queue, cpu)
        self._running[cpu] = decision
        return decision

    def running_on(self, cpu: int) -> Dispatch | None:
        return self._running[cpu]

    def running(self) -> list[Dispatch | None]:
        return list(self._running)
