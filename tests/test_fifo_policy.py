"""Tests for the FIFO dispatch policy and the host binding it runs in."""

from __future__ import annotations

import pytest

from taskcontrol.scheduler import FifoPolicy, SchedulerHost, TaskUnit, create_policy
from taskcontrol.scheduler.host import DispatchQueue
from taskcontrol.scheduler.settings import SchedulerState, Setting

# ─── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def policy(state: SchedulerState) -> FifoPolicy:
    return FifoPolicy(state, base_slice_ns=5_000_000)


@pytest.fixture
def queue() -> DispatchQueue:
    return DispatchQueue()


def unit(pid: int, tgid: int = 1, cpus: set[int] | None = None) -> TaskUnit:
    return TaskUnit(pid=pid, tgid=tgid, cpus=frozenset(cpus) if cpus is not None else None)


# ─── Enqueue ───────────────────────────────────────────────────────────


class TestEnqueue:
    """Slice computation on enqueue."""

    def test_first_task_gets_full_slice(self, policy: FifoPolicy, queue: DispatchQueue):
        policy.enqueue(queue, unit(1))
        assert next(iter(queue)).slice_ns == 5_000_000

    def test_slice_divided_by_queue_length(self, policy: FifoPolicy, queue: DispatchQueue):
        for pid in range(1, 5):
            policy.enqueue(queue, unit(pid))
        slices = [queued.slice_ns for queued in queue]
        assert slices == [5_000_000, 5_000_000, 2_500_000, 5_000_000 // 3]

    def test_requeue_moves_task_to_tail(self, policy: FifoPolicy, queue: DispatchQueue):
        policy.enqueue(queue, unit(1))
        policy.enqueue(queue, unit(2))
        policy.enqueue(queue, unit(1))
        assert queue.pids() == [2, 1]


# ─── Dispatch ──────────────────────────────────────────────────────────


class TestDispatch:
    """First-fit dispatch over the shared queue."""

    def test_empty_queue_dispatches_nothing(self, policy: FifoPolicy, queue: DispatchQueue):
        assert policy.dispatch(queue, cpu=0) is None

    def test_dispatches_in_fifo_order(self, policy: FifoPolicy, queue: DispatchQueue):
        for pid in (3, 1, 2):
            policy.enqueue(queue, unit(pid))
        order = [policy.dispatch(queue, cpu=0).unit.pid for _ in range(3)]  # type: ignore[union-attr]
        assert order == [3, 1, 2]
        assert len(queue) == 0

    def test_dispatch_is_preemptive_and_bound_to_cpu(
        self, policy: FifoPolicy, queue: DispatchQueue,
    ):
        policy.enqueue(queue, unit(1))
        decision = policy.dispatch(queue, cpu=3)
        assert decision is not None
        assert decision.cpu == 3
        assert decision.preempt is True
        assert decision.slice_ns == 5_000_000

    def test_stopped_task_is_skipped_but_stays_queued(
        self, state: SchedulerState, policy: FifoPolicy, queue: DispatchQueue,
    ):
        state.tasks.put(1, Setting(stop=True))
        policy.enqueue(queue, unit(1))
        policy.enqueue(queue, unit(2))

        decision = policy.dispatch(queue, cpu=0)

        assert decision is not None and decision.unit.pid == 2
        assert queue.pids() == [1]

    def test_group_stop_blocks_task(
        self, state: SchedulerState, policy: FifoPolicy, queue: DispatchQueue,
    ):
        state.groups.put(7, Setting(stop=True))
        policy.enqueue(queue, unit(1, tgid=7))
        assert policy.dispatch(queue, cpu=0) is None
        assert 1 in queue

    def test_resumed_task_keeps_its_position(
        self, state: SchedulerState, policy: FifoPolicy, queue: DispatchQueue,
    ):
        state.tasks.put(1, Setting(stop=True))
        policy.enqueue(queue, unit(1))
        policy.enqueue(queue, unit(2))
        state.tasks.put(1, Setting(stop=False))
        decision = policy.dispatch(queue, cpu=0)
        assert decision is not None and decision.unit.pid == 1

    def test_affinity_mismatch_is_skipped(self, policy: FifoPolicy, queue: DispatchQueue):
        policy.enqueue(queue, unit(1, cpus={1}))
        policy.enqueue(queue, unit(2, cpus={0, 1}))
        decision = policy.dispatch(queue, cpu=0)
        assert decision is not None and decision.unit.pid == 2
        assert queue.pids() == [1]

    def test_nothing_admissible_leaves_cpu_idle(
        self, state: SchedulerState, policy: FifoPolicy, queue: DispatchQueue,
    ):
        state.tasks.put(1, Setting(stop=True))
        policy.enqueue(queue, unit(1))
        policy.enqueue(queue, unit(2, cpus={5}))
        assert policy.dispatch(queue, cpu=0) is None
        assert queue.pids() == [1, 2]


# ─── Host simulation ───────────────────────────────────────────────────


class TestFifoOnHost:
    """Multi-round behaviour driven through SchedulerHost."""

    def test_stopped_task_never_dispatched_over_many_rounds(self, state: SchedulerState):
        host = SchedulerHost(create_policy("fifo", state), cpu_count=2)
        state.tasks.put(2, Setting(stop=True))
        for pid in (1, 2, 3):
            host.enqueue(unit(pid))

        dispatched: list[int] = []
        for round_num in range(500):
            decision = host.request_work(round_num % 2)
            if decision is not None:
                dispatched.append(decision.unit.pid)

        assert 2 not in dispatched
        assert {1, 3} <= set(dispatched)
        assert 2 in host.queue

    def test_stopped_task_runs_after_resume(self, state: SchedulerState):
        host = SchedulerHost(create_policy("fifo", state), cpu_count=1)
        state.tasks.put(1, Setting(stop=True))
        host.enqueue(unit(1))
        assert host.request_work(0) is None

        state.tasks.put(1, Setting(stop=False))
        decision = host.request_work(0)
        assert decision is not None and decision.unit.pid == 1
        assert host.running_on(0) == decision

    def test_running_task_is_requeued_when_cpu_requests_work(self, state: SchedulerState):
        host = SchedulerHost(create_policy("fifo", state), cpu_count=1)
        host.enqueue(unit(1))
        host.enqueue(unit(2))
        pids = [host.request_work(0).unit.pid for _ in range(4)]  # type: ignore[union-attr]
        assert pids == [1, 2, 1, 2]

    def test_removed_task_leaves_queue_and_cpu(self, state: SchedulerState):
        host = SchedulerHost(create_policy("fifo", state), cpu_count=1)
        host.enqueue(unit(1))
        host.request_work(0)
        host.remove(1)
        assert host.running() == [None]
        assert host.request_work(0) is None

    def test_host_requires_a_cpu(self, state: SchedulerState):
        with pytest.raises(ValueError):
            SchedulerHost(create_policy("fifo", state), cpu_count=0)

    def test_unknown_policy_name(self, state: SchedulerState):
        with pytest.raises(ValueError, match="unknown scheduler"):
            create_policy("cfs", state)
