"""Priority-weighted lottery dispatch policy.

Each queued task holds as many tickets as its resolved priority, or none
while it is stopped. One ticket is drawn per dispatch request:

  1. scan the queue once, summing the weights into ``total``
  2. if ``total`` is 0 nothing is eligible and the CPU idles
  3. draw ``ticket`` uniformly from [0, total)
  4. scan again, subtracting each weight from ``ticket``; the first task
     that drives it below zero wins, provided it has tickets and may run
     on this CPU. If the winner cannot run here the scan continues with
     the next task instead of drawing again.

Selection probability among eligible tasks is proportional to priority.
"""

from __future__ import annotations

import random

from taskcontrol.core.config import BASE_SLICE_NS
from taskcontrol.scheduler.base import DispatchPolicy
from taskcontrol.scheduler.host import DispatchQueue, QueuedTask
from taskcontrol.scheduler.settings import SchedulerState


class LotteryPolicy(DispatchPolicy):
    """Weighted random selection over the shared queue."""

    name = "lottery"

    def __init__(
        self,
        state: SchedulerState,
        base_slice_ns: int = BASE_SLICE_NS,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(state, base_slice_ns)
        self._rng = rng or random.Random()

    def weight_of(self, queued: QueuedTask) -> int:
        return self.state.effective_weight(queued.unit.pid, queued.unit.tgid)

    def select(self, queue: DispatchQueue, cpu: int) -> QueuedTask | None:
        total = 0
        for queued in queue:
            total += self.weight_of(queued)
        if total == 0:
            return None

        ticket = self._rng.randrange(total)
        for queued in queue:
            weight = self.weight_of(queued)
            ticket -= weight
            if ticket < 0 and weight > 0 and queued.unit.allows_cpu(cpu):
                return queued
        return None
