"""First-in-first-out dispatch policy that honours stop flags."""

from __future__ import annotations

from taskcontrol.scheduler.base import DispatchPolicy
from taskcontrol.scheduler.host import DispatchQueue, QueuedTask


class FifoPolicy(DispatchPolicy):
    """Dispatch the oldest queued task that passes the admission test.

    Tasks failing the test stay queued in place and are retried on every
    pass, so a stopped task resumes from its old position once its stop
    flag clears.
    """

    name = "fifo"

    def select(self, queue: DispatchQueue, cpu: int) -> QueuedTask | None:
        for queued in queue:
            if self.is_admitted(queued.unit, cpu):
                return queued
        return None
