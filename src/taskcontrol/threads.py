"""Control the scheduling of Python threads.

The scheduler works on OS thread ids. ``ThreadIdLookup`` maps a Python
``threading.Thread`` to that id; ``NativeThreadIds`` implements it with
``Thread.native_id``, and other runtimes can plug in their own lookup.
"""

from __future__ import annotations

import threading
from typing import Protocol

from taskcontrol.client import SchedulerClient, TaskStatus


class ThreadIdLookup(Protocol):
    """Maps thread handles to OS thread ids."""

    def get(self, thread: threading.Thread) -> int | None:
        """Cached OS id of ``thread``, or None if unknown."""
        ...

    def refresh(self) -> None:
        """Re-read the thread table."""
        ...


class NativeThreadIds:
    """Lookup backed by ``threading.Thread.native_id``.

    Ids are cached per thread object; ``refresh()`` rebuilds the cache from
    ``threading.enumerate()`` so exited threads drop out.
    """

    def __init__(self) -> None:
        self._ids: dict[threading.Thread, int] = {}
        self.refresh()

    def get(self, thread: threading.Thread) -> int | None:
        return self._ids.get(thread)

    def refresh(self) -> None:
        self._ids = {
            thread: thread.native_id
            for thread in threading.enumerate()
            if thread.native_id is not None
        }


class ThreadControl:
    """Stop, resume and query Python threads through the scheduler."""

    def __init__(
        self,
        client: SchedulerClient | None = None,
        lookup: ThreadIdLookup | None = None,
    ) -> None:
        self.client = client or SchedulerClient()
        self.lookup = lookup or NativeThreadIds()

    def os_id(self, thread: threading.Thread) -> int:
        """OS thread id of ``thread``, refreshing the lookup once on a miss.

        Raises:
            LookupError: If the thread has no OS id (not started, or exited).
        """
        os_id = self.lookup.get(thread)
        if os_id is None:
            self.lookup.refresh()
            os_id = self.lookup.get(thread)
        if os_id is None:
            raise LookupError(f"no OS thread id for {thread.name!r}, is it running?")
        return os_id

    def get_thread_status(self, thread: threading.Thread) -> TaskStatus:
        return self.client.get_task_status(self.os_id(thread))

    def stop_thread(self, thread: threading.Thread) -> None:
        """Prevent a thread from being scheduled."""
        self.client.stop(self.os_id(thread))

    def resume_thread(self, thread: threading.Thread) -> None:
        """Allow a thread to be scheduled again."""
        self.client.resume(self.os_id(thread))

    def plan_thread(self, thread: threading.Thread, plan: str) -> None:
        """Run a stop/run plan for a thread, e.g. ``"2s,3r"``."""
        self.client.set_plan(self.os_id(thread), plan)
