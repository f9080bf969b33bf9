"""Thin client for the scheduler control server.

Example:
    client = SchedulerClient(port=8087)
    client.stop(tid)
    client.set_plan(tid, "2s,3r")
    client.get_task_status(tid)  # TaskStatus.STOPPED
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import httpx

from taskcontrol.core.config import DEFAULT_PORT
from taskcontrol.core.errors import BadRequestError, RequestRejectedError, SchedulerUnavailableError
from taskcontrol.core.logging import get_logger

_logger = get_logger("client")

NO_PLAN = "no plan"


class TaskStatus(str, Enum):
    """Scheduling status of a task or task group."""

    RUNNING = "running"
    """The task can be scheduled."""
    STOPPED = "stopping"
    """The task is not scheduled until resumed."""
    UNKNOWN = "unknown"
    """No setting stored, so the task can be scheduled."""

    @classmethod
    def from_response(cls, text: str) -> TaskStatus:
        if text == cls.RUNNING.value:
            return cls.RUNNING
        if text == cls.STOPPED.value:
            return cls.STOPPED
        return cls.UNKNOWN


class SchedulerClient:
    """Synchronous client for the control protocol.

    Args:
        port: Port the server listens on.
        host: Server host.
        http: Pre-built httpx client (its base_url is used as-is); one is
            created for ``host``/``port`` if omitted.
        timeout: Request timeout in seconds for the created client.

    Raises:
        SchedulerUnavailableError: If the server does not answer ``help``.
    """

    def __init__(
        self,
        port: int = DEFAULT_PORT,
        host: str = "localhost",
        http: httpx.Client | None = None,
        timeout: float = 5.0,
    ) -> None:
        self._owns_http = http is None
        self._http = http or httpx.Client(
            base_url=f"http://{host}:{port}",
            timeout=httpx.Timeout(timeout),
        )
        self._log = _logger.bind(base_url=str(self._http.base_url))
        self._check_connection()

    def _check_connection(self) -> None:
        try:
            response = self._http.get("/help")
        except httpx.HTTPError as exc:
            raise SchedulerUnavailableError(
                f"Scheduler server at {self._http.base_url} is not reachable "
                f"({exc}); maybe it hasn't been started?"
            ) from exc
        if not response.is_success:
            raise SchedulerUnavailableError(
                f"Scheduler server at {self._http.base_url} did not return its help "
                f"text (HTTP {response.status_code})"
            )

    def _request(self, path: str, params: dict[str, Any] | None = None) -> str:
        query = {key: _encode(value) for key, value in (params or {}).items()}
        self._log.debug("client.request", path=path, params=query)
        response = self._http.get(f"/{path}", params=query)
        _raise_for_rejection(response)
        return response.text

    # ─── Tasks ───────────────────────────────────────────────────────

    def get_task_status(self, task_id: int) -> TaskStatus:
        return TaskStatus.from_response(self._request(f"task/{task_id}"))

    def stop(self, task_id: int) -> None:
        self._request(f"task/{task_id}", {"stopping": True})

    def resume(self, task_id: int) -> None:
        self._request(f"task/{task_id}", {"stopping": False})

    def set_priority(self, task_id: int, priority: int) -> None:
        self._request(f"task/{task_id}", {"priority": priority})

    # ─── Task groups ─────────────────────────────────────────────────

    def get_task_group_status(self, group_id: int) -> TaskStatus:
        return TaskStatus.from_response(self._request(f"taskGroup/{group_id}"))

    def stop_group(self, group_id: int) -> None:
        self._request(f"taskGroup/{group_id}", {"stopping": True})

    def resume_group(self, group_id: int) -> None:
        self._request(f"taskGroup/{group_id}", {"stopping": False})

    def set_group_priority(self, group_id: int, priority: int) -> None:
        self._request(f"taskGroup/{group_id}", {"priority": priority})

    # ─── Plans ───────────────────────────────────────────────────────

    def set_plan(self, task_id: int, plan: str, *, group: bool = False) -> None:
        """Install a plan; raises BadRequestError with the server's message if invalid."""
        self._request(_plan_path(task_id, group), {"plan": plan})

    def get_plan(self, task_id: int, *, group: bool = False) -> str | None:
        """Current plan text, or None if no plan is active."""
        text = self._request(_plan_path(task_id, group))
        return None if text == NO_PLAN else text

    def stop_plan(self, task_id: int, *, group: bool = False) -> None:
        self._request(_plan_path(task_id, group), {"stoppingPlan": True})

    def list_plans(self) -> dict[str, list[dict[str, Any]]]:
        response = self._http.get("/plans")
        _raise_for_rejection(response)
        plans: dict[str, list[dict[str, Any]]] = response.json()
        return plans

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> SchedulerClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _plan_path(entity_id: int, group: bool) -> str:
    return f"{'taskGroup' if group else 'task'}/plan/{entity_id}"


def _encode(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _raise_for_rejection(response: httpx.Response) -> None:
    if response.is_success:
        return
    if response.status_code == 400:
        raise BadRequestError(response.text)
    raise RequestRejectedError(response.status_code, response.text)
