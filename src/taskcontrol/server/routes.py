"""Control protocol routes.

GET-only, plain-text responses, so the protocol is usable from curl:

    curl localhost:8087/task/1234?stopping=true
    curl localhost:8087/task/plan/1234?plan=2s,3r
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from taskcontrol.scheduler.settings import EntityKind
from taskcontrol.server.app import get_controller
from taskcontrol.server.control import SchedulerController

router = APIRouter(default_response_class=PlainTextResponse, tags=["Control"])

SERVER_HELP = """\
GET localhost:PORT/task/{id} to get the status of a task
GET localhost:PORT/task/{id}?stopping=true|false to stop or resume a task
GET localhost:PORT/task/{id}?priority=N to set the lottery priority of a task (N > 0)
GET localhost:PORT/taskGroup/{id} to get the status of a task group (i.e. process)
GET localhost:PORT/taskGroup/{id}?stopping=true|false to stop or resume a task group
GET localhost:PORT/taskGroup/{id}?priority=N to set the lottery priority of a task group
GET localhost:PORT/task/plan/{id} to get the current plan of a task
GET localhost:PORT/task/plan/{id}?plan=PLAN to run a plan for a task, e.g. 2s,3r
    (stop for 2 seconds, then run for 3 seconds; stop phases are at most 25 seconds)
GET localhost:PORT/task/plan/{id}?stoppingPlan=true to cancel the plan of a task
GET localhost:PORT/taskGroup/plan/{id}[?plan=PLAN|?stoppingPlan=true] same for task groups
GET localhost:PORT/plans to list all active plans
"""


def render_help(port: int) -> str:
    return SERVER_HELP.replace("PORT", str(port))


@router.get("/help")
async def help_text(request: Request) -> str:
    return render_help(request.app.state.config.port)


@router.get("/plans", response_class=JSONResponse)
async def list_plans(
    controller: SchedulerController = Depends(get_controller),
) -> dict[str, Any]:
    return controller.list_plans()


@router.get("/task/plan/{entity_id}")
async def task_plan(
    entity_id: str,
    plan: str | None = None,
    stopping_plan: str | None = Query(None, alias="stoppingPlan"),
    controller: SchedulerController = Depends(get_controller),
) -> str:
    return await controller.handle_plan_request(EntityKind.TASK, entity_id, plan, stopping_plan)


@router.get("/taskGroup/plan/{entity_id}")
async def task_group_plan(
    entity_id: str,
    plan: str | None = None,
    stopping_plan: str | None = Query(None, alias="stoppingPlan"),
    controller: SchedulerController = Depends(get_controller),
) -> str:
    return await controller.handle_plan_request(EntityKind.GROUP, entity_id, plan, stopping_plan)


@router.get("/task/{entity_id}")
async def task_setting(
    entity_id: str,
    stopping: str | None = None,
    priority: str | None = None,
    controller: SchedulerController = Depends(get_controller),
) -> str:
    return controller.handle_settings_request(EntityKind.TASK, entity_id, stopping, priority)


@router.get("/taskGroup/{entity_id}")
async def task_group_setting(
    entity_id: str,
    stopping: str | None = None,
    priority: str | None = None,
    controller: SchedulerController = Depends(get_controller),
) -> str:
    return controller.handle_settings_request(EntityKind.GROUP, entity_id, stopping, priority)
