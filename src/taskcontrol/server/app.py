"""FastAPI application factory for the scheduler control server.

The app owns the settings stores, the plan registries and one dispatch
policy reading those stores. ``app.state.host`` is the SchedulerHost that
policy is bound to: an embedding process (a simulator, or a kernel
binding) feeds it tasks through ``enqueue`` and ``request_work`` while
the routes change the settings it dispatches by. The server itself never
calls into the host.

Usage:
    from taskcontrol.server import create_app

    app = create_app(config=ControlConfig(scheduler="lottery"))
    # Run with uvicorn: uvicorn.run(app, host="127.0.0.1", port=8087)
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from taskcontrol import __version__
from taskcontrol.core.config import ControlConfig
from taskcontrol.core.errors import (
    BadRequestError,
    CapacityExceededError,
    InvalidPlanError,
    InvalidSettingError,
)
from taskcontrol.core.logging import get_logger
from taskcontrol.scheduler import SchedulerHost, SchedulerState, create_policy
from taskcontrol.server.control import SchedulerController

_logger = get_logger("server.app")


def get_controller(request: Request) -> SchedulerController:
    """Dependency returning the controller the app was created with."""
    controller: SchedulerController = request.app.state.controller
    return controller


def _plain_error(
    status_code: int,
) -> Callable[[Request, Exception], Awaitable[PlainTextResponse]]:
    """Build an exception handler answering with the error text."""

    async def handler(request: Request, exc: Exception) -> PlainTextResponse:
        _logger.info(
            "request.rejected",
            path=request.url.path,
            status_code=status_code,
            error=str(exc),
        )
        return PlainTextResponse(str(exc), status_code=status_code)

    return handler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Cancel every running plan on shutdown so no entity stays stopped."""
    config: ControlConfig = app.state.config
    _logger.info(
        "server.started",
        scheduler=config.scheduler,
        port=config.port,
        cpus=app.state.host.cpu_count,
    )
    yield
    await app.state.controller.shutdown()
    _logger.info("server.stopped")


def create_app(
    config: ControlConfig | None = None,
    state: SchedulerState | None = None,
) -> FastAPI:
    """Create the control server.

    Args:
        config: Server configuration (defaults to ``ControlConfig()``).
        state: Pre-built settings stores, e.g. shared with a host binding.
            Created from the configured capacity if omitted.

    Returns:
        Configured FastAPI application. The controller, dispatch policy and
        host binding are reachable through ``app.state``.
    """
    config = config or ControlConfig()
    state = state or SchedulerState(config.store_capacity)
    policy = create_policy(config.scheduler, state, config.base_slice_ns)
    controller = SchedulerController(state, config.max_stop_phase_seconds, policy)

    app = FastAPI(
        title="taskcontrol",
        version=__version__,
        description="Control plane for stopping, resuming and planning scheduled tasks",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.controller = controller
    app.state.host = SchedulerHost(policy, config.cpu_count)

    app.add_exception_handler(BadRequestError, _plain_error(400))
    app.add_exception_handler(InvalidPlanError, _plain_error(400))
    app.add_exception_handler(InvalidSettingError, _plain_error(400))
    app.add_exception_handler(CapacityExceededError, _plain_error(507))

    from taskcontrol.server.routes import router
    app.include_router(router)

    @app.get("/health", tags=["System"])
    async def health_check() -> dict[str, Any]:
        """Basic service health plus scheduler and plan counts."""
        return {"status": "healthy", "version": __version__, **controller.describe()}

    return app
