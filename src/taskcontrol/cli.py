"""taskcontrol CLI.

Commands:
    serve     Start the control server with a dispatch policy attached
    status    Show whether a task or task group is running or stopped
    stop      Stop a task or task group
    resume    Resume a task or task group
    plan      Show, set or cancel the plan of a task or task group
    plans     List all active plans
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, NoReturn

import httpx
import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from taskcontrol import __version__
from taskcontrol.client import SchedulerClient
from taskcontrol.core.config import DEFAULT_PORT, ControlConfig
from taskcontrol.core.errors import TaskControlError
from taskcontrol.core.logging import configure_logging

app = typer.Typer(
    name="taskcontrol",
    help="Stop, resume and time-plan tasks under a controllable CPU scheduler.",
    no_args_is_help=True,
)
console = Console()

STATUS_STYLES = {
    "running": "green",
    "stopping": "red",
    "unknown": "dim",
}


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"taskcontrol {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V", callback=_version_callback, is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Controllable CPU scheduler with a REST control plane."""


# =============================================================================
# serve command
# =============================================================================


@app.command()
def serve(
    port: int | None = typer.Option(None, "--port", "-p", help=f"Port to listen on [default: {DEFAULT_PORT}]"),
    host: str | None = typer.Option(None, "--host", help="Host to bind to [default: 127.0.0.1]"),
    scheduler: str | None = typer.Option(
        None, "--scheduler", "-s", help="Dispatch policy: fifo or lottery [default: fifo]",
    ),
    config_file: Path | None = typer.Option(
        None, "--config", "-c", exists=True, dir_okay=False, help="YAML configuration file",
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="debug, info, warning or error"),
    log_format: str | None = typer.Option(None, "--log-format", help="console or json"),
) -> None:
    """Start the control server.

    Examples:
        taskcontrol serve                      # FIFO policy on port 8087
        taskcontrol serve -s lottery -p 9000   # lottery policy on port 9000
        taskcontrol serve -c taskcontrol.yaml  # settings from a file
    """
    import uvicorn
    from pydantic import ValidationError

    from taskcontrol.server import create_app
    from taskcontrol.server.routes import render_help

    try:
        base = ControlConfig.from_yaml(config_file) if config_file else ControlConfig()
        config = base.with_overrides(
            port=port,
            host=host,
            scheduler=scheduler,
            log_level=log_level,
            log_format=log_format,
        )
    except ValidationError as exc:
        console.print(f"[red]Invalid configuration:[/red]\n{escape(str(exc))}")
        raise typer.Exit(2) from None

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = config.log_level.upper()  # type: ignore[assignment]
    configure_logging(level=level, format=config.log_format, file_path=config.log_file)

    console.print(
        Panel(
            f"[bold]taskcontrol {__version__}[/bold] ({config.scheduler} scheduler)\n\n"
            f"Listening on http://{config.host}:{config.port}\n\n"
            f"{escape(render_help(config.port))}",
            title="Starting Server",
        )
    )
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level=config.log_level)


# =============================================================================
# client commands
# =============================================================================

CLIENT_ERRORS = (TaskControlError, httpx.HTTPError)


def _exit_with_error(exc: Exception) -> NoReturn:
    console.print(f"[red]Error:[/red] {escape(str(exc))}")
    raise typer.Exit(1) from None


def _client(port: int) -> SchedulerClient:
    try:
        return SchedulerClient(port=port)
    except TaskControlError as exc:
        _exit_with_error(exc)


GROUP_OPTION = typer.Option(False, "--group", "-g", help="Treat the id as a task group (process) id")
PORT_OPTION = typer.Option(DEFAULT_PORT, "--port", "-p", help="Port of the control server")


@app.command()
def status(
    entity_id: int = typer.Argument(..., help="Task or task-group id"),
    group: bool = GROUP_OPTION,
    port: int = PORT_OPTION,
) -> None:
    """Show whether a task or task group is running or stopped."""
    client = _client(port)
    try:
        if group:
            result = client.get_task_group_status(entity_id)
        else:
            result = client.get_task_status(entity_id)
    except CLIENT_ERRORS as exc:
        _exit_with_error(exc)
    style = STATUS_STYLES.get(result.value, "white")
    console.print(f"{'group' if group else 'task'} {entity_id}: [{style}]{result.value}[/{style}]")


@app.command()
def stop(
    entity_id: int = typer.Argument(..., help="Task or task-group id"),
    group: bool = GROUP_OPTION,
    port: int = PORT_OPTION,
) -> None:
    """Stop a task or task group from being scheduled."""
    client = _client(port)
    try:
        if group:
            client.stop_group(entity_id)
        else:
            client.stop(entity_id)
    except CLIENT_ERRORS as exc:
        _exit_with_error(exc)
    console.print(f"[red]stopped[/red] {'group' if group else 'task'} {entity_id}")


@app.command()
def resume(
    entity_id: int = typer.Argument(..., help="Task or task-group id"),
    group: bool = GROUP_OPTION,
    port: int = PORT_OPTION,
) -> None:
    """Allow a task or task group to be scheduled again."""
    client = _client(port)
    try:
        if group:
            client.resume_group(entity_id)
        else:
            client.resume(entity_id)
    except CLIENT_ERRORS as exc:
        _exit_with_error(exc)
    console.print(f"[green]resumed[/green] {'group' if group else 'task'} {entity_id}")


@app.command()
def plan(
    entity_id: int = typer.Argument(..., help="Task or task-group id"),
    plan_text: str | None = typer.Argument(None, help="Plan to install, e.g. 2s,3r"),
    cancel: bool = typer.Option(False, "--cancel", help="Cancel the active plan"),
    group: bool = GROUP_OPTION,
    port: int = PORT_OPTION,
) -> None:
    """Show, set or cancel the plan of a task or task group.

    Examples:
        taskcontrol plan 1234            # show the current plan
        taskcontrol plan 1234 2s,3r      # stop 2 s, then run 3 s
        taskcontrol plan 1234 --cancel   # cancel and resume
    """
    if cancel and plan_text is not None:
        console.print("[red]Error:[/red] give either a plan or --cancel, not both")
        raise typer.Exit(2)
    client = _client(port)
    try:
        if cancel:
            client.stop_plan(entity_id, group=group)
            console.print(f"plan for {entity_id} cancelled")
        elif plan_text is not None:
            client.set_plan(entity_id, plan_text, group=group)
            console.print(f"plan [bold]{escape(plan_text)}[/bold] installed for {entity_id}")
        else:
            current = client.get_plan(entity_id, group=group)
            console.print(current if current is not None else "[dim]no plan[/dim]")
    except CLIENT_ERRORS as exc:
        _exit_with_error(exc)


@app.command()
def plans(port: int = PORT_OPTION) -> None:
    """List all active plans."""
    try:
        listing = _client(port).list_plans()
    except CLIENT_ERRORS as exc:
        _exit_with_error(exc)
    table = Table(title="Active plans")
    table.add_column("Kind")
    table.add_column("Id", justify="right")
    table.add_column("Plan", style="bold")
    table.add_column("Started")
    for kind, entries in listing.items():
        for entry in entries:
            table.add_row(kind, str(entry["id"]), entry["plan"], entry["started_at"] or "")
    if table.row_count == 0:
        console.print("[dim]no active plans[/dim]")
        return
    console.print(table)


if __name__ == "__main__":
    app()
