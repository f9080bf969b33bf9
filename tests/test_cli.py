"""Tests for the taskcontrol CLI."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest
from typer.testing import CliRunner

from taskcontrol import __version__
from taskcontrol.cli import app
from taskcontrol.client import TaskStatus
from taskcontrol.core.errors import BadRequestError, RequestRejectedError, SchedulerUnavailableError

runner = CliRunner()


@pytest.fixture
def sdk() -> Iterator[MagicMock]:
    with patch("taskcontrol.cli.SchedulerClient") as client_cls:
        yield client_cls.return_value


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestStatus:
    def test_task_status(self, sdk: MagicMock):
        sdk.get_task_status.return_value = TaskStatus.STOPPED
        result = runner.invoke(app, ["status", "42"])
        assert result.exit_code == 0
        assert "task 42: stopping" in result.stdout
        sdk.get_task_status.assert_called_once_with(42)

    def test_group_status(self, sdk: MagicMock):
        sdk.get_task_group_status.return_value = TaskStatus.RUNNING
        result = runner.invoke(app, ["status", "7", "--group"])
        assert result.exit_code == 0
        assert "group 7: running" in result.stdout

    def test_server_down(self):
        with patch(
            "taskcontrol.cli.SchedulerClient",
            side_effect=SchedulerUnavailableError("not reachable"),
        ):
            result = runner.invoke(app, ["status", "1"])
        assert result.exit_code == 1
        assert "not reachable" in result.stdout

    def test_port_passed_to_client(self):
        with patch("taskcontrol.cli.SchedulerClient") as client_cls:
            client_cls.return_value.get_task_status.return_value = TaskStatus.RUNNING
            runner.invoke(app, ["status", "1", "--port", "9000"])
        client_cls.assert_called_once_with(port=9000)


class TestRejectedRequests:
    """Server rejections end the command with exit code 1 and no traceback."""

    def test_store_full_on_stop(self, sdk: MagicMock):
        sdk.stop.side_effect = RequestRejectedError(507, "settings store is full (1 entries), cannot add id 2")
        result = runner.invoke(app, ["stop", "2"])
        assert result.exit_code == 1
        assert "settings store is full" in result.stdout
        assert result.exception is None or isinstance(result.exception, SystemExit)

    @pytest.mark.parametrize(
        "args,method",
        [
            (["status", "1"], "get_task_status"),
            (["status", "1", "-g"], "get_task_group_status"),
            (["resume", "1"], "resume"),
            (["resume", "1", "-g"], "resume_group"),
            (["stop", "1", "-g"], "stop_group"),
            (["plans"], "list_plans"),
        ],
    )
    def test_rejection_exits_cleanly(self, sdk: MagicMock, args: list[str], method: str):
        getattr(sdk, method).side_effect = RequestRejectedError(500, "boom")
        result = runner.invoke(app, args)
        assert result.exit_code == 1
        assert "HTTP 500: boom" in result.stdout

    def test_connection_lost_mid_command(self, sdk: MagicMock):
        sdk.get_task_status.side_effect = httpx.ConnectError("connection reset")
        result = runner.invoke(app, ["status", "1"])
        assert result.exit_code == 1
        assert "connection reset" in result.stdout


class TestStopResume:
    def test_stop_task(self, sdk: MagicMock):
        result = runner.invoke(app, ["stop", "42"])
        assert result.exit_code == 0
        sdk.stop.assert_called_once_with(42)

    def test_resume_group(self, sdk: MagicMock):
        result = runner.invoke(app, ["resume", "3", "-g"])
        assert result.exit_code == 0
        sdk.resume_group.assert_called_once_with(3)
        sdk.resume.assert_not_called()


class TestPlan:
    def test_show_plan(self, sdk: MagicMock):
        sdk.get_plan.return_value = "2s,3r"
        result = runner.invoke(app, ["plan", "42"])
        assert result.exit_code == 0
        assert "2s,3r" in result.stdout
        sdk.get_plan.assert_called_once_with(42, group=False)

    def test_show_no_plan(self, sdk: MagicMock):
        sdk.get_plan.return_value = None
        result = runner.invoke(app, ["plan", "42"])
        assert "no plan" in result.stdout

    def test_set_plan(self, sdk: MagicMock):
        result = runner.invoke(app, ["plan", "42", "2s,3r", "--group"])
        assert result.exit_code == 0
        sdk.set_plan.assert_called_once_with(42, "2s,3r", group=True)

    def test_invalid_plan(self, sdk: MagicMock):
        sdk.set_plan.side_effect = BadRequestError("Invalid plan '30s'")
        result = runner.invoke(app, ["plan", "42", "30s"])
        assert result.exit_code == 1
        assert "Invalid plan" in result.stdout

    def test_cancel_plan(self, sdk: MagicMock):
        result = runner.invoke(app, ["plan", "42", "--cancel"])
        assert result.exit_code == 0
        sdk.stop_plan.assert_called_once_with(42, group=False)

    def test_cancel_with_plan_text(self, sdk: MagicMock):
        result = runner.invoke(app, ["plan", "42", "2s", "--cancel"])
        assert result.exit_code == 2
        sdk.set_plan.assert_not_called()
        sdk.stop_plan.assert_not_called()


class TestPlans:
    def test_empty(self, sdk: MagicMock):
        sdk.list_plans.return_value = {"task": [], "taskGroup": []}
        result = runner.invoke(app, ["plans"])
        assert result.exit_code == 0
        assert "no active plans" in result.stdout

    def test_table(self, sdk: MagicMock):
        sdk.list_plans.return_value = {
            "task": [{"id": 42, "plan": "2s,3r", "started_at": "2026-01-01T00:00:00+00:00"}],
            "taskGroup": [{"id": 7, "plan": "10r", "started_at": None}],
        }
        result = runner.invoke(app, ["plans"])
        assert result.exit_code == 0
        assert "2s,3r" in result.stdout
        assert "10r" in result.stdout
        assert "taskGroup" in result.stdout


class TestServe:
    def test_serve_with_overrides(self):
        with (
            patch("uvicorn.run") as run,
            patch("taskcontrol.cli.configure_logging") as configure,
        ):
            result = runner.invoke(app, ["serve", "--port", "9001", "--scheduler", "lottery"])
        assert result.exit_code == 0, result.stdout
        run.assert_called_once()
        assert run.call_args.kwargs["port"] == 9001
        served_app = run.call_args.args[0]
        assert served_app.state.config.scheduler == "lottery"
        configure.assert_called_once()
        assert "localhost:9001/task/{id}" in result.stdout

    def test_serve_from_config_file(self, tmp_path: Path):
        config_file = tmp_path / "taskcontrol.yaml"
        config_file.write_text("port: 9100\nlog_format: json\n")
        with patch("uvicorn.run") as run, patch("taskcontrol.cli.configure_logging") as configure:
            result = runner.invoke(app, ["serve", "--config", str(config_file)])
        assert result.exit_code == 0, result.stdout
        assert run.call_args.kwargs["port"] == 9100
        assert configure.call_args.kwargs["format"] == "json"

    def test_serve_rejects_bad_scheduler(self):
        with patch("uvicorn.run") as run:
            result = runner.invoke(app, ["serve", "--scheduler", "cfs"])
        assert result.exit_code == 2
        assert "Invalid configuration" in result.stdout
        run.assert_not_called()
