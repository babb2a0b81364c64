"""Tests for timepilot.cli — tp show, timer, add, ask."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from timepilot.cli.main import cli


def _show(runner: CliRunner, home: Path) -> dict:
    result = runner.invoke(cli, ["show", "--json", "--home", str(home)])
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


def _upstream(payload: dict) -> MagicMock:
    mock_resp = MagicMock()
    mock_resp.status_code = 200
    mock_resp.raise_for_status = MagicMock()
    mock_resp.json.return_value = {"choices": [{"message": {"content": json.dumps(payload)}}]}
    return mock_resp


class TestCli:
    def test_version(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "timepilot" in result.output

    def test_show_empty(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["show", "--home", str(tmp_path)])
        assert result.exit_code == 0
        assert "Timer: idle" in result.output
        assert "Todos (0)" in result.output


class TestAddCommand:
    def test_add_todo(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["add", "todo", "Write report", "--home", str(tmp_path)])
        assert result.exit_code == 0
        assert "Added todo: Write report" in result.output

        data = _show(runner, tmp_path)
        assert len(data["todos"]) == 1
        assert data["todos"][0]["text"] == "Write report"
        assert data["todos"][0]["done"] is False
        assert (tmp_path / "state.db").exists()

    def test_add_plan_has_date(self, tmp_path: Path):
        runner = CliRunner()
        runner.invoke(cli, ["add", "plan", "Morning review", "--home", str(tmp_path)])
        plan = _show(runner, tmp_path)["dailyPlans"][0]
        assert plan["text"] == "Morning review"
        assert plan["date"]

    def test_unknown_kind(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["add", "note", "x", "--home", str(tmp_path)])
        assert result.exit_code != 0


class TestTimerCommands:
    def test_start_and_stop(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["timer", "start", "Deep work", "-d", "chapter 2", "--home", str(tmp_path)]
        )
        assert result.exit_code == 0
        assert "Started: Deep work" in result.output

        data = _show(runner, tmp_path)
        assert data["currentTask"] == "Deep work"
        assert data["startTime"] is not None

        result = runner.invoke(cli, ["timer", "stop", "--home", str(tmp_path)])
        assert result.exit_code == 0
        assert "Stopped: Deep work" in result.output

        data = _show(runner, tmp_path)
        assert data["startTime"] is None
        assert len(data["records"]) == 1
        assert data["records"][0]["description"] == "chapter 2"

    def test_double_start_fails(self, tmp_path: Path):
        runner = CliRunner()
        runner.invoke(cli, ["timer", "start", "One", "--home", str(tmp_path)])
        result = runner.invoke(cli, ["timer", "start", "Two", "--home", str(tmp_path)])
        assert result.exit_code != 0
        assert "already active" in result.output
        assert _show(runner, tmp_path)["currentTask"] == "One"

    def test_pause_and_resume(self, tmp_path: Path):
        runner = CliRunner()
        runner.invoke(cli, ["timer", "start", "Focus", "--home", str(tmp_path)])
        assert runner.invoke(cli, ["timer", "pause", "--home", str(tmp_path)]).exit_code == 0
        assert _show(runner, tmp_path)["isPaused"] is True
        assert runner.invoke(cli, ["timer", "resume", "--home", str(tmp_path)]).exit_code == 0
        assert _show(runner, tmp_path)["isPaused"] is False

    def test_stop_without_session(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["timer", "stop", "--home", str(tmp_path)])
        assert result.exit_code != 0


class TestAskCommand:
    def test_ask_unconfigured(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["ask", "how long today?", "--home", str(tmp_path)])
        assert result.exit_code == 0
        assert "未配置" in result.output

    def test_ask_apply_patch(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("AI_API_KEY", "sk-test")
        monkeypatch.setenv("AI_BASE_URL", "https://llm.example.com/v1")
        runner = CliRunner()
        payload = {
            "mode": "preview_patch",
            "message": "Added a todo.",
            "patch": {"todos": [{"id": "t1", "text": "Call Bob", "done": False}], "hacked": 1},
        }

        with patch("httpx.post", return_value=_upstream(payload)):
            result = runner.invoke(
                cli, ["ask", "add call bob", "--patch", "--apply", "--home", str(tmp_path)]
            )

        assert result.exit_code == 0, result.output
        assert "Added a todo." in result.output
        assert "Proposed changes:" in result.output
        assert "Applied: todos" in result.output

        data = _show(runner, tmp_path)
        assert data["todos"] == [{"id": "t1", "text": "Call Bob", "done": False}]
        assert "hacked" not in data

    def test_ask_patch_declined(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("AI_API_KEY", "sk-test")
        monkeypatch.setenv("AI_BASE_URL", "https://llm.example.com/v1")
        runner = CliRunner()
        payload = {"mode": "preview_patch", "message": "ok", "patch": {"currentTask": "X"}}

        with patch("httpx.post", return_value=_upstream(payload)):
            result = runner.invoke(
                cli, ["ask", "set task", "--home", str(tmp_path)], input="n\n"
            )

        assert result.exit_code == 0
        assert "Discarded." in result.output
        assert _show(runner, tmp_path)["currentTask"] == ""
