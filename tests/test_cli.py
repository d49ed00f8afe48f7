from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from taskrouter import cli
from taskrouter.agent.models import Metrics
from taskrouter.config import AppConfig


def _fake_config(**overrides: object) -> AppConfig:
    config = AppConfig(log_dir=None, provider=None, log_level="warning")
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


class FakeToolExecutor:
    calls: list[tuple[str, dict[str, object]]] = []

    def __init__(self, config: AppConfig) -> None:
        self.config = config

    async def execute(self, tool_name: str, args: dict[str, object]) -> dict[str, object]:
        FakeToolExecutor.calls.append((tool_name, dict(args)))
        return {"success": True, "stdout": "clean", "stderr": "", "exit_code": 0}


@pytest.fixture(autouse=True)
def fake_runtime(monkeypatch: pytest.MonkeyPatch) -> None:
    FakeToolExecutor.calls = []
    monkeypatch.setattr(cli.AppConfig, "from_env", classmethod(lambda cls: _fake_config()))
    monkeypatch.setattr(cli, "ToolExecutor", FakeToolExecutor)


def _feed_input(monkeypatch: pytest.MonkeyPatch, lines: list[str]) -> None:
    iterator: Iterator[str] = iter(lines)

    def fake_input(_prompt: str = "") -> str:
        try:
            return next(iterator)
        except StopIteration:
            raise EOFError from None

    monkeypatch.setattr("builtins.input", fake_input)


def test_parser_defaults() -> None:
    args = cli.build_parser().parse_args([])

    assert args.goal is None
    assert args.provider is None
    assert args.working_directory is None
    assert args.analyse is None
    assert args.benchmark is False
    assert args.verbose is False


def test_parser_accepts_options() -> None:
    args = cli.build_parser().parse_args(
        ["--provider", "claude", "--cwd", "./sandbox", "-v", "git status"]
    )

    assert args.provider == "claude"
    assert args.working_directory == "./sandbox"
    assert args.verbose is True
    assert args.goal == "git status"


def test_parser_accepts_analyze_spelling() -> None:
    assert cli.build_parser().parse_args(["--analyze", "git status"]).analyse == "git status"


def test_analyse_prints_classification(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["--analyse", "read file src/agent.js"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "Intent:     file_read" in output
    assert "Confidence: 0.50" in output
    assert "Reason:     deterministic_match" in output
    assert 'read_file {"path": "src/agent.js"}' in output
    assert FakeToolExecutor.calls == []


def test_benchmark_prints_summary(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["--benchmark"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "=== CLASSIFIER BENCHMARK ===" in output
    assert "deterministic accuracy" in output


def test_goal_runs_single_task(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["-v", "git status"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "`git status` completed successfully:\n\nclean" in output
    assert "[trace]" in output
    assert FakeToolExecutor.calls == [("run_command", {"command": "git status"})]


def test_main_rejects_invalid_cwd(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["--cwd", "./definitely-missing-dir", "git status"])

    assert exit_code == 1
    assert "Invalid configured cwd directory" in capsys.readouterr().out
    assert FakeToolExecutor.calls == []


def test_main_applies_cwd_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[AppConfig] = []

    class RecordingExecutor(FakeToolExecutor):
        def __init__(self, config: AppConfig) -> None:
            super().__init__(config)
            seen.append(config)

    monkeypatch.setattr(cli, "ToolExecutor", RecordingExecutor)

    assert cli.main(["--cwd", str(tmp_path), "git status"]) == 0
    assert seen[0].working_directory == str(tmp_path.resolve())


def test_unknown_provider_falls_back_to_deterministic(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["--provider", "gemini", "git status"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "Unknown provider: gemini" in output
    assert "deterministic-only mode" in output


def test_repl_commands(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    _feed_input(
        monkeypatch,
        ["/trace", "/classify git status", "git status", "", "/trace", "/metrics", "/quit"],
    )

    exit_code = cli.main([])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "deterministic only" in output
    assert "No trace yet." in output
    assert "Intent:     shell_command" in output
    assert "`git status` completed successfully" in output
    assert "  classifying: intent=shell_command" in output
    assert "Total tasks:      1" in output
    assert FakeToolExecutor.calls == [("run_command", {"command": "git status"})]


def test_repl_ends_on_eof(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    _feed_input(monkeypatch, [])

    assert cli.main([]) == 0
    assert "=== ROUTER METRICS ===" in capsys.readouterr().out


def test_format_metrics_renders_rates() -> None:
    metrics = Metrics(total_tasks=4, deterministic_tasks=3, model_fallbacks=1)
    metrics.track_intent("file_read")

    rendered = cli.format_metrics(metrics.snapshot())

    assert "Deterministic:    3 (75.0%)" in rendered
    assert "Model fallbacks:  1 (25.0%)" in rendered
    assert 'By intent:        {"file_read": 1}' in rendered
