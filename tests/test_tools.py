from __future__ import annotations

import asyncio
import io
import json
from pathlib import Path
from urllib.error import HTTPError, URLError

import pytest

from taskrouter.config import AppConfig
from taskrouter.shell import CommandResult
from taskrouter.tools import TOOL_DEFINITIONS, ToolExecutor


class FakeShell:
    name = "fake"

    def __init__(self, result: CommandResult | None = None) -> None:
        self.result = result
        self.calls: list[dict[str, object]] = []

    def execute(self, command: str, *, cwd=None, timeout=None, confirmed=False) -> CommandResult:
        self.calls.append({"command": command, "cwd": cwd, "timeout": timeout})
        return self.result or CommandResult(
            command=command, shell=self.name, returncode=0, stdout="ok\n", stderr=""
        )


def _executor(tmp_path: Path, shell: FakeShell | None = None, **overrides: object) -> ToolExecutor:
    config = AppConfig(working_directory=str(tmp_path), **overrides)  # type: ignore[arg-type]
    return ToolExecutor(config, shell=shell or FakeShell())  # type: ignore[arg-type]


def test_definitions_render_signatures() -> None:
    assert TOOL_DEFINITIONS["read_file"].signature() == "read_file(path, line_range?)"
    assert TOOL_DEFINITIONS["move_file"].required == ("from", "to")


def test_unknown_tool(tmp_path: Path) -> None:
    payload = _executor(tmp_path).execute_sync("format_disk", {})

    assert payload == {"success": False, "error": "Unknown tool: format_disk"}


def test_unresolved_arguments_are_rejected(tmp_path: Path) -> None:
    payload = _executor(tmp_path).execute_sync("create_file", {"path": "a.txt", "content": None})

    assert payload["success"] is False
    assert payload["error"] == "Missing required argument for create_file: content"
    assert not (tmp_path / "a.txt").exists()


def test_create_and_read_file(tmp_path: Path) -> None:
    executor = _executor(tmp_path)

    created = executor.execute_sync("create_file", {"path": "nested/a.txt", "content": "one\ntwo\nthree"})
    read = asyncio.run(executor.execute("read_file", {"path": "nested/a.txt"}))
    ranged = executor.execute_sync("read_file", {"path": "nested/a.txt", "line_range": [2, 3]})

    assert created["success"] is True
    assert read == {"success": True, "content": "one\ntwo\nthree", "total_lines": 3}
    assert ranged["content"] == "two\nthree"


def test_create_file_enforces_max_size(tmp_path: Path) -> None:
    payload = _executor(tmp_path, max_file_size=4).execute_sync(
        "create_file", {"path": "big.txt", "content": "too large"}
    )

    assert payload["success"] is False
    assert "max size" in str(payload["error"])


def test_read_missing_file(tmp_path: Path) -> None:
    payload = _executor(tmp_path).execute_sync("read_file", {"path": "missing.txt"})

    assert payload["success"] is False
    assert "File not found" in str(payload["error"])


def test_edit_file_requires_unique_match(tmp_path: Path) -> None:
    target = tmp_path / "app.py"
    target.write_text("x = 1\ny = 1\n", encoding="utf-8")
    executor = _executor(tmp_path)

    duplicate = executor.execute_sync(
        "edit_file", {"path": "app.py", "edits": [{"old_str": "= 1", "new_str": "= 2"}]}
    )
    applied = executor.execute_sync(
        "edit_file", {"path": "app.py", "edits": {"old_str": "x = 1", "new_str": "x = 3"}}
    )

    assert duplicate["success"] is False
    assert "2 times" in str(duplicate["error"])
    assert applied == {"success": True, "path": str(target.resolve()), "edits_applied": 1}
    assert target.read_text(encoding="utf-8") == "x = 3\ny = 1\n"


def test_list_directory_skips_hidden_and_node_modules(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.py").write_text("print()", encoding="utf-8")
    (tmp_path / ".git").mkdir()
    (tmp_path / "node_modules").mkdir()

    payload = _executor(tmp_path).execute_sync("list_directory", {"path": ".", "recursive": True})

    names = [entry["name"] for entry in payload["entries"]]  # type: ignore[union-attr]
    assert names == ["src/", str(Path("src") / "main.py")]


def test_delete_file_blocked_in_sandbox(tmp_path: Path) -> None:
    (tmp_path / "keep.txt").write_text("data", encoding="utf-8")

    payload = _executor(tmp_path, sandbox_mode=True).execute_sync("delete_file", {"path": "keep.txt"})

    assert payload == {"success": False, "error": "SANDBOX: delete_file blocked"}
    assert (tmp_path / "keep.txt").exists()


def test_move_and_delete_file(tmp_path: Path) -> None:
    (tmp_path / "old.txt").write_text("data", encoding="utf-8")
    executor = _executor(tmp_path)

    moved = executor.execute_sync("move_file", {"from": "old.txt", "to": "archive/new.txt"})
    deleted = executor.execute_sync("delete_file", {"path": "archive/new.txt"})

    assert moved["success"] is True
    assert deleted["success"] is True
    assert not (tmp_path / "archive" / "new.txt").exists()


def test_run_command_uses_shell_adapter(tmp_path: Path) -> None:
    shell = FakeShell()

    payload = _executor(tmp_path, shell, command_timeout=5.0).execute_sync(
        "run_command", {"command": "npm test"}
    )

    assert payload == {"success": True, "stdout": "ok\n", "stderr": "", "exit_code": 0}
    assert shell.calls == [{"command": "npm test", "cwd": str(tmp_path.resolve()), "timeout": 5.0}]


def test_run_command_reports_blocked_commands(tmp_path: Path) -> None:
    shell = FakeShell(
        CommandResult(
            command="mkfs",
            shell="fake",
            returncode=126,
            stdout="",
            stderr="command blocked by denylist policy",
            executed=False,
            blocked=True,
            block_reason="command blocked by denylist policy",
        )
    )

    payload = _executor(tmp_path, shell).execute_sync("run_command", {"command": "mkfs"})

    assert payload["success"] is False
    assert payload["exit_code"] == 126
    assert payload["error"] == "command blocked by denylist policy"


def test_git_prefixes_command(tmp_path: Path) -> None:
    shell = FakeShell()

    payload = _executor(tmp_path, shell).execute_sync("git", {"args": "status --short"})

    assert payload == {"success": True, "output": "ok\n", "exit_code": 0}
    assert shell.calls[0]["command"] == "git status --short"


def test_search_files_returns_matches(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "a.py").write_text("x = 1\n# TODO tidy\n", encoding="utf-8")
    (tmp_path / "src" / "b.txt").write_text("TODO later\n", encoding="utf-8")

    payload = _executor(tmp_path).execute_sync(
        "search_files", {"pattern": "TODO", "path": ".", "file_glob": "*.py"}
    )

    assert payload == {
        "success": True,
        "matches": [{"file": str(Path("src") / "a.py"), "line": 2, "text": "# TODO tidy"}],
        "count": 1,
    }


def test_search_files_caps_matches(tmp_path: Path) -> None:
    (tmp_path / "many.txt").write_text("hit\n" * 150, encoding="utf-8")

    payload = _executor(tmp_path).execute_sync("search_files", {"pattern": "hit", "path": "."})

    assert payload["count"] == 100


def test_task_signals(tmp_path: Path) -> None:
    executor = _executor(tmp_path)

    assert executor.execute_sync("task_complete", {"summary": "done"})["signal"] == "COMPLETE"
    assert executor.execute_sync("task_failed", {"reason": "nope"})["signal"] == "FAILED"


class FakeHTTPResponse:
    status = 200

    def __init__(self, body: bytes) -> None:
        self.body = body
        self.headers = {"Content-Type": "application/json"}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return None

    def read(self, _limit: int | None = None) -> bytes:
        return self.body


def test_http_request_get(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    captured: list[object] = []

    def fake_urlopen(req, timeout=None):
        captured.append((req, timeout))
        return FakeHTTPResponse(b'{"ok": true}')

    monkeypatch.setattr("taskrouter.tools.executor.request.urlopen", fake_urlopen)

    payload = _executor(tmp_path, http_timeout=7.0).execute_sync(
        "http_request",
        {"url": "https://api.example.com/data", "method": "get", "body": None, "headers": {}},
    )

    assert payload == {
        "success": True,
        "status": 200,
        "headers": {"Content-Type": "application/json"},
        "body": '{"ok": true}',
    }
    req, timeout = captured[0]
    assert req.get_method() == "GET"
    assert req.data is None
    assert timeout == 7.0


def test_http_request_post_serializes_body(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    captured: list[object] = []

    def fake_urlopen(req, timeout=None):
        captured.append(req)
        return FakeHTTPResponse(b"created")

    monkeypatch.setattr("taskrouter.tools.executor.request.urlopen", fake_urlopen)

    _executor(tmp_path).execute_sync(
        "http_request",
        {"url": "https://api.example.com/users", "method": "POST", "body": {"name": "ada"}},
    )

    assert json.loads(captured[0].data) == {"name": "ada"}


def test_http_error_status_is_returned(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_urlopen(*_args, **_kwargs):
        raise HTTPError(
            url="https://api.example.com/missing",
            code=404,
            msg="Not Found",
            hdrs=None,
            fp=io.BytesIO(b"no such thing"),
        )

    monkeypatch.setattr("taskrouter.tools.executor.request.urlopen", fake_urlopen)

    payload = _executor(tmp_path).execute_sync(
        "http_request", {"url": "https://api.example.com/missing", "method": "GET"}
    )

    assert payload["status"] == 404
    assert payload["body"] == "no such thing"


def test_http_transport_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_urlopen(*_args, **_kwargs):
        raise URLError("name resolution failed")

    monkeypatch.setattr("taskrouter.tools.executor.request.urlopen", fake_urlopen)

    payload = _executor(tmp_path).execute_sync(
        "http_request", {"url": "https://nowhere.invalid", "method": "GET"}
    )

    assert payload == {"success": False, "error": "name resolution failed"}
