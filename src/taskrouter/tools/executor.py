"""Tool executors invoked by orchestrator plan steps."""

from __future__ import annotations

import asyncio
import fnmatch
import json
import logging
import os
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from urllib import request
from urllib.error import HTTPError, URLError

from taskrouter.config import AppConfig
from taskrouter.shell import ShellAdapter, create_shell_adapter

LOGGER = logging.getLogger(__name__)

ToolArgs = dict[str, object]
ToolPayload = dict[str, object]

BODY_LIMIT = 50000
SEARCH_MATCH_LIMIT = 100
LIST_MAX_DEPTH = 3
BODY_METHODS = {"POST", "PUT", "PATCH"}
SKIPPED_DIRECTORIES = {"node_modules"}


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    name: str
    description: str
    required: tuple[str, ...]
    optional: tuple[str, ...] = ()

    def signature(self) -> str:
        params = [*self.required, *(f"{name}?" for name in self.optional)]
        return f"{self.name}({', '.join(params)})"


TOOL_DEFINITIONS: dict[str, ToolDefinition] = {
    definition.name: definition
    for definition in (
        ToolDefinition(
            "create_file",
            "Create or overwrite a file, creating parent directories.",
            ("path", "content"),
        ),
        ToolDefinition(
            "read_file",
            "Read a file, optionally a 1-indexed [start, end] line range.",
            ("path",),
            ("line_range",),
        ),
        ToolDefinition(
            "edit_file",
            "Apply find/replace edits; every old_str must appear exactly once.",
            ("path", "edits"),
        ),
        ToolDefinition(
            "run_command",
            "Execute a shell command and return stdout, stderr and exit code.",
            ("command",),
            ("cwd", "timeout"),
        ),
        ToolDefinition(
            "http_request",
            "Make an HTTP request and return status, headers and body.",
            ("method", "url"),
            ("headers", "body"),
        ),
        ToolDefinition(
            "list_directory",
            "List files and directories at a path.",
            ("path",),
            ("recursive",),
        ),
        ToolDefinition("delete_file", "Delete a file or empty directory.", ("path",)),
        ToolDefinition("move_file", "Move or rename a file.", ("from", "to")),
        ToolDefinition("git", "Run a git command with the given arguments.", ("args",), ("cwd",)),
        ToolDefinition(
            "search_files",
            "Search files for a regex pattern; returns file, line and text.",
            ("pattern", "path"),
            ("file_glob",),
        ),
        ToolDefinition("task_complete", "Signal that the task is done.", ("summary",)),
        ToolDefinition("task_failed", "Signal that the task cannot be completed.", ("reason",)),
    )
}


class ToolExecutor:
    """Runs named tools against the configured working directory."""

    def __init__(self, config: AppConfig, *, shell: ShellAdapter | None = None) -> None:
        self.config = config
        self.working_directory = Path(config.working_directory or os.getcwd()).resolve()
        self.shell = shell or create_shell_adapter(
            config.shell,
            blocked_commands=config.blocked_commands,
            sandbox_mode=config.sandbox_mode,
        )
        self._handlers: dict[str, Callable[[ToolArgs], ToolPayload]] = {
            "create_file": self._create_file,
            "read_file": self._read_file,
            "edit_file": self._edit_file,
            "run_command": self._run_command,
            "http_request": self._http_request,
            "list_directory": self._list_directory,
            "delete_file": self._delete_file,
            "move_file": self._move_file,
            "git": self._git,
            "search_files": self._search_files,
            "task_complete": self._task_complete,
            "task_failed": self._task_failed,
        }

    async def execute(self, tool_name: str, args: ToolArgs) -> ToolPayload:
        return await asyncio.to_thread(self.execute_sync, tool_name, args)

    def execute_sync(self, tool_name: str, args: ToolArgs) -> ToolPayload:
        handler = self._handlers.get(tool_name)
        definition = TOOL_DEFINITIONS.get(tool_name)
        if handler is None or definition is None:
            return {"success": False, "error": f"Unknown tool: {tool_name}"}

        missing = [name for name in definition.required if args.get(name) is None]
        if missing:
            LOGGER.warning(
                "tool_rejected_unresolved_args",
                extra={"tool": tool_name, "missing": missing},
            )
            return {
                "success": False,
                "error": f"Missing required argument for {tool_name}: {', '.join(missing)}",
            }

        try:
            return handler(args)
        except (OSError, ValueError, TypeError) as exc:
            LOGGER.error("tool_execution_error", extra={"tool": tool_name, "error": str(exc)})
            return {"success": False, "error": str(exc)}

    def _resolve(self, value: object) -> Path:
        if not value:
            return self.working_directory
        return (self.working_directory / str(value)).resolve()

    def _relative(self, path: Path) -> str:
        try:
            return str(path.relative_to(self.working_directory))
        except ValueError:
            return str(path)

    def _create_file(self, args: ToolArgs) -> ToolPayload:
        path = self._resolve(args["path"])
        content = str(args["content"])
        size = len(content.encode("utf-8"))
        if size > self.config.max_file_size:
            return {
                "success": False,
                "error": f"File exceeds max size of {self.config.max_file_size} bytes",
            }
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return {"success": True, "path": str(path), "bytes": size}

    def _read_file(self, args: ToolArgs) -> ToolPayload:
        path = self._resolve(args["path"])
        if not path.is_file():
            return {"success": False, "error": f"File not found: {path}"}
        content = path.read_text(encoding="utf-8")
        lines = content.split("\n")
        line_range = args.get("line_range")
        if isinstance(line_range, list) and len(line_range) == 2:
            start, end = int(line_range[0]), int(line_range[1])
            selected = lines[max(0, start - 1) : None if end == -1 else end]
            return {"success": True, "content": "\n".join(selected), "total_lines": len(lines)}
        return {"success": True, "content": content, "total_lines": len(lines)}

    def _edit_file(self, args: ToolArgs) -> ToolPayload:
        path = self._resolve(args["path"])
        if not path.is_file():
            return {"success": False, "error": f"File not found: {path}"}
        edits = args["edits"]
        if isinstance(edits, dict):
            edits = [edits]
        if not isinstance(edits, list) or not edits:
            return {"success": False, "error": "edits must be a non-empty list"}

        content = path.read_text(encoding="utf-8")
        for edit in edits:
            if not isinstance(edit, dict) or not isinstance(edit.get("old_str"), str):
                return {"success": False, "error": "each edit needs old_str and new_str"}
            old_str = edit["old_str"]
            new_str = str(edit.get("new_str") or "")
            count = content.count(old_str) if old_str else 0
            if count == 0:
                return {"success": False, "error": "Search string not found in file"}
            if count > 1:
                return {
                    "success": False,
                    "error": f"Search string found {count} times; it must be unique",
                }
            content = content.replace(old_str, new_str, 1)
        path.write_text(content, encoding="utf-8")
        return {"success": True, "path": str(path), "edits_applied": len(edits)}

    def _run_command(self, args: ToolArgs) -> ToolPayload:
        command = str(args["command"])
        cwd = self._resolve(args["cwd"]) if args.get("cwd") else self.working_directory
        timeout = args.get("timeout")
        result = self.shell.execute(
            command,
            cwd=str(cwd),
            timeout=float(timeout) if isinstance(timeout, (int, float)) else self.config.command_timeout,
        )
        payload: ToolPayload = {
            "success": result.returncode == 0 and not result.blocked,
            "stdout": result.stdout,
            "stderr": result.stderr,
            "exit_code": result.returncode,
        }
        if result.blocked:
            payload["error"] = result.block_reason
        elif result.timed_out:
            payload["error"] = "Command timed out"
        return payload

    def _git(self, args: ToolArgs) -> ToolPayload:
        cwd = self._resolve(args["cwd"]) if args.get("cwd") else self.working_directory
        result = self.shell.execute(
            f"git {args['args']}",
            cwd=str(cwd),
            timeout=self.config.command_timeout,
        )
        if result.returncode == 0 and not result.blocked:
            return {"success": True, "output": result.stdout, "exit_code": 0}
        return {
            "success": False,
            "output": result.stdout,
            "error": result.block_reason or result.stderr or f"git exited with {result.returncode}",
            "exit_code": result.returncode,
        }

    def _http_request(self, args: ToolArgs) -> ToolPayload:
        method = str(args["method"]).upper()
        headers = args.get("headers")
        body = args.get("body")
        data: bytes | None = None
        if body is not None and method in BODY_METHODS:
            data = (body if isinstance(body, str) else json.dumps(body)).encode("utf-8")
        req = request.Request(
            str(args["url"]),
            data=data,
            headers={str(k): str(v) for k, v in headers.items()} if isinstance(headers, dict) else {},
            method=method,
        )
        try:
            with request.urlopen(req, timeout=self.config.http_timeout) as resp:  # noqa: S310
                return {
                    "success": True,
                    "status": resp.status,
                    "headers": dict(resp.headers.items()),
                    "body": resp.read(BODY_LIMIT).decode("utf-8", errors="replace"),
                }
        except HTTPError as exc:
            return {
                "success": True,
                "status": exc.code,
                "headers": dict(exc.headers.items()) if exc.headers else {},
                "body": exc.read(BODY_LIMIT).decode("utf-8", errors="replace") if exc.fp else "",
            }
        except URLError as exc:
            LOGGER.warning("http_request_failed", extra={"url": args["url"], "reason": str(exc.reason)})
            return {"success": False, "error": str(exc.reason)}
        except TimeoutError:
            return {"success": False, "error": "Request timed out"}

    def _list_directory(self, args: ToolArgs) -> ToolPayload:
        root = self._resolve(args["path"])
        if not root.exists():
            return {"success": False, "error": f"Path not found: {root}"}
        recursive = bool(args.get("recursive"))
        return {"success": True, "entries": self._list_entries(root, recursive, depth=0)}

    def _list_entries(self, directory: Path, recursive: bool, *, depth: int) -> list[dict[str, object]]:
        if depth > LIST_MAX_DEPTH:
            return []
        entries: list[dict[str, object]] = []
        try:
            children = sorted(directory.iterdir(), key=lambda child: child.name)
        except OSError:
            return entries
        for child in children:
            if child.name.startswith(".") or child.name in SKIPPED_DIRECTORIES:
                continue
            if child.is_dir():
                entries.append({"name": f"{self._relative(child)}/", "type": "dir"})
                if recursive:
                    entries.extend(self._list_entries(child, recursive, depth=depth + 1))
            else:
                entries.append(
                    {"name": self._relative(child), "type": "file", "size": child.stat().st_size}
                )
        return entries

    def _delete_file(self, args: ToolArgs) -> ToolPayload:
        if self.config.sandbox_mode:
            return {"success": False, "error": "SANDBOX: delete_file blocked"}
        path = self._resolve(args["path"])
        if not path.exists():
            return {"success": False, "error": "Path not found"}
        if path.is_dir():
            path.rmdir()
        else:
            path.unlink()
        return {"success": True, "deleted": str(path)}

    def _move_file(self, args: ToolArgs) -> ToolPayload:
        source = self._resolve(args["from"])
        target = self._resolve(args["to"])
        if not source.exists():
            return {"success": False, "error": "Source not found"}
        target.parent.mkdir(parents=True, exist_ok=True)
        source.rename(target)
        return {"success": True, "from": str(source), "to": str(target)}

    def _search_files(self, args: ToolArgs) -> ToolPayload:
        raw_pattern = str(args["pattern"])
        try:
            pattern = re.compile(raw_pattern)
        except re.error:
            pattern = re.compile(re.escape(raw_pattern))
        root = self._resolve(args["path"])
        file_glob = args.get("file_glob")
        matches: list[dict[str, object]] = []

        for candidate in _iter_files(root):
            if isinstance(file_glob, str) and not fnmatch.fnmatch(candidate.name, file_glob):
                continue
            try:
                lines = candidate.read_text(encoding="utf-8").splitlines()
            except (OSError, UnicodeDecodeError):
                continue
            for number, line in enumerate(lines, start=1):
                if pattern.search(line):
                    matches.append(
                        {"file": self._relative(candidate), "line": number, "text": line.strip()}
                    )
                    if len(matches) >= SEARCH_MATCH_LIMIT:
                        return {"success": True, "matches": matches, "count": len(matches)}
        return {"success": True, "matches": matches, "count": len(matches)}

    @staticmethod
    def _task_complete(args: ToolArgs) -> ToolPayload:
        return {"success": True, "signal": "COMPLETE", "summary": args["summary"]}

    @staticmethod
    def _task_failed(args: ToolArgs) -> ToolPayload:
        return {
            "success": True,
            "signal": "FAILED",
            "reason": args["reason"],
            "attempted": args.get("attempted"),
        }


def _iter_files(root: Path):
    if root.is_file():
        yield root
        return
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            name for name in dirnames if not name.startswith(".") and name not in SKIPPED_DIRECTORIES
        )
        for filename in sorted(filenames):
            yield Path(dirpath) / filename
