"""Per-intent result validation and response templates."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass

from taskrouter.agent.models import ToolPayload, ValidationOutcome
from taskrouter.routing.models import Intent, Plan

Validator = Callable[[ToolPayload | None], ValidationOutcome]
Template = Callable[[ToolPayload, Plan], str]


@dataclass(frozen=True, slots=True)
class ResponseTemplates:
    success: Template
    error: Template


def _failure_reason(payload: ToolPayload | None, fallback: str) -> str | None:
    """Return a failure reason, or ``None`` when the payload looks successful."""
    if not payload:
        return "no_result"
    error = payload.get("error")
    if error:
        return str(error)
    if payload.get("success") is False:
        return fallback
    return None


def _file_validator(fallback: str) -> Validator:
    def validate(payload: ToolPayload | None) -> ValidationOutcome:
        reason = _failure_reason(payload, fallback)
        if reason is not None:
            return ValidationOutcome(valid=False, reason=reason)
        return ValidationOutcome(valid=True)

    return validate


def validate_shell_command(payload: ToolPayload | None) -> ValidationOutcome:
    if not payload:
        return ValidationOutcome(valid=False, reason="no_result")
    exit_code = payload.get("exit_code")
    if exit_code is not None and exit_code != 0:
        return ValidationOutcome(
            valid=False,
            reason=f"exit_code_{exit_code}",
            diagnostics={"stderr": payload.get("stderr", "")},
        )
    # Rejected before a process ran, so there is no exit code to inspect.
    if exit_code is None and payload.get("error"):
        return ValidationOutcome(valid=False, reason=str(payload["error"]))
    return ValidationOutcome(valid=True)


def validate_http_request(payload: ToolPayload | None) -> ValidationOutcome:
    if not payload:
        return ValidationOutcome(valid=False, reason="no_result")
    status = payload.get("status")
    if isinstance(status, int) and status >= 400:
        return ValidationOutcome(valid=False, reason=f"http_{status}")
    if payload.get("error"):
        return ValidationOutcome(valid=False, reason=str(payload["error"]))
    return ValidationOutcome(valid=True)


def validate_search(payload: ToolPayload | None) -> ValidationOutcome:
    if not payload:
        return ValidationOutcome(valid=False, reason="no_result")
    if payload.get("error"):
        return ValidationOutcome(valid=False, reason=str(payload["error"]))
    return ValidationOutcome(valid=True)


validate_default = _file_validator("unknown_error")

VALIDATORS: dict[Intent, Validator] = {
    Intent.FILE_READ: _file_validator("no_result"),
    Intent.FILE_WRITE: _file_validator("write_failed"),
    Intent.FILE_EDIT: _file_validator("edit_failed"),
    Intent.SHELL_COMMAND: validate_shell_command,
    Intent.TESTING: validate_shell_command,
    Intent.HTTP_REQUEST: validate_http_request,
    Intent.SEARCH: validate_search,
}


def validator_for(intent: Intent) -> Validator:
    return VALIDATORS.get(intent, validate_default)


def _error_text(payload: ToolPayload) -> str:
    return str(payload.get("error") or payload.get("reason") or "unknown error")


def _plan_path(plan: Plan) -> str:
    return str(plan.first_arg("path") or "file")


def _plan_command(plan: Plan) -> str:
    return str(plan.first_arg("command") or "command")


def _file_read_success(payload: ToolPayload, plan: Plan) -> str:
    content = payload.get("content")
    if content is None:
        content = json.dumps(payload, indent=2, default=str)
    return f"Contents of `{_plan_path(plan)}`:\n\n{content}"


def _file_read_error(payload: ToolPayload, plan: Plan) -> str:
    return f"Failed to read `{_plan_path(plan)}`: {_error_text(payload)}"


def _file_write_success(_payload: ToolPayload, plan: Plan) -> str:
    return f"File written: `{_plan_path(plan)}`"


def _file_write_error(payload: ToolPayload, plan: Plan) -> str:
    return f"Failed to write `{_plan_path(plan)}`: {_error_text(payload)}"


def _file_edit_success(_payload: ToolPayload, plan: Plan) -> str:
    return f"File edited: `{_plan_path(plan)}`"


def _file_edit_error(payload: ToolPayload, plan: Plan) -> str:
    return f"Failed to edit `{_plan_path(plan)}`: {_error_text(payload)}"


def _shell_success(payload: ToolPayload, plan: Plan) -> str:
    output = payload.get("stdout") or payload.get("output") or ""
    suffix = f":\n\n{output}" if output else "."
    return f"`{_plan_command(plan)}` completed successfully{suffix}"


def _shell_error(payload: ToolPayload, plan: Plan) -> str:
    exit_code = payload.get("exit_code", "?")
    details = payload.get("stderr") or payload.get("error") or payload.get("reason")
    return f"`{_plan_command(plan)}` failed (exit {exit_code}):\n{details or 'unknown error'}"


def _http_success(payload: ToolPayload, _plan: Plan) -> str:
    body = payload.get("body")
    rendered = body if isinstance(body, str) else json.dumps(body, indent=2, default=str)
    return f"HTTP {payload.get('status') or 200} OK:\n\n{rendered}"


def _http_error(payload: ToolPayload, _plan: Plan) -> str:
    status = payload.get("status") or "error"
    return f"HTTP request failed: {status} ({_error_text(payload)})"


def _search_success(payload: ToolPayload, _plan: Plan) -> str:
    matches = payload.get("matches")
    if isinstance(matches, list) and matches:
        lines = [
            f"  {match.get('file')}:{match.get('line')}: {match.get('text')}"
            for match in matches
            if isinstance(match, dict)
        ]
        return f"Found {len(matches)} match(es):\n\n" + "\n".join(lines)
    return f"Search complete: {payload.get('count', 0)} results found."


def _search_error(payload: ToolPayload, _plan: Plan) -> str:
    return f"Search failed: {_error_text(payload)}"


def _default_success(payload: ToolPayload, _plan: Plan) -> str:
    if not payload:
        return "Task completed successfully."
    return "Task completed successfully.\n\n" + json.dumps(payload, indent=2, default=str)


def _default_error(payload: ToolPayload, _plan: Plan) -> str:
    return f"Task failed: {_error_text(payload)}"


DEFAULT_TEMPLATES = ResponseTemplates(success=_default_success, error=_default_error)
SHELL_TEMPLATES = ResponseTemplates(success=_shell_success, error=_shell_error)

RESPONSE_TEMPLATES: dict[Intent, ResponseTemplates] = {
    Intent.FILE_READ: ResponseTemplates(success=_file_read_success, error=_file_read_error),
    Intent.FILE_WRITE: ResponseTemplates(success=_file_write_success, error=_file_write_error),
    Intent.FILE_EDIT: ResponseTemplates(success=_file_edit_success, error=_file_edit_error),
    Intent.SHELL_COMMAND: SHELL_TEMPLATES,
    Intent.TESTING: SHELL_TEMPLATES,
    Intent.HTTP_REQUEST: ResponseTemplates(success=_http_success, error=_http_error),
    Intent.SEARCH: ResponseTemplates(success=_search_success, error=_search_error),
}


def templates_for(intent: Intent) -> ResponseTemplates:
    return RESPONSE_TEMPLATES.get(intent, DEFAULT_TEMPLATES)


def render_response(
    intent: Intent,
    payload: ToolPayload | None,
    validation: ValidationOutcome,
    plan: Plan,
) -> str:
    """Render the success template iff validation passed, the error template otherwise."""
    templates = templates_for(intent)
    if validation.valid:
        return templates.success(dict(payload or {}), plan)
    return templates.error(validation.merged_with(payload), plan)
