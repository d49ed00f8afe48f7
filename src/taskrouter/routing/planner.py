"""Deterministic decision tree turning a classification into tool calls."""

from __future__ import annotations

import re
from collections.abc import Callable

from taskrouter.routing.models import Classification, Intent, Plan, PlanStep

_HTTP_METHOD_PATTERN = re.compile(r"\b(post|put|patch|delete)\b", re.IGNORECASE)
_SEARCH_TERM_PATTERN = re.compile(
    r"(?:search|find|grep|look for|locate)\s+(?:for\s+)?[\"']?(.+?)[\"']?\s+(?:in|across|within)",
    re.IGNORECASE,
)
_RUN_TESTS_PATTERN = re.compile(r"\brun\b.*\btests?\b", re.IGNORECASE)
_NPM_PATTERN = re.compile(r"npm", re.IGNORECASE)

PlanBuilder = Callable[[Plan, Classification, str], None]


def _plan_file_read(plan: Plan, classification: Classification, _text: str) -> None:
    paths = classification.entities.file_paths
    if paths:
        plan.steps.append(PlanStep("read_file", {"path": paths[0]}))
        return
    # Listing is a hint for the model, which still has to pick the file.
    plan.steps.append(PlanStep("list_directory", {"path": "."}))
    plan.requires_model_for_planning = True


def _plan_file_write(plan: Plan, classification: Classification, _text: str) -> None:
    paths = classification.entities.file_paths
    if paths:
        plan.steps.append(PlanStep("create_file", {"path": paths[0], "content": None}))
    plan.requires_model_for_planning = True


def _plan_file_edit(plan: Plan, classification: Classification, _text: str) -> None:
    paths = classification.entities.file_paths
    if paths:
        plan.steps.append(PlanStep("read_file", {"path": paths[0]}))
        plan.steps.append(PlanStep("edit_file", {"path": paths[0], "edits": None}))
    plan.requires_model_for_planning = True


def _plan_shell_command(plan: Plan, classification: Classification, text: str) -> None:
    entities = classification.entities
    if entities.git_ops:
        op = entities.git_ops[0]
        command = f"git {op.operation} {op.args}" if op.args else f"git {op.operation}"
        plan.steps.append(PlanStep("run_command", {"command": command}))
    elif entities.packages:
        installer = "npm" if _NPM_PATTERN.search(text) else "pip"
        command = f"{installer} install {' '.join(entities.packages)}"
        plan.steps.append(PlanStep("run_command", {"command": command}))
    else:
        plan.requires_model_for_planning = True


def _plan_http_request(plan: Plan, classification: Classification, text: str) -> None:
    urls = classification.entities.urls
    if not urls:
        plan.requires_model_for_planning = True
        return
    method_match = _HTTP_METHOD_PATTERN.search(text)
    method = method_match.group(1).upper() if method_match else "GET"
    plan.steps.append(
        PlanStep(
            "http_request",
            {"url": urls[0], "method": method, "body": None, "headers": {}},
        )
    )


def _plan_search(plan: Plan, classification: Classification, text: str) -> None:
    paths = classification.entities.file_paths
    target = paths[0] if paths else "."
    term = _SEARCH_TERM_PATTERN.search(text)
    if term:
        plan.steps.append(
            PlanStep("search_files", {"path": target, "pattern": term.group(1).strip()})
        )
    else:
        plan.requires_model_for_planning = True


def _plan_testing(plan: Plan, _classification: Classification, text: str) -> None:
    if _RUN_TESTS_PATTERN.search(text):
        plan.steps.append(PlanStep("run_command", {"command": "npm test"}))
    else:
        plan.requires_model_for_planning = True


def _plan_requires_model(plan: Plan, _classification: Classification, _text: str) -> None:
    plan.requires_model_for_planning = True


PLAN_BUILDERS: dict[Intent, PlanBuilder] = {
    Intent.FILE_READ: _plan_file_read,
    Intent.FILE_WRITE: _plan_file_write,
    Intent.FILE_EDIT: _plan_file_edit,
    Intent.SHELL_COMMAND: _plan_shell_command,
    Intent.HTTP_REQUEST: _plan_http_request,
    Intent.SEARCH: _plan_search,
    Intent.TESTING: _plan_testing,
}


def plan_from_intent(classification: Classification, text: str) -> Plan:
    """Build the ordered tool calls for ``classification``.

    Arguments the planner cannot fill are left as ``None`` and the plan is
    flagged with ``requires_model_for_planning`` so a model can complete it.
    """
    plan = Plan(intent=classification.intent)
    builder = PLAN_BUILDERS.get(classification.intent, _plan_requires_model)
    builder(plan, classification, text)
    return plan
