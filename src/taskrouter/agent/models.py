"""Data models used by the workflow orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from taskrouter.routing.models import Classification

ToolPayload = dict[str, object]
TraceRecord = dict[str, object]


class WorkflowState(str, Enum):
    INIT = "init"
    CLASSIFYING = "classifying"
    PLANNING = "planning"
    MODEL_PLAN_ASSIST = "model_plan_assist"
    EXECUTING = "executing"
    VALIDATING = "validating"
    MODEL_FALLBACK = "model_fallback"
    RESPONDING = "responding"
    COMPLETE = "complete"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class StepResult:
    """Outcome of one executed plan step.

    ``result`` holds the tool payload when the executor returned one and
    ``error`` the message when it raised. ``success`` is false in both the
    raised case and when the payload itself reports ``success=False``.
    """

    tool: str
    args: dict[str, object]
    result: ToolPayload | None = None
    error: str | None = None
    success: bool = True

    @classmethod
    def from_payload(
        cls, tool: str, args: dict[str, object], payload: ToolPayload | None
    ) -> StepResult:
        succeeded = payload is not None and payload.get("success") is not False
        return cls(tool=tool, args=args, result=payload, success=succeeded)

    @classmethod
    def from_exception(cls, tool: str, args: dict[str, object], exc: BaseException) -> StepResult:
        return cls(tool=tool, args=args, error=str(exc), success=False)

    def payload(self) -> ToolPayload:
        """Uniform view consumed by validators and response templates."""
        if self.result is not None:
            return dict(self.result)
        return {"success": False, "error": self.error or "no_result"}

    def to_dict(self) -> dict[str, object]:
        return {
            "tool": self.tool,
            "args": self.args,
            "result": self.result,
            "error": self.error,
            "success": self.success,
        }


@dataclass(slots=True)
class ValidationOutcome:
    valid: bool
    reason: str | None = None
    diagnostics: dict[str, object] = field(default_factory=dict)

    def merged_with(self, payload: ToolPayload | None) -> ToolPayload:
        merged: ToolPayload = dict(payload or {})
        merged.update(self.diagnostics)
        merged["valid"] = self.valid
        if self.reason is not None:
            merged["reason"] = self.reason
        return merged


def _rate(count: int, total: int) -> str:
    return f"{count / max(total, 1) * 100:.1f}%"


@dataclass(frozen=True, slots=True)
class MetricsSnapshot:
    total_tasks: int
    deterministic_tasks: int
    model_fallbacks: int
    model_calls_for_planning: int
    model_calls_for_response: int
    errors: int
    by_intent: dict[str, int]
    deterministic_rate: str
    model_fallback_rate: str

    def to_dict(self) -> dict[str, object]:
        return {
            "total_tasks": self.total_tasks,
            "deterministic_tasks": self.deterministic_tasks,
            "model_fallbacks": self.model_fallbacks,
            "model_calls_for_planning": self.model_calls_for_planning,
            "model_calls_for_response": self.model_calls_for_response,
            "errors": self.errors,
            "by_intent": dict(self.by_intent),
            "deterministic_rate": self.deterministic_rate,
            "model_fallback_rate": self.model_fallback_rate,
        }


@dataclass(slots=True)
class Metrics:
    """Mutable counters owned by a single orchestrator instance."""

    total_tasks: int = 0
    deterministic_tasks: int = 0
    model_fallbacks: int = 0
    model_calls_for_planning: int = 0
    model_calls_for_response: int = 0
    errors: int = 0
    by_intent: dict[str, int] = field(default_factory=dict)

    def track_intent(self, intent: str) -> None:
        self.by_intent[intent] = self.by_intent.get(intent, 0) + 1

    def snapshot(self) -> MetricsSnapshot:
        return MetricsSnapshot(
            total_tasks=self.total_tasks,
            deterministic_tasks=self.deterministic_tasks,
            model_fallbacks=self.model_fallbacks,
            model_calls_for_planning=self.model_calls_for_planning,
            model_calls_for_response=self.model_calls_for_response,
            errors=self.errors,
            by_intent=dict(self.by_intent),
            deterministic_rate=_rate(self.deterministic_tasks, self.total_tasks),
            model_fallback_rate=_rate(self.model_fallbacks, self.total_tasks),
        )


@dataclass(slots=True)
class OrchestrationResult:
    """Everything a single ``Orchestrator.process`` call hands back."""

    response: str
    metrics: MetricsSnapshot
    trace: list[TraceRecord]
    deterministic: bool
    classification: Classification | None = None
    results: list[StepResult] | None = None
    error: str | None = None
    model_used: bool = False
    model_used_for_planning: bool = False
