"""Deterministic-first workflow orchestrator.

One ``process`` call walks classify -> plan -> (model plan assist) -> execute
-> validate -> respond. A model is consulted only when the classifier finds
no pattern at all or the planner cannot fill a plan on its own.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from pathlib import Path

from taskrouter.agent.models import (
    Metrics,
    OrchestrationResult,
    StepResult,
    TraceRecord,
    WorkflowState,
)
from taskrouter.agent.responses import render_response, validator_for
from taskrouter.llm.client import ModelAdapter
from taskrouter.routing.classifier import DEFAULT_CONFIDENCE_THRESHOLD, classify
from taskrouter.routing.models import Classification, ClassificationReason, Intent, Plan, PlanStep
from taskrouter.routing.planner import plan_from_intent
from taskrouter.tools.executor import TOOL_DEFINITIONS

ExecuteTool = Callable[[str, dict[str, object]], Awaitable[dict[str, object]]]

LOGGER = logging.getLogger(__name__)

ENABLE_MODEL_HINT = "--provider ollama or --provider claude"


class Orchestrator:
    """State machine that drives one request through the routing pipeline."""

    def __init__(
        self,
        *,
        execute_tool: ExecuteTool,
        model: ModelAdapter | None = None,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        max_retries: int = 2,
        log_dir: str | Path | None = None,
    ) -> None:
        self.execute_tool = execute_tool
        self.model = model
        self.confidence_threshold = confidence_threshold
        # Failed steps are never retried.
        self.max_retries = max_retries
        self.log_dir = Path(log_dir) if log_dir is not None else None
        self.metrics = Metrics()
        LOGGER.debug(
            "orchestrator_configured",
            extra={
                "confidence_threshold": confidence_threshold,
                "max_retries": max_retries,
                "model_enabled": model is not None,
            },
        )

    async def process(self, text: str) -> OrchestrationResult:
        self.metrics.total_tasks += 1
        trace: list[TraceRecord] = []
        state = WorkflowState.INIT
        intent_tracked = False

        try:
            state = WorkflowState.CLASSIFYING
            classification = classify(text, self.confidence_threshold)
            self._append_trace(
                trace,
                state,
                intent=classification.intent.value,
                confidence=classification.confidence,
                needs_model=classification.needs_model,
                reason=classification.reason.value,
            )
            self.metrics.track_intent(classification.intent.value)
            intent_tracked = True
            LOGGER.info(
                "task_classified",
                extra={
                    "intent": classification.intent.value,
                    "confidence": classification.confidence,
                    "reason": classification.reason.value,
                },
            )

            if (
                classification.needs_model
                and classification.reason is ClassificationReason.NO_PATTERN_MATCH
            ):
                state = WorkflowState.MODEL_FALLBACK
                return await self._model_fallback(text, classification, trace)

            state = WorkflowState.PLANNING
            plan = plan_from_intent(classification, text)
            self._append_trace(
                trace,
                state,
                steps=len(plan.steps),
                requires_model=plan.requires_model_for_planning,
            )

            model_assisted = False
            if plan.requires_model_for_planning:
                if self.model is None:
                    self.metrics.model_fallbacks += 1
                    return self._finish(
                        text,
                        OrchestrationResult(
                            response=(
                                f'I identified this as a "{classification.intent.value}" task, '
                                "but I need a model to complete the planning. "
                                f"Run with {ENABLE_MODEL_HINT} to enable model-assisted planning."
                            ),
                            metrics=self.metrics.snapshot(),
                            trace=trace,
                            deterministic=False,
                            classification=classification,
                        ),
                    )

                state = WorkflowState.MODEL_PLAN_ASSIST
                self.metrics.model_calls_for_planning += 1
                plan = await self._model_assist_plan(self.model, text, classification, plan)
                self._append_trace(trace, state, model_steps=len(plan.steps))
                model_assisted = True

            state = WorkflowState.EXECUTING
            results = await self._execute_plan(plan)
            self._append_trace(
                trace,
                state,
                steps_executed=len(results),
                successes=sum(1 for result in results if result.success),
                model_assisted=model_assisted,
            )

            state = WorkflowState.VALIDATING
            payload = results[-1].payload() if results else None
            validation = validator_for(classification.intent)(payload)
            self._append_trace(trace, state, valid=validation.valid, reason=validation.reason)

            state = WorkflowState.RESPONDING
            response = render_response(classification.intent, payload, validation, plan)
            self._append_trace(trace, state, template=classification.intent.value)

            if model_assisted:
                self.metrics.model_fallbacks += 1
            else:
                self.metrics.deterministic_tasks += 1
            state = WorkflowState.COMPLETE
            self._append_trace(trace, state)

            return self._finish(
                text,
                OrchestrationResult(
                    response=response,
                    metrics=self.metrics.snapshot(),
                    trace=trace,
                    deterministic=not model_assisted,
                    classification=classification,
                    results=results,
                    model_used_for_planning=model_assisted,
                ),
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("orchestrator_error", extra={"state": state.value})
            if not intent_tracked:
                self.metrics.track_intent(Intent.UNKNOWN.value)
            self.metrics.errors += 1
            self._append_trace(trace, WorkflowState.ERROR, failed_state=state.value, error=str(exc))
            return self._finish(
                text,
                OrchestrationResult(
                    response=f"Error in {state.value}: {exc}",
                    metrics=self.metrics.snapshot(),
                    trace=trace,
                    deterministic=False,
                    error=str(exc),
                ),
            )

    async def _model_fallback(
        self,
        text: str,
        classification: Classification,
        trace: list[TraceRecord],
    ) -> OrchestrationResult:
        self._append_trace(
            trace,
            WorkflowState.MODEL_FALLBACK,
            reason="classifier_no_match",
            model_available=self.model is not None,
        )
        if self.model is None:
            self.metrics.model_fallbacks += 1
            return self._finish(
                text,
                OrchestrationResult(
                    response=(
                        "I couldn't classify this task deterministically "
                        f"(confidence: {classification.confidence:.2f}). "
                        f"Enable a model provider ({ENABLE_MODEL_HINT}) for general-purpose tasks."
                    ),
                    metrics=self.metrics.snapshot(),
                    trace=trace,
                    deterministic=False,
                    classification=classification,
                ),
            )

        answer = await self.model.run_general(text)
        self.metrics.model_calls_for_response += 1
        self.metrics.model_fallbacks += 1
        return self._finish(
            text,
            OrchestrationResult(
                response=answer.response,
                metrics=self.metrics.snapshot(),
                trace=trace,
                deterministic=False,
                classification=classification,
                model_used=True,
            ),
        )

    async def _model_assist_plan(
        self,
        model: ModelAdapter,
        text: str,
        classification: Classification,
        partial_plan: Plan,
    ) -> Plan:
        """Ask the model to complete ``partial_plan``; keep it unchanged on any failure."""
        system_prompt = build_planning_prompt(classification, partial_plan)
        try:
            response = await model.complete(system_prompt, text)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning(
                "model_plan_assist_failed",
                extra={"intent": classification.intent.value, "error": str(exc)},
            )
            return partial_plan

        steps = parse_plan_steps(response)
        if steps is None:
            LOGGER.warning(
                "model_plan_assist_unparseable",
                extra={"intent": classification.intent.value, "response_chars": len(response)},
            )
            return partial_plan
        return Plan(intent=partial_plan.intent, steps=steps, requires_model_for_planning=False)

    async def _execute_plan(self, plan: Plan) -> list[StepResult]:
        results: list[StepResult] = []
        for step in plan.steps:
            try:
                payload = await self.execute_tool(step.tool, step.args)
            except Exception as exc:  # noqa: BLE001
                LOGGER.warning("tool_step_failed", extra={"tool": step.tool, "error": str(exc)})
                results.append(StepResult.from_exception(step.tool, step.args, exc))
                continue
            if payload is not None and not isinstance(payload, dict):
                payload = {"output": payload}
            results.append(StepResult.from_payload(step.tool, step.args, payload))
        return results

    @staticmethod
    def _append_trace(
        trace: list[TraceRecord],
        state: WorkflowState,
        **fields: object,
    ) -> None:
        trace.append({"state": state.value, **fields})

    def _finish(self, text: str, result: OrchestrationResult) -> OrchestrationResult:
        if self.log_dir is not None:
            try:
                self._append_log(self.log_dir, text, result)
            except OSError as exc:
                LOGGER.warning(
                    "session_log_write_failed",
                    extra={"log_dir": str(self.log_dir), "error": str(exc)},
                )
        return result

    @staticmethod
    def _append_log(log_dir: Path, text: str, result: OrchestrationResult) -> None:
        log_dir.mkdir(parents=True, exist_ok=True)
        day_file = log_dir / f"session-{datetime.now(timezone.utc).date().isoformat()}.log"
        classification = result.classification
        entry = {
            "log_version": 1,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "input": text,
            "intent": classification.intent.value if classification else None,
            "confidence": classification.confidence if classification else None,
            "reason": classification.reason.value if classification else None,
            "deterministic": result.deterministic,
            "model_used": result.model_used,
            "model_used_for_planning": result.model_used_for_planning,
            "response": result.response,
            "trace": result.trace,
            "results": [step.to_dict() for step in result.results or []],
            "metrics": result.metrics.to_dict(),
            "error": result.error,
        }
        with day_file.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry, default=str) + "\n")


def build_planning_prompt(classification: Classification, partial_plan: Plan) -> str:
    tool_lines = [
        TOOL_DEFINITIONS[name].signature() if name in TOOL_DEFINITIONS else name
        for name in dict.fromkeys(classification.tools)
    ]
    partial_steps = json.dumps([step.to_dict() for step in partial_plan.steps])
    return "\n".join(
        [
            "You are a task planner. Given the user's request and a partial plan,"
            " fill in the missing details.",
            f"The task type is: {classification.intent.value}",
            f"Available tools: {', '.join(tool_lines)}",
            f"Partial plan steps: {partial_steps}",
            "Arguments set to null must be filled in.",
            "",
            "Respond with ONLY a JSON object containing the complete plan:",
            '{"steps": [{"tool": "tool_name", "args": {}}]}',
        ]
    )


def parse_plan_steps(response: str) -> list[PlanStep] | None:
    """Return the steps of the first well-formed JSON object in ``response``."""
    decoder = json.JSONDecoder()
    index = response.find("{")
    while index != -1:
        try:
            parsed, _end = decoder.raw_decode(response, index)
        except json.JSONDecodeError:
            index = response.find("{", index + 1)
            continue
        return _coerce_steps(parsed)
    return None


def _coerce_steps(parsed: object) -> list[PlanStep] | None:
    if not isinstance(parsed, dict) or not isinstance(parsed.get("steps"), list):
        return None
    steps: list[PlanStep] = []
    for raw_step in parsed["steps"]:
        if not isinstance(raw_step, dict) or not isinstance(raw_step.get("tool"), str):
            return None
        args = raw_step.get("args", {})
        if not isinstance(args, dict):
            return None
        steps.append(PlanStep(tool=raw_step["tool"], args={str(k): v for k, v in args.items()}))
    return steps
