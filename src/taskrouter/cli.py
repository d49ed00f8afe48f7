"""Command-line interface for taskrouter."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import cast

from .agent.models import MetricsSnapshot, TraceRecord
from .agent.orchestrator import Orchestrator
from .config import AppConfig
from .llm.client import ModelAdapter, create_model_adapter
from .routing.benchmark import BenchmarkReport, run_benchmark
from .routing.classifier import classify
from .routing.models import Classification
from .routing.planner import plan_from_intent
from .tools.executor import ToolExecutor

LOGGER = logging.getLogger(__name__)

EXIT_COMMANDS = {"/quit", "/exit", "exit", "quit"}


class CLIArgs(argparse.Namespace):
    goal: str | None
    provider: str | None
    working_directory: str | None
    analyse: str | None
    benchmark: bool
    verbose: bool


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskrouter", description="Deterministic-first task router")
    parser.add_argument(
        "--provider",
        help="Model provider for fallback and plan assist (ollama, openai-compatible, claude)",
    )
    parser.add_argument(
        "--cwd",
        dest="working_directory",
        help=(
            "Override the working directory for tool execution. "
            "Takes precedence over config/env cwd values."
        ),
    )
    parser.add_argument(
        "--analyse",
        "--analyze",
        dest="analyse",
        metavar="TEXT",
        help="Print the classification and plan for TEXT without executing anything",
    )
    parser.add_argument(
        "--benchmark",
        action="store_true",
        help="Run the built-in classifier benchmark",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Print the workflow trace")
    parser.add_argument("goal", nargs="?", help="Task to route and execute")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = cast(CLIArgs, parser.parse_args(argv))
    config = AppConfig.from_env()
    logging.basicConfig(level=getattr(logging, config.log_level.upper(), logging.INFO))

    if args.benchmark:
        report = run_benchmark(config.confidence_threshold)
        print(format_benchmark(report))
        return 0

    if args.analyse is not None:
        classification = classify(args.analyse, config.confidence_threshold)
        print(format_classification(classification, args.analyse))
        return 0

    configured_working_directory = (
        args.working_directory if args.working_directory is not None else config.working_directory
    )
    if configured_working_directory is not None:
        resolved_working_directory = Path(configured_working_directory).expanduser().resolve()
        if not resolved_working_directory.exists() or not resolved_working_directory.is_dir():
            print(f"Invalid configured cwd directory: {configured_working_directory}")
            return 1
        config.working_directory = str(resolved_working_directory)

    model = _build_model(config, args.provider)
    executor = ToolExecutor(config)
    orchestrator = Orchestrator(
        execute_tool=executor.execute,
        model=model,
        confidence_threshold=config.confidence_threshold,
        max_retries=config.max_retries,
        log_dir=config.log_dir,
    )

    if args.goal:
        result = asyncio.run(orchestrator.process(args.goal))
        print(result.response)
        if args.verbose:
            print(format_trace(result.trace))
        return 1 if result.error else 0

    return _run_repl(orchestrator, config, verbose=args.verbose)


def _build_model(config: AppConfig, provider: str | None) -> ModelAdapter | None:
    if not (provider or config.provider):
        return None
    try:
        model = create_model_adapter(config, provider)
    except ValueError as exc:
        print(f"{exc}. Continuing in deterministic-only mode.")
        return None
    LOGGER.debug("model_adapter_selected", extra={"provider": provider or config.provider})
    return model


def _run_repl(orchestrator: Orchestrator, config: AppConfig, *, verbose: bool) -> int:
    mode = "model fallback enabled" if orchestrator.model is not None else "deterministic only"
    print(f"taskrouter ({mode}). Commands: /metrics, /trace, /classify <text>, /quit")
    last_trace: list[TraceRecord] = []

    while True:
        try:
            line = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break
        if not line:
            continue
        if line in EXIT_COMMANDS:
            break
        if line == "/metrics":
            print(format_metrics(orchestrator.metrics.snapshot()))
            continue
        if line == "/trace":
            print(format_trace(last_trace) if last_trace else "No trace yet.")
            continue
        if line.startswith("/classify"):
            text = line[len("/classify") :].strip()
            if not text:
                print("Usage: /classify <text>")
                continue
            print(format_classification(classify(text, config.confidence_threshold), text))
            continue

        result = asyncio.run(orchestrator.process(line))
        last_trace = result.trace
        print(result.response)
        if verbose:
            print(format_trace(result.trace))

    print(format_metrics(orchestrator.metrics.snapshot()))
    return 0


def format_classification(classification: Classification, text: str) -> str:
    plan = plan_from_intent(classification, text)
    lines = [
        f"Input:      {text}",
        f"Intent:     {classification.intent.value}",
        f"Confidence: {classification.confidence:.2f}",
        f"Reason:     {classification.reason.value}",
        f"Needs model: {'yes' if classification.needs_model else 'no'}",
    ]
    if classification.tools:
        lines.append(f"Tools:      {', '.join(classification.tools)}")
    entities = {key: value for key, value in classification.entities.to_dict().items() if value}
    if entities:
        lines.append(f"Entities:   {json.dumps(entities)}")
    if classification.top_candidates:
        lines.append("Candidates:")
        lines.extend(
            f"  - {candidate.intent.value}: {candidate.confidence:.2f}"
            for candidate in classification.top_candidates
        )
    if not classification.needs_model:
        lines.append(f"Plan (requires model: {'yes' if plan.requires_model_for_planning else 'no'}):")
        lines.extend(f"  - {step.tool} {json.dumps(step.args)}" for step in plan.steps)
    return "\n".join(lines)


def format_metrics(snapshot: MetricsSnapshot) -> str:
    return "\n".join(
        [
            "=== ROUTER METRICS ===",
            f"Total tasks:      {snapshot.total_tasks}",
            f"Deterministic:    {snapshot.deterministic_tasks} ({snapshot.deterministic_rate})",
            f"Model fallbacks:  {snapshot.model_fallbacks} ({snapshot.model_fallback_rate})",
            f"  for planning:   {snapshot.model_calls_for_planning}",
            f"  for response:   {snapshot.model_calls_for_response}",
            f"Errors:           {snapshot.errors}",
            f"By intent:        {json.dumps(snapshot.by_intent, sort_keys=True)}",
            "======================",
        ]
    )


def format_trace(trace: list[TraceRecord]) -> str:
    lines = ["[trace]"]
    for record in trace:
        details = ", ".join(f"{key}={value}" for key, value in record.items() if key != "state")
        lines.append(f"  {record['state']}" + (f": {details}" if details else ""))
    return "\n".join(lines)


def format_benchmark(report: BenchmarkReport) -> str:
    lines = ["=== CLASSIFIER BENCHMARK ==="]
    for outcome in report.outcomes:
        status = "PASS" if outcome.passed else "FAIL"
        expected = outcome.case.intent.value if outcome.case.intent else "-"
        lines.append(
            f"[{status}] {outcome.case.input!r}: "
            f"{outcome.classification.intent.value} "
            f"({outcome.classification.confidence:.2f}, {outcome.classification.reason.value}) "
            f"expected {expected}"
        )
    lines.append(
        f"Passed {report.passed}/{len(report.outcomes)} ({report.pass_rate:.1f}%), "
        f"deterministic accuracy {report.deterministic_passed}/{report.deterministic_cases}"
    )
    return "\n".join(lines)


if __name__ == "__main__":
    raise SystemExit(main())
