from __future__ import annotations

import re

import pytest

from taskrouter.routing import (
    TASK_TYPES,
    ClassificationReason,
    Intent,
    TaskTypeDefinition,
    classify,
    score_task_types,
)
from taskrouter.routing.benchmark import BENCHMARK_CASES
from taskrouter.routing.models import WeightedPattern


def _definition(intent: Intent, *patterns: str, keywords: tuple[str, ...] = ()) -> TaskTypeDefinition:
    return TaskTypeDefinition(
        intent=intent,
        patterns=tuple(WeightedPattern(re.compile(p, re.IGNORECASE)) for p in patterns),
        keywords=keywords,
        tools=("run_command",),
        entity_boost=0.1,
    )


def test_task_table_covers_every_intent_except_unknown() -> None:
    intents = {definition.intent for definition in TASK_TYPES}

    assert intents == set(Intent) - {Intent.UNKNOWN}


def test_score_combines_patterns_keywords_and_entity_boost() -> None:
    candidates = score_task_types("read file src/agent.js")

    top = candidates[0]
    assert top.intent is Intent.FILE_READ
    assert top.confidence == pytest.approx(0.5)
    assert top.matched_pattern_count == 1
    assert top.matched_keyword_count == 1
    by_intent = {candidate.intent: candidate.confidence for candidate in candidates}
    assert by_intent[Intent.FILE_EDIT] == pytest.approx(0.2)
    assert by_intent[Intent.CODE_ANALYSIS] == pytest.approx(0.05)


def test_score_is_clamped_to_one() -> None:
    definition = _definition(Intent.SEARCH, "a", "b", "c", "d", keywords=("a", "b"))

    candidates = score_task_types("a b c d", (definition,))

    assert candidates[0].confidence == 1.0


def test_score_drops_zero_candidates_and_keeps_ties_in_table_order() -> None:
    table = (
        _definition(Intent.SHELL_COMMAND, r"\bnpm\b"),
        _definition(Intent.TESTING, r"\btest\b"),
        _definition(Intent.DEPLOYMENT, r"\bdeploy\b"),
    )

    candidates = score_task_types("npm test", table)

    assert [candidate.intent for candidate in candidates] == [Intent.SHELL_COMMAND, Intent.TESTING]


def test_scoring_is_pure() -> None:
    first = score_task_types("curl https://api.example.com/data")
    second = score_task_types("curl https://api.example.com/data")

    assert [(c.intent, c.confidence) for c in first] == [(c.intent, c.confidence) for c in second]


def test_candidates_are_sorted_descending() -> None:
    candidates = score_task_types("fix the bug in src/tools.js")

    confidences = [candidate.confidence for candidate in candidates]
    assert confidences == sorted(confidences, reverse=True)


@pytest.mark.parametrize(
    ("text", "intent", "confidence"),
    [
        ("read file src/agent.js", Intent.FILE_READ, 0.5),
        ("git status", Intent.SHELL_COMMAND, 0.6),
        ("cat package.json", Intent.FILE_READ, 0.5),
        ("curl https://api.example.com/data", Intent.HTTP_REQUEST, 0.75),
        ('search for "TODO" in src/', Intent.SEARCH, 0.4),
        ("run the tests", Intent.TESTING, 0.4),
        ("debug", Intent.CODE_ANALYSIS, 0.4),
    ],
)
def test_deterministic_matches(text: str, intent: Intent, confidence: float) -> None:
    classification = classify(text)

    assert classification.intent is intent
    assert classification.confidence == pytest.approx(confidence)
    assert classification.needs_model is False
    assert classification.reason is ClassificationReason.DETERMINISTIC_MATCH


def test_no_pattern_match_is_unknown() -> None:
    classification = classify("hello there")

    assert classification.intent is Intent.UNKNOWN
    assert classification.confidence == 0.0
    assert classification.needs_model is True
    assert classification.reason is ClassificationReason.NO_PATTERN_MATCH
    assert classification.tools == ()
    assert classification.top_candidates == []


def test_low_confidence_keeps_top_intent() -> None:
    classification = classify("please lint")

    assert classification.intent is Intent.CODE_ANALYSIS
    assert classification.confidence == pytest.approx(0.1)
    assert classification.needs_model is True
    assert classification.reason is ClassificationReason.LOW_CONFIDENCE


def test_tied_top_scores_are_ambiguous() -> None:
    classification = classify("npm test")

    assert classification.intent is Intent.SHELL_COMMAND
    assert classification.needs_model is True
    assert classification.reason is ClassificationReason.AMBIGUOUS_TOP_SCORES
    assert [c.intent for c in classification.top_candidates[:2]] == [
        Intent.SHELL_COMMAND,
        Intent.TESTING,
    ]


def test_threshold_is_configurable() -> None:
    assert classify("debug", threshold=0.5).reason is ClassificationReason.LOW_CONFIDENCE
    assert classify("please lint", threshold=0.05).needs_model is False


def test_confidence_bounds_and_deterministic_invariant() -> None:
    for case in BENCHMARK_CASES:
        classification = classify(case.input)

        assert 0.0 <= classification.confidence <= 1.0
        if not classification.needs_model:
            assert classification.reason is ClassificationReason.DETERMINISTIC_MATCH
            assert classification.confidence >= 0.4


def test_top_candidates_are_capped_at_three() -> None:
    classification = classify("read file src/agent.js")

    assert len(classification.top_candidates) <= 3
    assert classification.top_candidates[0].intent is Intent.FILE_READ
    assert classification.tools == ("read_file", "list_directory")
    assert classification.entities.file_paths == ["src/agent.js"]
