"""Confidence-threshold classification on top of the scorer."""

from __future__ import annotations

from taskrouter.routing.entities import extract_entities
from taskrouter.routing.models import Classification, ClassificationReason, Intent
from taskrouter.routing.scoring import score_task_types

DEFAULT_CONFIDENCE_THRESHOLD = 0.4
AMBIGUITY_MARGIN = 0.1
TOP_CANDIDATE_LIMIT = 3


def classify(text: str, threshold: float = DEFAULT_CONFIDENCE_THRESHOLD) -> Classification:
    """Decide the intent of ``text`` and whether a model is needed to act on it."""
    candidates = score_task_types(text)
    if not candidates:
        return Classification(
            intent=Intent.UNKNOWN,
            confidence=0.0,
            needs_model=True,
            reason=ClassificationReason.NO_PATTERN_MATCH,
            tools=(),
            entities=extract_entities(text),
            top_candidates=[],
        )

    top = candidates[0]
    if top.confidence < threshold:
        needs_model = True
        reason = ClassificationReason.LOW_CONFIDENCE
    elif len(candidates) > 1 and top.confidence - candidates[1].confidence < AMBIGUITY_MARGIN:
        needs_model = True
        reason = ClassificationReason.AMBIGUOUS_TOP_SCORES
    else:
        needs_model = False
        reason = ClassificationReason.DETERMINISTIC_MATCH

    return Classification(
        intent=top.intent,
        confidence=top.confidence,
        needs_model=needs_model,
        reason=reason,
        tools=top.tools,
        entities=top.entities,
        top_candidates=candidates[:TOP_CANDIDATE_LIMIT],
    )
