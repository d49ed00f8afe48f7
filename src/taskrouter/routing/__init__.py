"""Deterministic intent routing: extraction, scoring, classification and planning."""

from .classifier import DEFAULT_CONFIDENCE_THRESHOLD, classify
from .entities import extract_entities
from .models import (
    Classification,
    ClassificationReason,
    ExtractedEntities,
    GitOperation,
    Intent,
    Plan,
    PlanStep,
    ScoredCandidate,
    TaskTypeDefinition,
)
from .planner import plan_from_intent
from .scoring import TASK_TYPES, score_task_types

__all__ = [
    "DEFAULT_CONFIDENCE_THRESHOLD",
    "TASK_TYPES",
    "Classification",
    "ClassificationReason",
    "ExtractedEntities",
    "GitOperation",
    "Intent",
    "Plan",
    "PlanStep",
    "ScoredCandidate",
    "TaskTypeDefinition",
    "classify",
    "extract_entities",
    "plan_from_intent",
    "score_task_types",
]
