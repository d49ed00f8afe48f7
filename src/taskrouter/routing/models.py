"""Data models shared by the extractor, scorer, classifier and planner."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum


class Intent(str, Enum):
    """Closed set of task categories the router understands."""

    FILE_READ = "file_read"
    FILE_WRITE = "file_write"
    FILE_EDIT = "file_edit"
    SHELL_COMMAND = "shell_command"
    HTTP_REQUEST = "http_request"
    CODE_ANALYSIS = "code_analysis"
    PROJECT_SCAFFOLD = "project_scaffold"
    SEARCH = "search"
    TESTING = "testing"
    DEPLOYMENT = "deployment"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


class ClassificationReason(str, Enum):
    NO_PATTERN_MATCH = "no_pattern_match"
    DETERMINISTIC_MATCH = "deterministic_match"
    AMBIGUOUS_TOP_SCORES = "ambiguous_top_scores"
    LOW_CONFIDENCE = "low_confidence"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class WeightedPattern:
    """A compiled matcher and the score it contributes when it matches."""

    regex: re.Pattern[str]
    weight: float = 0.3

    def matches(self, text: str) -> bool:
        return self.regex.search(text) is not None


@dataclass(frozen=True, slots=True)
class TaskTypeDefinition:
    """Static scoring rules for a single intent."""

    intent: Intent
    patterns: tuple[WeightedPattern, ...]
    keywords: tuple[str, ...]
    tools: tuple[str, ...]
    entity_boost: float


@dataclass(frozen=True, slots=True)
class GitOperation:
    operation: str
    args: str = ""


@dataclass(slots=True)
class ExtractedEntities:
    """Structured fragments pulled out of a raw request."""

    file_paths: list[str] = field(default_factory=list)
    urls: list[str] = field(default_factory=list)
    packages: list[str] = field(default_factory=list)
    git_ops: list[GitOperation] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "file_paths": list(self.file_paths),
            "urls": list(self.urls),
            "packages": list(self.packages),
            "git_ops": [
                {"operation": op.operation, "args": op.args} for op in self.git_ops
            ],
        }


@dataclass(slots=True)
class ScoredCandidate:
    intent: Intent
    confidence: float
    matched_pattern_count: int
    matched_keyword_count: int
    tools: tuple[str, ...]
    entities: ExtractedEntities


@dataclass(slots=True)
class Classification:
    """Routing decision for one request."""

    intent: Intent
    confidence: float
    needs_model: bool
    reason: ClassificationReason
    tools: tuple[str, ...] = ()
    entities: ExtractedEntities = field(default_factory=ExtractedEntities)
    top_candidates: list[ScoredCandidate] = field(default_factory=list)


@dataclass(slots=True)
class PlanStep:
    """A single tool invocation; ``None`` args are placeholders left for a model."""

    tool: str
    args: dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {"tool": self.tool, "args": dict(self.args)}


@dataclass(slots=True)
class Plan:
    intent: Intent
    steps: list[PlanStep] = field(default_factory=list)
    requires_model_for_planning: bool = False

    def first_arg(self, name: str) -> object | None:
        if not self.steps:
            return None
        return self.steps[0].args.get(name)
