"""Static task-type table and the pattern/keyword scorer."""

from __future__ import annotations

import re

from taskrouter.routing.entities import extract_entities
from taskrouter.routing.models import (
    ExtractedEntities,
    Intent,
    ScoredCandidate,
    TaskTypeDefinition,
    WeightedPattern,
)

PATTERN_WEIGHT = 0.3
KEYWORD_WEIGHT = 0.1


def _patterns(*sources: str) -> tuple[WeightedPattern, ...]:
    return tuple(
        WeightedPattern(re.compile(source, re.IGNORECASE), PATTERN_WEIGHT) for source in sources
    )


TASK_TYPES: tuple[TaskTypeDefinition, ...] = (
    TaskTypeDefinition(
        intent=Intent.FILE_READ,
        patterns=_patterns(
            r"\bread\b.*\bfile\b",
            r"\bshow\b.*\b(contents?|file|code)\b",
            r"\bcat\b\s+\S+",
            r"\bview\b.*\b(file|source|code)\b",
            r"\bopen\b.*\b(file|document)\b",
            r"\bdisplay\b.*\b(file|contents?)\b",
            r"\bwhat('?s| is) in\b.*\b(file|folder|directory)\b",
            r"\blist\b.*\b(files?|directory|folder|dir)\b",
            r"\bls\b\s",
        ),
        keywords=("read", "show", "view", "cat", "display", "contents", "open", "list", "ls", "dir"),
        tools=("read_file", "list_directory"),
        entity_boost=0.1,
    ),
    TaskTypeDefinition(
        intent=Intent.FILE_WRITE,
        patterns=_patterns(
            r"\b(create|write|save|make)\b.*\bfile\b",
            r"\bwrite\b.*\bto\b",
            r"\bsave\b.*\b(as|to)\b",
            r"\bcreate\b.*\b(file|script|module|component)\b",
            r"\bgenerate\b.*\b(file|code|script)\b",
            r"\badd\b.*\bfile\b",
            r"\bnew\b.*\b(file|script)\b",
        ),
        keywords=("create", "write", "save", "generate", "new file", "make file"),
        tools=("create_file",),
        entity_boost=0.1,
    ),
    TaskTypeDefinition(
        intent=Intent.FILE_EDIT,
        patterns=_patterns(
            r"\b(edit|modify|update|change|fix|patch|refactor)\b.*\b(file|code|function|class|line)\b",
            r"\b(edit|fix|modify|update|patch)\b\s+\S+\.\w+",
            r"\b(fix|debug)\b.*\b(bug|issue|error|problem)\b.*\b(in)\b",
            r"\breplace\b.*\b(in|with)\b",
            r"\binsert\b.*\b(into|at|before|after)\b",
            r"\bremove\b.*\b(from|line|function)\b",
            r"\bdelete\b.*\b(line|function|block)\b",
            r"\bappend\b.*\bto\b",
        ),
        keywords=(
            "edit",
            "modify",
            "update",
            "change",
            "fix",
            "refactor",
            "replace",
            "insert",
            "append",
        ),
        tools=("edit_file", "read_file"),
        entity_boost=0.2,
    ),
    TaskTypeDefinition(
        intent=Intent.SHELL_COMMAND,
        patterns=_patterns(
            r"\brun\b.*\b(command|script|npm|node|python|bash|shell)\b",
            r"\bexecute\b",
            r"\binstall\b.*\b(package|dependency|module|npm|pip)\b",
            r"\bnpm\b\s+(install|run|start|test|build|init|publish|audit)",
            r"\bpip\b\s+install",
            r"\bgit\b\s+(clone|pull|push|commit|status|log|diff|branch|checkout)",
            r"\bdocker\b\s+(build|run|compose|pull|push)",
            r"\bcurl\b\s",
            r"\bwget\b\s",
            r"\bchmod\b",
            r"\bmkdir\b",
            r"\bnpx\b\s",
        ),
        keywords=(
            "run",
            "execute",
            "install",
            "npm",
            "pip",
            "git",
            "docker",
            "curl",
            "bash",
            "shell",
            "command",
        ),
        tools=("run_command",),
        entity_boost=0.2,
    ),
    TaskTypeDefinition(
        intent=Intent.HTTP_REQUEST,
        patterns=_patterns(
            r"\b(fetch|get|post|put|delete|patch)\b.*\b(api|endpoint|url|http)",
            r"\bcall\b.*\b(api|endpoint|service)\b",
            r"\brequest\b.*\b(to|from)\b.*\b(api|url|http)",
            r"\bhttps?://",
            r"\bapi\b.*\b(call|request|fetch)\b",
            r"\bwebhook\b",
        ),
        keywords=("fetch", "api", "endpoint", "request", "http", "url", "webhook", "REST"),
        tools=("http_request",),
        entity_boost=0.15,
    ),
    TaskTypeDefinition(
        intent=Intent.CODE_ANALYSIS,
        patterns=_patterns(
            r"\b(analyse|analyze|review|inspect|audit|lint|check)\b.*\b(code|file|function|module|project)\b",
            r"\bfind\b.*\b(bugs?|issues?|errors?|problems?)\b",
            r"\bcode\b.*\b(review|quality|smell)\b",
            r"\bwhat\b.*\b(does|is)\b.*\b(this|the)\b.*\b(code|function|class)\b",
            r"\bexplain\b.*\b(code|function|class|module)\b",
            r"\bdebug\b",
        ),
        keywords=(
            "analyse",
            "review",
            "inspect",
            "audit",
            "lint",
            "debug",
            "explain code",
            "code review",
        ),
        tools=("read_file", "search_files", "run_command"),
        entity_boost=0.05,
    ),
    TaskTypeDefinition(
        intent=Intent.PROJECT_SCAFFOLD,
        patterns=_patterns(
            r"\b(scaffold|bootstrap|initialise|initialize|setup|set up|start)\b.*\b(project|app|application|repo|repository)\b",
            r"\bnew\b.*\b(project|app|application)\b",
            r"\bcreate\b.*\b(project|app|application|repo)\b",
            r"\binit\b",
        ),
        keywords=(
            "scaffold",
            "bootstrap",
            "initialise",
            "setup",
            "new project",
            "create app",
            "init",
        ),
        tools=("run_command", "create_file", "run_command"),
        entity_boost=0.1,
    ),
    TaskTypeDefinition(
        intent=Intent.SEARCH,
        patterns=_patterns(
            r"\b(search|find|grep|look for|locate)\b.*\b(in|for|across)\b",
            r"\bwhere\b.*\b(is|are|does)\b",
            r"\bgrep\b",
            r"\bfind\b.*\b(file|function|class|variable|string|text|pattern)\b",
        ),
        keywords=("search", "find", "grep", "locate", "where is"),
        tools=("search_files", "run_command"),
        entity_boost=0.1,
    ),
    TaskTypeDefinition(
        intent=Intent.TESTING,
        patterns=_patterns(
            r"\b(test|spec|assert|verify|validate)\b",
            r"\brun\b.*\btests?\b",
            r"\bwrite\b.*\b(test|spec)\b",
            r"\bunit\s*test",
            r"\bintegration\s*test",
            r"\bcoverage\b",
        ),
        keywords=("test", "spec", "assert", "verify", "coverage", "unit test", "integration test"),
        tools=("run_command", "create_file", "read_file"),
        entity_boost=0.1,
    ),
    TaskTypeDefinition(
        intent=Intent.DEPLOYMENT,
        patterns=_patterns(
            r"\b(deploy|release|publish|ship|push to)\b.*\b(production|staging|server|cloud|npm|docker)\b",
            r"\bbuild\b.*\b(for|and)\b.*\b(production|deploy)",
            r"\bci/?cd\b",
            r"\bpipeline\b",
        ),
        keywords=(
            "deploy",
            "release",
            "publish",
            "ship",
            "production",
            "staging",
            "CI/CD",
            "pipeline",
        ),
        tools=("run_command", "create_file"),
        entity_boost=0.1,
    ),
)

# Entity category -> intents that receive the definition's entity_boost.
FILE_PATH_BOOSTED = frozenset(
    {Intent.FILE_READ, Intent.FILE_WRITE, Intent.FILE_EDIT, Intent.CODE_ANALYSIS}
)
URL_BOOSTED = frozenset({Intent.HTTP_REQUEST})
GIT_OP_BOOSTED = frozenset({Intent.SHELL_COMMAND})
PACKAGE_BOOSTED = frozenset({Intent.SHELL_COMMAND})


def _entity_boosts(definition: TaskTypeDefinition, entities: ExtractedEntities) -> list[float]:
    boosts: list[float] = []
    for populated, boosted in (
        (entities.file_paths, FILE_PATH_BOOSTED),
        (entities.urls, URL_BOOSTED),
        (entities.git_ops, GIT_OP_BOOSTED),
        (entities.packages, PACKAGE_BOOSTED),
    ):
        if populated and definition.intent in boosted:
            boosts.append(definition.entity_boost)
    return boosts


def score_task_types(
    text: str,
    task_types: tuple[TaskTypeDefinition, ...] = TASK_TYPES,
) -> list[ScoredCandidate]:
    """Score ``text`` against every task type.

    Returns only candidates with a positive score, sorted by confidence with
    ties kept in table order.
    """
    lowered = text.lower()
    entities = extract_entities(text)
    candidates: list[ScoredCandidate] = []

    for definition in task_types:
        score = 0.0
        matched_patterns = 0
        matched_keywords = 0

        for pattern in definition.patterns:
            if pattern.matches(text):
                score += pattern.weight
                matched_patterns += 1

        for keyword in definition.keywords:
            if keyword.lower() in lowered:
                score += KEYWORD_WEIGHT
                matched_keywords += 1

        for boost in _entity_boosts(definition, entities):
            score += boost
        confidence = min(score, 1.0)
        if confidence > 0:
            candidates.append(
                ScoredCandidate(
                    intent=definition.intent,
                    confidence=confidence,
                    matched_pattern_count=matched_patterns,
                    matched_keyword_count=matched_keywords,
                    tools=definition.tools,
                    entities=entities,
                )
            )

    return sorted(candidates, key=lambda candidate: candidate.confidence, reverse=True)
