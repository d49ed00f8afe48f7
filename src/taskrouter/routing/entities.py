"""Deterministic extraction of paths, URLs, packages and git operations."""

from __future__ import annotations

import re

from taskrouter.routing.models import ExtractedEntities, GitOperation

GIT_SUBCOMMANDS = (
    "clone",
    "pull",
    "push",
    "commit",
    "status",
    "log",
    "diff",
    "branch",
    "checkout",
    "merge",
    "rebase",
    "stash",
    "tag",
)

_RELATIVE_PATH_PATTERN = re.compile(r"(?:^|\s)((?:\.{0,2}/)?(?:[\w.-]+/)*[\w.-]+\.\w+)(?:\s|$)")
_ABSOLUTE_PATH_PATTERN = re.compile(r"(?:^|\s)(/(?:[\w.-]+/)*[\w.-]+)(?:\s|$)")
_URL_PATTERN = re.compile(r"https?://\S+", re.IGNORECASE)
_NPM_INSTALL_PATTERN = re.compile(r"npm\s+install\s+([\w@/.-]+(?:\s+[\w@/.-]+)*)", re.IGNORECASE)
_PIP_INSTALL_PATTERN = re.compile(r"pip\s+install\s+([\w.-]+(?:\s+[\w.-]+)*)", re.IGNORECASE)
_GIT_PATTERN = re.compile(
    rf"git\s+({'|'.join(GIT_SUBCOMMANDS)})(?:\s+(.+?))?(?:\s*$)",
    re.IGNORECASE,
)


def extract_entities(text: str) -> ExtractedEntities:
    """Pull structured fragments out of ``text``.

    Relative paths are collected before absolute ones and nothing is
    deduplicated. Only the first git subcommand is kept, together with the
    argument string that trails it to the end of the input.
    """
    entities = ExtractedEntities()

    entities.file_paths.extend(
        match.group(1) for match in _RELATIVE_PATH_PATTERN.finditer(text)
    )
    entities.file_paths.extend(
        match.group(1) for match in _ABSOLUTE_PATH_PATTERN.finditer(text)
    )
    entities.urls.extend(match.group(0) for match in _URL_PATTERN.finditer(text))

    for pattern in (_NPM_INSTALL_PATTERN, _PIP_INSTALL_PATTERN):
        install = pattern.search(text)
        if install:
            entities.packages.extend(install.group(1).split())

    git_match = _GIT_PATTERN.search(text)
    if git_match:
        entities.git_ops.append(
            GitOperation(
                operation=git_match.group(1).lower(),
                args=(git_match.group(2) or "").strip(),
            )
        )

    return entities
