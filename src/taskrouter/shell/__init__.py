"""Shell adapter implementations."""

from collections.abc import Iterable

from .base import CommandResult, ShellAdapter, blocked_substring_hook
from .bash_adapter import BashAdapter


def create_shell_adapter(
    shell_name: str,
    *,
    blocked_commands: Iterable[str] = (),
    sandbox_mode: bool = False,
) -> ShellAdapter:
    normalized = shell_name.strip().lower()
    if normalized in {"bash", "sh", "shell"}:
        return BashAdapter(
            executable="sh" if normalized == "sh" else None,
            denylist_hook=blocked_substring_hook(blocked_commands),
            confirmation_mode=sandbox_mode,
        )
    msg = f"Unsupported shell adapter: {shell_name}"
    raise ValueError(msg)


__all__ = [
    "BashAdapter",
    "CommandResult",
    "ShellAdapter",
    "blocked_substring_hook",
    "create_shell_adapter",
]
