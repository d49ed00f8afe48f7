"""Environment-backed application configuration."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_BLOCKED_COMMANDS = (
    "rm -rf /",
    "mkfs",
    ":(){:|:&};:",
    "dd if=/dev/zero",
    "chmod -R 777 /",
)
KNOWN_PROVIDERS = {"ollama", "openai", "openai-compatible", "vllm", "lmstudio", "claude", "anthropic"}
LOG_LEVELS = {"debug", "info", "warning", "error"}


def _to_bool(value: str | None, default: bool = False) -> bool:
    """Convert common env var truthy/falsy values into booleans."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


@dataclass(slots=True)
class AppConfig:
    """Runtime settings loaded from environment variables and config files."""

    provider: str | None = None
    model: str = "qwen3-coder:30b-a3b"
    ollama_base_url: str = "http://localhost:11434"
    openai_base_url: str = "http://localhost:8000"
    api_key: str | None = None
    claude_model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 16384
    working_directory: str | None = None
    sandbox_mode: bool = False
    blocked_commands: list[str] = field(default_factory=lambda: list(DEFAULT_BLOCKED_COMMANDS))
    max_file_size: int = 10 * 1024 * 1024
    http_timeout: float = 30.0
    command_timeout: float = 60.0
    log_level: str = "info"
    log_dir: str | None = "logs"
    confidence_threshold: float = 0.4
    max_retries: int = 2
    shell: str = "bash"

    @classmethod
    def from_env(cls) -> AppConfig:
        file_config = _load_preferred_file_config()
        defaults = cls()

        return cls(
            provider=_to_provider(
                os.getenv("TASKROUTER_PROVIDER")
                or _to_optional_string(file_config.get("provider"))
            ),
            model=(
                os.getenv("TASKROUTER_MODEL")
                or _to_optional_string(file_config.get("model"))
                or defaults.model
            ),
            ollama_base_url=(
                os.getenv("OLLAMA_BASE_URL")
                or _to_optional_string(file_config.get("ollama_base_url"))
                or defaults.ollama_base_url
            ),
            openai_base_url=(
                os.getenv("OPENAI_BASE_URL")
                or _to_optional_string(file_config.get("openai_base_url"))
                or defaults.openai_base_url
            ),
            api_key=(
                os.getenv("TASKROUTER_API_KEY")
                or os.getenv("ANTHROPIC_API_KEY")
                or _to_optional_string(file_config.get("api_key"))
            ),
            claude_model=(
                os.getenv("TASKROUTER_CLAUDE_MODEL")
                or _to_optional_string(file_config.get("claude_model"))
                or defaults.claude_model
            ),
            max_tokens=_to_positive_int(
                os.getenv("TASKROUTER_MAX_TOKENS") or file_config.get("max_tokens"),
                default=defaults.max_tokens,
            ),
            working_directory=(
                os.getenv("TASKROUTER_CWD")
                or _to_optional_string(file_config.get("cwd"))
            ),
            sandbox_mode=_to_bool(
                os.getenv("TASKROUTER_SANDBOX"),
                default=bool(file_config.get("sandbox_mode", False)),
            ),
            blocked_commands=_to_string_list(
                file_config.get("blocked_commands"),
                default=list(DEFAULT_BLOCKED_COMMANDS),
            ),
            max_file_size=_to_positive_int(
                os.getenv("TASKROUTER_MAX_FILE_SIZE") or file_config.get("max_file_size"),
                default=defaults.max_file_size,
            ),
            http_timeout=_to_positive_float(
                os.getenv("TASKROUTER_HTTP_TIMEOUT") or file_config.get("http_timeout"),
                default=defaults.http_timeout,
            ),
            command_timeout=_to_positive_float(
                os.getenv("TASKROUTER_COMMAND_TIMEOUT") or file_config.get("command_timeout"),
                default=defaults.command_timeout,
            ),
            log_level=_to_log_level(
                os.getenv("TASKROUTER_LOG_LEVEL")
                or _to_optional_string(file_config.get("log_level"))
            ),
            log_dir=(
                os.getenv("TASKROUTER_LOG_DIR")
                or _to_optional_string(file_config.get("log_dir"))
                or defaults.log_dir
            ),
            confidence_threshold=_to_unit_float(
                os.getenv("TASKROUTER_CONFIDENCE_THRESHOLD")
                or file_config.get("confidence_threshold"),
                default=defaults.confidence_threshold,
            ),
            max_retries=_to_positive_int(
                os.getenv("TASKROUTER_MAX_RETRIES") or file_config.get("max_retries"),
                default=defaults.max_retries,
            ),
            shell=(
                os.getenv("TASKROUTER_SHELL")
                or _to_optional_string(file_config.get("shell"))
                or defaults.shell
            ),
        )


def _to_optional_string(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _to_provider(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    return normalized if normalized in KNOWN_PROVIDERS else None


def _to_log_level(value: str | None) -> str:
    if value is None:
        return "info"
    normalized = value.strip().lower()
    if normalized == "warn":
        return "warning"
    return normalized if normalized in LOG_LEVELS else "info"


def _to_string_list(value: object, *, default: list[str]) -> list[str]:
    if not isinstance(value, list):
        return default
    return [item for item in value if isinstance(item, str) and item]


def _load_file_config(path_value: str) -> dict[str, object]:
    path = Path(path_value)
    if not path.exists() or not path.is_file():
        return {}
    try:
        with path.open("r", encoding="utf-8") as fh:
            parsed = json.load(fh)
    except (OSError, json.JSONDecodeError):
        return {}
    if isinstance(parsed, dict):
        return parsed
    return {}


def _load_preferred_file_config() -> dict[str, object]:
    explicit_path = os.getenv("TASKROUTER_CONFIG_FILE")
    if explicit_path:
        return _load_file_config(explicit_path)

    shared_config = _load_file_config("taskrouter.config.json")
    local_override = _load_file_config("taskrouter.config.local.json")
    return _merge_dicts(shared_config, local_override)


def _merge_dicts(base: dict[str, object], override: dict[str, object]) -> dict[str, object]:
    merged: dict[str, object] = dict(base)
    for key, value in override.items():
        base_value = merged.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            merged[key] = _merge_dicts(base_value, value)
        else:
            merged[key] = value
    return merged


def _to_positive_int(value: object, *, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value if value > 0 else default
    if isinstance(value, str):
        try:
            parsed = int(value.strip())
        except ValueError:
            return default
        return parsed if parsed > 0 else default
    return default


def _to_float(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _to_positive_float(value: object, *, default: float) -> float:
    parsed = _to_float(value)
    if parsed is None or parsed <= 0:
        return default
    return parsed


def _to_unit_float(value: object, *, default: float) -> float:
    parsed = _to_float(value)
    if parsed is None or not 0.0 <= parsed <= 1.0:
        return default
    return parsed
