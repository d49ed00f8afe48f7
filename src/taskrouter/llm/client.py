"""Thin model clients used for plan assistance and full fallback."""

from __future__ import annotations

import abc
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Protocol
from urllib import request
from urllib.error import HTTPError, URLError
from urllib.parse import urljoin

from taskrouter.config import AppConfig

GENERAL_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. Answer the user's question directly and concisely."
)
ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
LOGGER = logging.getLogger(__name__)


class ModelRequestError(RuntimeError):
    """Raised when a model endpoint cannot be reached or returns garbage."""


@dataclass(slots=True)
class GeneralAnswer:
    response: str


class ModelAdapter(Protocol):
    async def complete(self, system_prompt: str, user_input: str) -> str: ...

    async def run_general(self, text: str) -> GeneralAnswer: ...


class ChatClient(abc.ABC):
    """Shared HTTP plumbing for chat-style model endpoints."""

    name = "chat"

    def __init__(
        self,
        *,
        model: str,
        base_url: str,
        api_key: str | None = None,
        max_tokens: int = 16384,
        temperature: float = 0.3,
        timeout: float = 300.0,
    ) -> None:
        self.model = model
        self.base_url = base_url
        self.api_key = api_key
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

    @property
    @abc.abstractmethod
    def endpoint(self) -> str:
        """URL the chat payload is posted to."""

    @abc.abstractmethod
    def _build_payload(self, system_prompt: str, user_input: str) -> dict[str, object]:
        """Provider-specific request body."""

    @abc.abstractmethod
    def _extract_text(self, raw: dict[str, object]) -> str:
        """Pull the assistant text out of a provider response."""

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    async def complete(self, system_prompt: str, user_input: str) -> str:
        return await asyncio.to_thread(self.complete_sync, system_prompt, user_input)

    async def run_general(self, text: str) -> GeneralAnswer:
        return GeneralAnswer(response=await self.complete(GENERAL_SYSTEM_PROMPT, text))

    def complete_sync(self, system_prompt: str, user_input: str) -> str:
        raw = self._request(self.endpoint, self._build_payload(system_prompt, user_input))
        return self._extract_text(raw)

    def health_check(self) -> dict[str, object]:
        return {"ok": True, "provider": self.name}

    def _request(self, url: str, payload: dict[str, object] | None = None) -> dict[str, object]:
        body = json.dumps(payload).encode("utf-8") if payload is not None else None
        LOGGER.debug(
            "model_request_prepared",
            extra={
                "provider": self.name,
                "url": url,
                "model": self.model,
                "payload_bytes": len(body) if body else 0,
            },
        )
        req = request.Request(
            url,
            data=body,
            headers=self._headers(),
            method="POST" if body is not None else "GET",
        )
        try:
            with request.urlopen(req, timeout=self.timeout) as resp:  # noqa: S310
                parsed = json.loads(resp.read().decode("utf-8"))
        except HTTPError as exc:
            excerpt = _read_error_body_excerpt(exc)
            LOGGER.error(
                "model_request_http_error",
                extra={
                    "provider": self.name,
                    "url": url,
                    "http_status": exc.code,
                    "reason": exc.reason,
                    "response_excerpt": excerpt,
                },
            )
            details = f"{self.name} request failed with HTTP {exc.code}: {exc.reason}"
            if excerpt:
                details = f"{details}. Response body: {excerpt}"
            raise ModelRequestError(details) from exc
        except URLError as exc:
            LOGGER.error(
                "model_request_transport_error",
                extra={"provider": self.name, "url": url, "reason": str(exc.reason)},
            )
            raise ModelRequestError(f"{self.name} transport error: {exc.reason}") from exc
        except TimeoutError as exc:
            LOGGER.error(
                "model_request_timeout",
                extra={"provider": self.name, "url": url, "timeout_seconds": self.timeout},
            )
            raise ModelRequestError(
                f"{self.name} request timed out after {self.timeout:.1f}s"
            ) from exc
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            LOGGER.error(
                "model_response_parse_error",
                extra={"provider": self.name, "url": url, "error": str(exc)},
            )
            raise ModelRequestError(f"{self.name} response parse error: {exc}") from exc

        if not isinstance(parsed, dict):
            raise ModelRequestError(f"{self.name} response parse error: expected top-level object")
        return parsed


class OllamaClient(ChatClient):
    """Local Ollama server via ``/api/chat``."""

    name = "ollama"

    @property
    def endpoint(self) -> str:
        return urljoin(self.base_url, "/api/chat")

    def _build_payload(self, system_prompt: str, user_input: str) -> dict[str, object]:
        return {
            "model": self.model,
            "messages": _chat_messages(system_prompt, user_input),
            "stream": False,
            "options": {"num_ctx": 32768, "temperature": self.temperature, "top_p": 0.95},
        }

    def _extract_text(self, raw: dict[str, object]) -> str:
        message = raw.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
        return ""

    def health_check(self) -> dict[str, object]:
        try:
            raw = self._request(urljoin(self.base_url, "/api/tags"))
        except ModelRequestError as exc:
            return {"ok": False, "provider": self.name, "error": str(exc)}
        models = raw.get("models")
        names = [
            str(entry.get("name"))
            for entry in (models if isinstance(models, list) else [])
            if isinstance(entry, dict)
        ]
        return {"ok": True, "provider": self.name, "models": names}


class OpenAICompatibleClient(ChatClient):
    """Any ``/v1/chat/completions`` server (vLLM, LM Studio, LocalAI)."""

    name = "openai-compatible"

    @property
    def endpoint(self) -> str:
        return urljoin(self.base_url, "/v1/chat/completions")

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _build_payload(self, system_prompt: str, user_input: str) -> dict[str, object]:
        return {
            "model": self.model,
            "messages": _chat_messages(system_prompt, user_input),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def _extract_text(self, raw: dict[str, object]) -> str:
        choices = raw.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return ""
        message = choices[0].get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
        return ""

    def health_check(self) -> dict[str, object]:
        try:
            raw = self._request(urljoin(self.base_url, "/v1/models"))
        except ModelRequestError as exc:
            return {"ok": False, "provider": self.name, "error": str(exc)}
        data = raw.get("data")
        models = [
            str(entry.get("id"))
            for entry in (data if isinstance(data, list) else [])
            if isinstance(entry, dict)
        ]
        return {"ok": True, "provider": self.name, "models": models}


class AnthropicClient(ChatClient):
    """Anthropic Messages API."""

    name = "claude"

    @property
    def endpoint(self) -> str:
        return self.base_url

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["x-api-key"] = self.api_key or ""
        headers["anthropic-version"] = ANTHROPIC_VERSION
        return headers

    def _build_payload(self, system_prompt: str, user_input: str) -> dict[str, object]:
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_input}],
        }

    def _extract_text(self, raw: dict[str, object]) -> str:
        error = raw.get("error")
        if isinstance(error, dict):
            raise ModelRequestError(f"{self.name} API error: {error.get('message')}")
        blocks = raw.get("content")
        if not isinstance(blocks, list):
            return ""
        texts = [
            block["text"]
            for block in blocks
            if isinstance(block, dict)
            and block.get("type") == "text"
            and isinstance(block.get("text"), str)
        ]
        return "\n".join(texts)

    def health_check(self) -> dict[str, object]:
        return {"ok": bool(self.api_key), "provider": self.name, "note": "API key check only"}


def create_model_adapter(config: AppConfig, provider: str | None = None) -> ChatClient:
    """Build the client for ``provider`` (or ``config.provider``)."""
    selected = (provider or config.provider or "ollama").strip().lower()
    if selected == "ollama":
        return OllamaClient(
            model=config.model,
            base_url=config.ollama_base_url,
            max_tokens=config.max_tokens,
        )
    if selected in {"openai", "openai-compatible", "vllm", "lmstudio"}:
        return OpenAICompatibleClient(
            model=config.model,
            base_url=config.openai_base_url,
            api_key=config.api_key,
            max_tokens=config.max_tokens,
        )
    if selected in {"claude", "anthropic"}:
        return AnthropicClient(
            model=config.claude_model,
            base_url=ANTHROPIC_API_URL,
            api_key=config.api_key,
            max_tokens=config.max_tokens,
            timeout=120.0,
        )
    msg = f"Unknown provider: {provider or config.provider}. Use: ollama, openai-compatible, claude"
    raise ValueError(msg)


def _chat_messages(system_prompt: str, user_input: str) -> list[dict[str, str]]:
    messages: list[dict[str, str]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": user_input})
    return messages


def _read_error_body_excerpt(exc: HTTPError, *, max_chars: int = 500) -> str | None:
    if exc.fp is None:
        return None
    try:
        raw = exc.read()
    except OSError:
        return None
    if not raw:
        return None
    excerpt = raw.decode("utf-8", errors="replace").replace("\n", " ").strip()
    if len(excerpt) > max_chars:
        return f"{excerpt[:max_chars]}..."
    return excerpt
