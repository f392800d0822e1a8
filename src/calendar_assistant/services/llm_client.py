"""OpenAI-compatible chat completion transport and rate-limit cool-down."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from calendar_assistant.config import settings

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.1
DEFAULT_MAX_TOKENS = 500


@dataclass
class CompletionResponse:
    """Text and usage of a single chat completion."""

    text: str
    model: str
    tokens_input: int = 0
    tokens_output: int = 0
    latency_ms: int = 0
    raw_response: dict[str, Any] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        return self.tokens_input + self.tokens_output


class OpenRouterClient:
    """Chat completions against OpenRouter or any OpenAI-compatible endpoint.

    HTTP errors are not handled here: `complete` raises
    httpx.HTTPStatusError for any non-2xx reply so the caller can decide
    what is retryable.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        app_title: str | None = None,
        app_url: str | None = None,
        client: httpx.Client | None = None,
        timeout: float | None = None,
    ) -> None:
        self.api_key = settings.openrouter_api_key if api_key is None else api_key
        self.model = model or settings.openrouter_model
        self.base_url = (base_url or settings.openrouter_base_url).rstrip("/")
        self.app_title = app_title or settings.app_title
        self.app_url = app_url or settings.app_url
        self.timeout = timeout if timeout is not None else settings.llm_timeout_seconds
        if client is None:
            self._client = httpx.Client(timeout=self.timeout)
            self._owns_client = True
        else:
            self._client = client
            self._owns_client = False

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client:
            self._client.close()

    def complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> CompletionResponse:
        """Send one chat completion request and return the first choice."""
        start_time = time.time()

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        response = self._client.post(
            f"{self.base_url}/chat/completions",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "HTTP-Referer": self.app_url,
                "X-Title": self.app_title,
            },
            json={
                "model": self.model,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("Completion response is not a JSON object")

        latency_ms = int((time.time() - start_time) * 1000)

        text = ""
        choices = data.get("choices") or []
        if not isinstance(choices, list):
            raise ValueError("Completion choices is not a list")
        if choices:
            choice = choices[0]
            message = choice.get("message") if isinstance(choice, dict) else None
            if not isinstance(message, dict):
                raise ValueError("Completion choice has no message object")
            text = message.get("content") or ""
            if not isinstance(text, str):
                raise ValueError("Completion content is not a string")

        usage = data.get("usage")
        if not isinstance(usage, dict):
            usage = {}
        return CompletionResponse(
            text=text,
            model=data.get("model", self.model),
            tokens_input=usage.get("prompt_tokens", 0),
            tokens_output=usage.get("completion_tokens", 0),
            latency_ms=latency_ms,
            raw_response=data,
        )


def parse_retry_after(value: str | None, default: float) -> float:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP date)."""
    if not value:
        return default
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return default
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0.0, (retry_at - datetime.now(timezone.utc)).total_seconds())


class RateLimitCooldown:
    """Process-wide deadline before which the remote service must not be called."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._until: float | None = None

    def trip(self, seconds: float) -> None:
        self._until = self._clock() + max(0.0, seconds)
        logger.warning("Remote parser rate limited; cooling down for %.0fs", seconds)

    @property
    def active(self) -> bool:
        return self._until is not None and self._clock() < self._until

    @property
    def remaining_seconds(self) -> float:
        if self._until is None:
            return 0.0
        return max(0.0, self._until - self._clock())

    def reset(self) -> None:
        self._until = None


_cooldown: RateLimitCooldown | None = None


def get_rate_limit_cooldown() -> RateLimitCooldown:
    global _cooldown
    if _cooldown is None:
        _cooldown = RateLimitCooldown()
    return _cooldown


def reset_rate_limit_cooldown() -> None:
    """Reset the singleton (useful for testing)."""
    global _cooldown
    _cooldown = None
