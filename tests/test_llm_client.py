"""Tests for the chat completion transport and rate-limit cool-down."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import httpx
import pytest

from calendar_assistant.services.llm_client import (
    OpenRouterClient,
    RateLimitCooldown,
    get_rate_limit_cooldown,
    parse_retry_after,
    reset_rate_limit_cooldown,
)

# ─────────────────────────────────────────────────────────────────────────────
# Test Fixtures
# ─────────────────────────────────────────────────────────────────────────────


class RecordingHandler:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response


def make_client(handler) -> OpenRouterClient:
    return OpenRouterClient(
        api_key="test-key",
        model="openai/gpt-4o-mini",
        base_url="https://llm.example.com/api/v1/",
        app_title="Calendar Assistant",
        app_url="https://calendar.example.com",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
        timeout=10.0,
    )


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


# ─────────────────────────────────────────────────────────────────────────────
# OpenRouterClient
# ─────────────────────────────────────────────────────────────────────────────


class TestOpenRouterClient:
    def test_request_shape(self):
        handler = RecordingHandler(
            httpx.Response(200, json={"choices": [{"message": {"content": "{}"}}]})
        )
        client = make_client(handler)

        client.complete("Parse this", system_prompt="Be a parser")

        request = handler.requests[0]
        assert str(request.url) == "https://llm.example.com/api/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer test-key"
        assert request.headers["HTTP-Referer"] == "https://calendar.example.com"
        assert request.headers["X-Title"] == "Calendar Assistant"

        body = json.loads(request.content)
        assert body["model"] == "openai/gpt-4o-mini"
        assert body["temperature"] == 0.1
        assert body["max_tokens"] == 500
        assert body["messages"] == [
            {"role": "system", "content": "Be a parser"},
            {"role": "user", "content": "Parse this"},
        ]

    def test_parses_first_choice_and_usage(self):
        handler = RecordingHandler(
            httpx.Response(
                200,
                json={
                    "model": "openai/gpt-4o-mini",
                    "choices": [{"message": {"content": '{"intent": "UNKNOWN"}'}}],
                    "usage": {"prompt_tokens": 120, "completion_tokens": 30},
                },
            )
        )

        response = make_client(handler).complete("hi")

        assert response.text == '{"intent": "UNKNOWN"}'
        assert response.tokens_input == 120
        assert response.tokens_output == 30
        assert response.total_tokens == 150

    def test_empty_choices_give_empty_text(self):
        handler = RecordingHandler(httpx.Response(200, json={"choices": []}))
        assert make_client(handler).complete("hi").text == ""

    @pytest.mark.parametrize(
        "body",
        [
            [1, 2],
            {"choices": "none"},
            {"choices": ["oops"]},
            {"choices": [{"message": None}]},
            {"choices": [{"message": {"content": 42}}]},
        ],
    )
    def test_malformed_body_raises_value_error(self, body):
        handler = RecordingHandler(httpx.Response(200, json=body))
        with pytest.raises(ValueError):
            make_client(handler).complete("hi")

    def test_http_errors_raise(self):
        handler = RecordingHandler(httpx.Response(503, text="unavailable"))
        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            make_client(handler).complete("hi")
        assert exc_info.value.response.status_code == 503

    def test_is_configured(self):
        assert make_client(RecordingHandler(httpx.Response(200))).is_configured
        assert not OpenRouterClient(api_key="", client=httpx.Client()).is_configured


# ─────────────────────────────────────────────────────────────────────────────
# Retry-After and cool-down
# ─────────────────────────────────────────────────────────────────────────────


class TestParseRetryAfter:
    def test_seconds(self):
        assert parse_retry_after("120", default=60) == 120

    def test_missing_uses_default(self):
        assert parse_retry_after(None, default=60) == 60
        assert parse_retry_after("", default=60) == 60

    def test_garbage_uses_default(self):
        assert parse_retry_after("soon", default=60) == 60

    def test_http_date(self):
        retry_at = datetime.now(timezone.utc) + timedelta(seconds=90)
        seconds = parse_retry_after(format_datetime(retry_at, usegmt=True), default=60)
        assert 80 <= seconds <= 90

    def test_past_http_date_is_zero(self):
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT", default=60) == 0


class TestRateLimitCooldown:
    def setup_method(self):
        self.clock = FakeClock()
        self.cooldown = RateLimitCooldown(clock=self.clock)

    def test_inactive_by_default(self):
        assert not self.cooldown.active
        assert self.cooldown.remaining_seconds == 0

    def test_trip_and_expire(self):
        self.cooldown.trip(60)
        assert self.cooldown.active
        assert self.cooldown.remaining_seconds == 60

        self.clock.now = 59.5
        assert self.cooldown.active

        self.clock.now = 60
        assert not self.cooldown.active
        assert self.cooldown.remaining_seconds == 0

    def test_reset(self):
        self.cooldown.trip(30)
        self.cooldown.reset()
        assert not self.cooldown.active

    def test_singleton(self):
        reset_rate_limit_cooldown()
        assert get_rate_limit_cooldown() is get_rate_limit_cooldown()
        reset_rate_limit_cooldown()
