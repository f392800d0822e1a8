"""LLM-backed command parsing with retry and rule-based fallback.

The remote model is asked for a JSON object shaped like ParsedCommand.
Whatever comes back is treated as untrusted: unknown enum values are
coerced to safe defaults, dates are rehydrated in the user's timezone and
null fields are dropped before the reply becomes a ParsedCommand.
"""

from __future__ import annotations

import json
import logging
import math
import re
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

import httpx

from calendar_assistant.config import settings
from calendar_assistant.services.commands import (
    CommandEntities,
    CommandIntent,
    ParsedCommand,
    RecurrenceFrequency,
    RecurringPattern,
    ReminderType,
    TimeRange,
)
from calendar_assistant.services.dates import parse_date
from calendar_assistant.services.llm_client import (
    OpenRouterClient,
    RateLimitCooldown,
    get_rate_limit_cooldown,
    parse_retry_after,
)
from calendar_assistant.services.parser import LocalCommandParser
from calendar_assistant.services.timezone import TimezoneService, get_timezone_service

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.5

SYSTEM_PROMPT = (
    "You are a calendar assistant AI that parses natural language commands into "
    "structured data. Respond only with valid JSON."
)

RESPONSE_EXAMPLE = {
    "intent": "CREATE_EVENT",
    "entities": {
        "dateTime": "2024-01-15T14:00:00",
        "duration": 60,
        "title": "Team meeting",
        "attendees": ["John", "Sarah"],
        "location": "Conference Room A",
        "description": "Quarterly planning",
        "contactName": "John Smith",
        "timeRange": {"start": "2024-01-15T00:00:00", "end": "2024-01-15T23:59:59"},
        "recurringPattern": {
            "frequency": "WEEKLY",
            "interval": 1,
            "daysOfWeek": [1],
            "dayOfMonth": None,
            "endDate": "2024-06-30T00:00:00",
            "occurrences": None,
        },
        "eventId": None,
        "reminderTime": "2024-01-15T13:45:00",
        "reminderType": "PUSH",
    },
    "confidence": 0.9,
}

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class RemoteParseError(ValueError):
    """The remote model replied with something that is not a usable command."""


def build_prompt(text: str, now: datetime) -> str:
    """User prompt for one command, anchored at the reference instant."""
    intents = ", ".join(intent.value for intent in CommandIntent)
    return (
        "Parse the following calendar command into structured data.\n\n"
        f"Current date and time: {now.isoformat()}\n"
        f'Command: "{text}"\n\n'
        f"Identify the intent as one of: {intents}.\n"
        "Extract only the entities that are mentioned. Dates are ISO 8601, durations "
        "are minutes, daysOfWeek uses 0=Sunday..6=Saturday, and recurringPattern "
        "has either endDate or occurrences, not both. reminderType is EMAIL, PUSH or SMS. "
        "confidence is a number between 0 and 1.\n\n"
        "Respond with JSON in this format:\n"
        f"{json.dumps(RESPONSE_EXAMPLE, indent=2)}"
    )


def _field(data: dict[str, Any], camel: str, snake: str) -> Any:
    value = data.get(camel)
    if value is None:
        value = data.get(snake)
    return value


class RemoteCommandParser:
    """Parse commands with the remote model, falling back to the local parser.

    A call makes at most `max_retries` attempts. Rate limiting (429) trips
    the shared cool-down and other client errors (4xx) propagate at once;
    everything else is retried after a linear backoff. When attempts run out
    the local parser's result is returned.
    """

    def __init__(
        self,
        *,
        llm: OpenRouterClient | None = None,
        base_parser: LocalCommandParser | None = None,
        cooldown: RateLimitCooldown | None = None,
        timezone_service: TimezoneService | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self._owns_llm = llm is None
        self.llm = llm or OpenRouterClient()
        self.base_parser = base_parser or LocalCommandParser()
        self.cooldown = cooldown or get_rate_limit_cooldown()
        self.timezone_service = timezone_service or get_timezone_service()
        self.max_retries = max_retries if max_retries is not None else settings.llm_max_retries
        self.retry_delay = retry_delay if retry_delay is not None else settings.llm_retry_delay_seconds
        self._sleep = sleep
        self._now_fn = now_fn or self.timezone_service.now

    @property
    def is_configured(self) -> bool:
        return self.llm.is_configured

    def close(self) -> None:
        """Close the completion client if we created it."""
        if self._owns_llm:
            self.llm.close()

    def parse(self, text: str) -> ParsedCommand:
        prompt = build_prompt(text, self._now_fn())

        for attempt in range(1, self.max_retries + 1):
            try:
                response = self.llm.complete(prompt, system_prompt=SYSTEM_PROMPT)
                return self._to_command(text, self._decode(response.text))
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if status == 429:
                    self.cooldown.trip(
                        parse_retry_after(
                            exc.response.headers.get("retry-after"),
                            settings.rate_limit_default_seconds,
                        )
                    )
                elif 400 <= status < 500:
                    raise
                else:
                    logger.warning(
                        "Remote parse attempt %d/%d failed with HTTP %d",
                        attempt,
                        self.max_retries,
                        status,
                    )
            except (httpx.TransportError, ValueError) as exc:
                # ValueError covers malformed JSON and schema violations
                logger.warning(
                    "Remote parse attempt %d/%d failed: %s", attempt, self.max_retries, exc
                )

            if attempt < self.max_retries:
                self._sleep(attempt * self.retry_delay)

        logger.warning("Remote parser gave up after %d attempts; using local parser", self.max_retries)
        return self.base_parser.parse(text)

    def _decode(self, reply: str) -> dict[str, Any]:
        body = _CODE_FENCE.sub("", reply.strip())
        if not body:
            raise RemoteParseError("Empty reply from remote parser")

        data = json.loads(body)
        if not isinstance(data, dict):
            raise RemoteParseError("Remote parser reply is not a JSON object")
        return data

    def _to_command(self, text: str, data: dict[str, Any]) -> ParsedCommand:
        entities = data.get("entities") or {}
        if not isinstance(entities, dict):
            raise RemoteParseError("Remote parser entities is not an object")

        return ParsedCommand(
            intent=self._coerce_intent(data.get("intent")),
            entities=self._coerce_entities(entities),
            confidence=self._coerce_confidence(data.get("confidence")),
            original_text=text,
        )

    def _coerce_intent(self, value: Any) -> CommandIntent:
        try:
            return CommandIntent(str(value).upper())
        except ValueError:
            return CommandIntent.UNKNOWN

    def _coerce_confidence(self, value: Any) -> float:
        if value is None:
            return DEFAULT_CONFIDENCE
        try:
            confidence = float(value)
        except (TypeError, ValueError):
            return DEFAULT_CONFIDENCE
        return max(0.0, min(1.0, confidence))

    def _coerce_datetime(self, value: Any) -> datetime | None:
        if not isinstance(value, str):
            return None
        parsed = parse_date(value)
        if parsed is None:
            logger.debug("Dropping unparseable remote date %r", value)
            return None
        return self.timezone_service.localize(parsed)

    def _coerce_time_range(self, value: Any) -> TimeRange | None:
        if not isinstance(value, dict):
            return None
        start = self._coerce_datetime(value.get("start"))
        end = self._coerce_datetime(value.get("end"))
        if start is None or end is None or start >= end:
            return None
        return TimeRange(start=start, end=end)

    def _coerce_recurring_pattern(self, value: Any) -> RecurringPattern | None:
        if not isinstance(value, dict):
            return None

        try:
            frequency = RecurrenceFrequency(str(value.get("frequency")).upper())
        except ValueError:
            frequency = RecurrenceFrequency.DAILY

        interval = value.get("interval")
        fields: dict[str, Any] = {
            "frequency": frequency,
            "interval": interval if isinstance(interval, int) and interval >= 1 else 1,
        }

        days = _field(value, "daysOfWeek", "days_of_week")
        if isinstance(days, list):
            valid_days = [day for day in days if isinstance(day, int) and 0 <= day <= 6]
            if valid_days:
                fields["days_of_week"] = valid_days

        day_of_month = _field(value, "dayOfMonth", "day_of_month")
        if isinstance(day_of_month, int) and 1 <= day_of_month <= 31:
            fields["day_of_month"] = day_of_month

        end_date = self._coerce_datetime(_field(value, "endDate", "end_date"))
        occurrences = value.get("occurrences")
        if end_date is not None:
            fields["end_date"] = end_date
        elif isinstance(occurrences, int) and occurrences >= 1:
            fields["occurrences"] = occurrences

        return RecurringPattern(**fields)

    def _coerce_entities(self, data: dict[str, Any]) -> CommandEntities:
        fields: dict[str, Any] = {}

        for camel, snake in (
            ("title", "title"),
            ("location", "location"),
            ("description", "description"),
            ("contactName", "contact_name"),
            ("eventId", "event_id"),
        ):
            value = _field(data, camel, snake)
            if value is not None and str(value).strip():
                fields[snake] = str(value).strip()

        for camel, snake in (("dateTime", "date_time"), ("reminderTime", "reminder_time")):
            value = self._coerce_datetime(_field(data, camel, snake))
            if value is not None:
                fields[snake] = value

        duration = data.get("duration")
        if (
            isinstance(duration, (int, float))
            and not isinstance(duration, bool)
            and math.isfinite(duration)
            and duration >= 0
        ):
            fields["duration"] = int(round(duration))

        attendees = data.get("attendees")
        if isinstance(attendees, str):
            attendees = [attendees]
        if isinstance(attendees, list):
            names = [str(name).strip() for name in attendees if name is not None and str(name).strip()]
            if names:
                fields["attendees"] = names

        time_range = self._coerce_time_range(_field(data, "timeRange", "time_range"))
        if time_range is not None:
            fields["time_range"] = time_range

        pattern = self._coerce_recurring_pattern(_field(data, "recurringPattern", "recurring_pattern"))
        if pattern is not None:
            fields["recurring_pattern"] = pattern

        reminder_type = _field(data, "reminderType", "reminder_type")
        if reminder_type is not None:
            try:
                fields["reminder_type"] = ReminderType(str(reminder_type).upper())
            except ValueError:
                fields["reminder_type"] = ReminderType.PUSH

        return CommandEntities(**fields)
