"""Rule-based command parser.

Works offline and never fails: every command gets an intent (possibly
UNKNOWN) and whatever entities the extractors can find.
"""

from collections.abc import Callable
from datetime import datetime

from calendar_assistant.services import timezone
from calendar_assistant.services.commands import CommandEntities, CommandIntent, ParsedCommand
from calendar_assistant.services.extractors import (
    extract_attendees,
    extract_contact_name,
    extract_date_time,
    extract_duration,
    extract_location,
    extract_recurring_pattern,
    extract_reminder,
    extract_time_range,
    extract_title,
)
from calendar_assistant.services.intent import detect_intent

MATCHED_CONFIDENCE = 0.6
UNKNOWN_CONFIDENCE = 0.3

TITLE_INTENTS = frozenset([CommandIntent.CREATE_EVENT, CommandIntent.UPDATE_EVENT])
CONTACT_INTENTS = frozenset(
    [CommandIntent.ADD_CONTACT, CommandIntent.QUERY_CONTACT, CommandIntent.ADD_ATTENDEE]
)
RANGE_INTENTS = frozenset(
    [
        CommandIntent.LIST_EVENTS,
        CommandIntent.QUERY_SCHEDULE,
        CommandIntent.FIND_TIME,
        CommandIntent.FIND_FREE_TIME,
        CommandIntent.CHECK_CONFLICTS,
    ]
)


class LocalCommandParser:
    def __init__(self, now_fn: Callable[[], datetime] | None = None):
        self._now_fn = now_fn or timezone.now

    def parse(self, text: str) -> ParsedCommand:
        now = self._now_fn()
        intent = detect_intent(text)

        entities = CommandEntities(
            date_time=extract_date_time(text, now),
            duration=extract_duration(text, now),
            attendees=extract_attendees(text),
            location=extract_location(text),
            recurring_pattern=extract_recurring_pattern(text, now),
        )

        if intent in TITLE_INTENTS:
            entities.title = extract_title(text)

        if intent in CONTACT_INTENTS:
            entities.contact_name = extract_contact_name(text)

        if intent in RANGE_INTENTS:
            entities.time_range = extract_time_range(text, now)

        if intent == CommandIntent.SET_REMINDER:
            reminder = extract_reminder(text, now)
            entities.reminder_time = reminder.reminder_time
            entities.reminder_type = reminder.reminder_type

        return ParsedCommand(
            intent=intent,
            entities=entities,
            confidence=UNKNOWN_CONFIDENCE if intent == CommandIntent.UNKNOWN else MATCHED_CONFIDENCE,
            original_text=text,
        )
