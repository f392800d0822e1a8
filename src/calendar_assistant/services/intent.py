"""Keyword intent classification for calendar commands.

Rules are tried in order and the first match wins, so specific phrasings
("add Sarah to the meeting") sit above the general ones they overlap with
("add ... meeting"). The recurring-creation rule comes last and only catches
creation phrases that name no event noun ("set up a standup every Monday").
"""

import re

from calendar_assistant.services.commands import CommandIntent

_EVENT_NOUNS = r"(event|meeting|appointment|session|standup|workshop)"

INTENT_PATTERNS: list[tuple[re.Pattern[str], CommandIntent]] = [
    (
        re.compile(
            r"\b(add|invite)\b"
            r"(?!.*\bto\s+(?:my\s+|the\s+|your\s+)?(?:calendar|schedule|agenda)\b)"
            r".*\b(to|attendee|participant)\b"
        ),
        CommandIntent.ADD_ATTENDEE,
    ),
    (
        re.compile(r"\b(schedule|create|add|new|set up|book|plan)\b.*\b" + _EVENT_NOUNS + r"\b"),
        CommandIntent.CREATE_EVENT,
    ),
    (
        re.compile(r"\b(update|change|modify|reschedule|move|rename)\b.*\b" + _EVENT_NOUNS + r"\b"),
        CommandIntent.UPDATE_EVENT,
    ),
    (
        re.compile(r"\b(delete|cancel|remove|drop)\b.*\b" + _EVENT_NOUNS + r"\b"),
        CommandIntent.DELETE_EVENT,
    ),
    (
        re.compile(r"\b(list|show|what's|what is|whats)\b.*\b(calendar|schedule|events|appointments|agenda)\b"),
        CommandIntent.LIST_EVENTS,
    ),
    (
        re.compile(r"\b(when|what time)\b.*\b" + _EVENT_NOUNS + r"\b"),
        CommandIntent.QUERY_SCHEDULE,
    ),
    (
        re.compile(r"\b(add|create|new|save)\b.*\b(contact|person)\b"),
        CommandIntent.ADD_CONTACT,
    ),
    (
        re.compile(r"\b(find|search|lookup|look up|who)\b.*\b(contact|contacts|person|email|phone)\b"),
        CommandIntent.QUERY_CONTACT,
    ),
    (
        re.compile(r"\b(remind|reminder|alert)\b"),
        CommandIntent.SET_REMINDER,
    ),
    (
        re.compile(r"\b(when am i free|am i free|my free time|any free time|my availability)\b"),
        CommandIntent.FIND_FREE_TIME,
    ),
    (
        re.compile(r"\b(find time|find slot|find a slot|available|free time)\b"),
        CommandIntent.FIND_TIME,
    ),
    (
        re.compile(r"\b(conflict|conflicts|overlapping|double.?booked)\b"),
        CommandIntent.CHECK_CONFLICTS,
    ),
    (
        re.compile(r"\b(create|schedule|add|new|set up)\b.*\b(every|daily|weekly|monthly|yearly|recurring)\b"),
        CommandIntent.CREATE_EVENT,
    ),
]


def normalize(text: str) -> str:
    """Lowercase and fold typographic apostrophes ("what’s" -> "what's")."""
    return text.lower().replace("’", "'").replace("‘", "'").strip()


def detect_intent(text: str) -> CommandIntent:
    """Return the intent of the first matching rule, or UNKNOWN."""
    lowered = normalize(text)
    for pattern, intent in INTENT_PATTERNS:
        if pattern.search(lowered):
            return intent
    return CommandIntent.UNKNOWN
