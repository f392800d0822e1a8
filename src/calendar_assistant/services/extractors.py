"""Entity extraction for calendar commands.

One pure function per entity kind. Every extractor takes the raw text (and,
for anything relative, the reference instant `now`) and returns a value or
None. Extractors never raise: text that does not match simply produces no
entity.

Relative expressions resolve against `now`, which defaults to the current
time in the user's configured timezone.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from pydantic import ValidationError

from calendar_assistant.services import timezone
from calendar_assistant.services.commands import (
    RecurrenceFrequency,
    RecurringPattern,
    ReminderType,
    TimeRange,
)
from calendar_assistant.services.dates import add_time, end_of, start_of, sunday_weekday

WEEKDAYS = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]
_WEEKDAY = "(" + "|".join(WEEKDAYS) + ")"

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_MONTH = (
    r"(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)

DEFAULT_TITLE = "Untitled Event"
DEFAULT_MEETING_MINUTES = 60

# Capitalized words that are never names
NOT_NAMES = frozenset([
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
    "morning", "afternoon", "evening", "night", "noon", "midnight",
    "today", "tomorrow", "tonight", "yesterday", "next", "this", "every",
    "i", "me", "my", "the", "a", "an", "everyone", "all",
])

_NAME = r"[A-Z][a-z]+"
_PERSON = rf"{_NAME}(?:\s+{_NAME})?"
_LIST_SEPARATOR = r"(?:\s*,\s*(?:and\s+)?|\s+and\s+)"

# Time of day, most specific first
_TIME_PATTERNS = [
    re.compile(r"\bat\s+(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b", re.IGNORECASE),
    re.compile(r"\b(\d{1,2}):(\d{2})\s*(am|pm)?\b", re.IGNORECASE),
    re.compile(r"\b(\d{1,2})\s*(am|pm)\b", re.IGNORECASE),
]
_NOON = re.compile(r"\bnoon\b", re.IGNORECASE)
_MIDNIGHT = re.compile(r"\bmidnight\b", re.IGNORECASE)

_DURATION_PATTERNS: list[tuple[re.Pattern[str], float | None]] = [
    (re.compile(r"\b(\d+(?:\.\d+)?)[-\s]?(?:hours?|hrs?)\b", re.IGNORECASE), 60),
    (re.compile(r"\b(\d+)[-\s]?(?:minutes?|mins?)\b", re.IGNORECASE), 1),
    (re.compile(r"\bhalf\s+an?\s+hour\b", re.IGNORECASE), None),
    (re.compile(r"\b(?:an|one)\s+hour\b", re.IGNORECASE), None),
]
_FIXED_DURATIONS = {"half": 30}
# "in 2 hours" is a relative date and "15 minutes before" a reminder offset
_NOT_DURATION_BEFORE = re.compile(r"\b(?:in|within|every)\s+$", re.IGNORECASE)
_NOT_DURATION_AFTER = re.compile(r"^\s+(?:before|after|early|earlier|late|later|ago)\b", re.IGNORECASE)
_MEETING_NOUN = re.compile(r"\b(?:meeting|appointment)s?\b", re.IGNORECASE)

_QUOTED = re.compile(r"(?<!\w)[\"'“‘]([^\"'“”‘’]+)[\"'”’](?!\w)")
_TITLE_KEYWORDS = [
    re.compile(
        r"\b(?:schedule|reschedule|create|add|new|set up|update|change|modify|book|plan)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:event|meeting|appointment)\b", re.IGNORECASE),
]
_TITLE_TRAILING_CLAUSE = re.compile(r"\b(?:with|at|on|in|for|from|to)\b.*$", re.IGNORECASE | re.DOTALL)
_TITLE_TEMPORAL = re.compile(
    r"\b(?:today|tomorrow|tonight|yesterday|daily|weekly|monthly|yearly|annually|recurring"
    r"|(?:next|this|every(?:\s+other)?)\s+\w+"
    r"|\d+(?:\.\d+)?[-\s]?(?:hours?|hrs?|minutes?|mins?)"
    r"|\d{1,2}(?::\d{2})?\s*(?:am|pm))\b",
    re.IGNORECASE,
)
_TITLE_LEADING_ARTICLES = re.compile(r"^(?:(?:a|an|the|my|our)\b\s*)+", re.IGNORECASE)

_WITH_ATTENDEES = re.compile(rf"\b[Ww]ith\s+({_PERSON}(?:{_LIST_SEPARATOR}{_PERSON})*)")
_INVITE_ATTENDEE = re.compile(rf"\b(?:[Ii]nvite|[Aa]dd)\s+({_PERSON})\b")

_TEMPORAL_WORDS = (
    r"today|tomorrow|tonight|yesterday|noon|midnight|"
    + "|".join(WEEKDAYS)
    + r"|january|february|march|april|june|july|august|september|october|november|december"
)
_LOCATION_PATTERNS = [
    re.compile(
        r"\b(?i:at|in)\s+(?:(?i:the)\s+)?([A-Z][^,.!?;]*?)"
        r"(?=\s*(?:[,.!?;]|$|\b(?i:on|at|with|for|from|to|until|every|next|this|"
        + _TEMPORAL_WORDS
        + r")\b|\d{1,2}(?::\d{2})?\s*(?i:am|pm)\b))"
    ),
    re.compile(r"\b(?i:location|place|venue)\s*:\s*([^,.]+)"),
]
_LOCATION_TEMPORAL = re.compile(
    r"\b(?:" + _TEMPORAL_WORDS + r")\b|\b\d{1,2}(?::\d{2})?\s*(?:am|pm)\b", re.IGNORECASE
)

_CONTACT_PATTERNS = [
    re.compile(
        rf"\b(?i:contact|person|add|find|search|lookup|look up)\s+"
        rf"(?:(?i:named|called|for)\s+)?({_PERSON})\b"
    ),
    re.compile(rf"\b({_PERSON})'s\s+(?i:email|phone|number|contact|address)\b"),
    re.compile(
        rf"\b(?i:contact\s+(?:info|information|details)|email|phone(?:\s+number)?|number)"
        rf"\s+(?i:for|of)\s+({_PERSON})\b"
    ),
]

_RECURRENCE_TRIGGER = re.compile(
    r"\b(?:every|daily|weekly|monthly|yearly|annually|recurring|repeating)\b"
    r"|\beach\s+(?:day|week|month|year)\b",
    re.IGNORECASE,
)
_EVERY_N_UNITS = re.compile(r"\bevery\s+(\d+)\s+(day|week|month|year)s?\b", re.IGNORECASE)
_EVERY_OTHER_UNIT = re.compile(r"\bevery\s+other\s+(day|week|month|year)\b", re.IGNORECASE)
_EVERY_WEEKDAY_LIST = re.compile(
    rf"\bevery\s+({_WEEKDAY}s?(?:\s*(?:,\s*(?:and\s+)?|and\s+|&\s*){_WEEKDAY}s?)*)",
    re.IGNORECASE,
)
_PLURAL_WEEKDAY = re.compile(rf"\b{_WEEKDAY}s\b", re.IGNORECASE)
_EVERY_WEEKDAY = re.compile(r"\bevery\s+weekday\b", re.IGNORECASE)
_DAY_OF_MONTH = re.compile(r"\bon\s+the\s+(\d{1,2})(?:st|nd|rd|th)?\b", re.IGNORECASE)
_UNTIL = re.compile(r"\buntil\s+([^,]+)", re.IGNORECASE)
_FOR_OCCURRENCES = re.compile(r"\bfor\s+(\d+)\s+(?:times?|occurrences?)\b", re.IGNORECASE)

_FREQUENCY_KEYWORDS: list[tuple[re.Pattern[str], RecurrenceFrequency]] = [
    (re.compile(r"\b(?:daily|every\s+day|each\s+day)\b", re.IGNORECASE), RecurrenceFrequency.DAILY),
    (
        re.compile(
            rf"\b(?:weekly|every\s+week|each\s+week|every\s+weekday|every\s+{_WEEKDAY}|{_WEEKDAY}s)\b",
            re.IGNORECASE,
        ),
        RecurrenceFrequency.WEEKLY,
    ),
    (re.compile(r"\b(?:monthly|every\s+month|each\s+month)\b", re.IGNORECASE), RecurrenceFrequency.MONTHLY),
    (
        re.compile(r"\b(?:yearly|annually|every\s+year|each\s+year)\b", re.IGNORECASE),
        RecurrenceFrequency.YEARLY,
    ),
]
_UNIT_FREQUENCY = {
    "day": RecurrenceFrequency.DAILY,
    "week": RecurrenceFrequency.WEEKLY,
    "month": RecurrenceFrequency.MONTHLY,
    "year": RecurrenceFrequency.YEARLY,
}

_EMAIL_CHANNEL = re.compile(r"\be-?mail\b", re.IGNORECASE)
_SMS_CHANNEL = re.compile(r"\b(?:sms|text)\b", re.IGNORECASE)


@dataclass(frozen=True)
class ReminderInfo:
    """When and how to remind."""

    reminder_time: datetime | None
    reminder_type: ReminderType


def _reference(now: datetime | None) -> datetime:
    return now if now is not None else timezone.now()


def _clean_name(raw: str) -> str | None:
    words = [word for word in raw.split() if word.lower() not in NOT_NAMES]
    return " ".join(words) or None


# ─────────────────────────────────────────────────────────────────────────────
# Date and time
# ─────────────────────────────────────────────────────────────────────────────


def extract_time_of_day(text: str) -> tuple[int, int] | None:
    """Find an explicit time of day and return (hour, minute) on a 24h clock.

    "pm" adds 12 hours unless the hour is already 12 or more; "12am" is 0.
    """
    for pattern in _TIME_PATTERNS:
        for match in pattern.finditer(text):
            hour = int(match.group(1))
            minute = int(match.group(2)) if match.group(2) else 0
            period = match.group(3).lower() if match.group(3) else None

            if period == "pm" and hour < 12:
                hour += 12
            elif period == "am" and hour == 12:
                hour = 0

            if hour <= 23 and minute <= 59:
                return hour, minute

    if _NOON.search(text):
        return 12, 0
    if _MIDNIGHT.search(text):
        return 0, 0
    return None


def _days_until(now: datetime, weekday_name: str) -> int:
    """Forward offset to the named weekday; never zero, so today means next week."""
    days = WEEKDAYS.index(weekday_name.lower().rstrip("s")) - sunday_weekday(now)
    if days <= 0:
        days += 7
    return days


def _calendar_date(now: datetime, year: int | None, month: int, day: int) -> datetime:
    """Midnight on the given date; a date without a year that already passed means next year."""
    if year is not None and year < 100:
        year += 2000
    resolved = now.replace(
        year=year or now.year, month=month, day=day, hour=0, minute=0, second=0, microsecond=0
    )
    if year is None and resolved < start_of(now, "day"):
        resolved = resolved.replace(year=resolved.year + 1)
    return resolved


def _relative(match: re.Match[str], now: datetime) -> datetime:
    amount = 1 if match.group(1).lower() in ("a", "an") else int(match.group(1))
    return add_time(now, amount, match.group(2).lower() + "s")


_DATE_CUES: list[tuple[re.Pattern[str], Callable[[re.Match[str], datetime], datetime]]] = [
    (re.compile(r"\btomorrow\b", re.IGNORECASE), lambda m, now: add_time(now, 1, "days")),
    (re.compile(r"\b(?:today|tonight)\b", re.IGNORECASE), lambda m, now: now),
    (re.compile(r"\byesterday\b", re.IGNORECASE), lambda m, now: add_time(now, -1, "days")),
    (
        re.compile(rf"\bnext\s+{_WEEKDAY}\b", re.IGNORECASE),
        lambda m, now: add_time(now, _days_until(now, m.group(1)), "days"),
    ),
    (re.compile(r"\bnext\s+week\b", re.IGNORECASE), lambda m, now: add_time(now, 7, "days")),
    (re.compile(r"\bnext\s+month\b", re.IGNORECASE), lambda m, now: add_time(now, 1, "months")),
    (re.compile(r"\bin\s+(\d+|an?)\s+(minute|hour|day|week)s?\b", re.IGNORECASE), _relative),
    (
        re.compile(r"\b(?:on\s+)?(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?\b", re.IGNORECASE),
        lambda m, now: _calendar_date(
            now, int(m.group(3)) if m.group(3) else None, int(m.group(1)), int(m.group(2))
        ),
    ),
    (
        re.compile(rf"\b{_MONTH}\.?\s+(\d{{1,2}})(?:st|nd|rd|th)?(?:,?\s+(\d{{4}}))?\b", re.IGNORECASE),
        lambda m, now: _calendar_date(
            now, int(m.group(3)) if m.group(3) else None, MONTHS[m.group(1).lower()[:3]], int(m.group(2))
        ),
    ),
    (
        re.compile(rf"\b(?:(?:on|this)\s+)?{_WEEKDAY}\b", re.IGNORECASE),
        lambda m, now: add_time(now, _days_until(now, m.group(1)), "days"),
    ),
]


def _extract_base_date(text: str, now: datetime) -> datetime | None:
    for pattern, resolve in _DATE_CUES:
        match = pattern.search(text)
        if not match:
            continue
        try:
            return resolve(match, now)
        except (ValueError, OverflowError):
            # Impossible calendar date ("2/30") or out of range; try the next cue
            continue
    return None


def _strip_terminal_clauses(text: str) -> str:
    """Drop "until ..." and "for N times" so a series' end is not read as its start."""
    starts = [match.start() for match in (_UNTIL.search(text), _FOR_OCCURRENCES.search(text)) if match]
    return text[: min(starts)] if starts else text


def extract_date_time(text: str, now: datetime | None = None) -> datetime | None:
    """Resolve the single instant a command refers to.

    A date cue ("tomorrow", "next Friday", "in 3 days", "on 5/12") picks the
    day, an explicit time of day ("at 2pm", "14:00") sets the clock. A time
    without a date cue lands on the reference day. Anything from an "until"
    or "for N times" clause onward belongs to the recurrence and is ignored.
    """
    now = _reference(now)
    text = _strip_terminal_clauses(text)
    base_date = _extract_base_date(text, now)
    time_of_day = extract_time_of_day(text)

    if time_of_day is not None:
        hour, minute = time_of_day
        return (base_date or now).replace(hour=hour, minute=minute, second=0, microsecond=0)
    return base_date


# ─────────────────────────────────────────────────────────────────────────────
# Duration
# ─────────────────────────────────────────────────────────────────────────────


def _explicit_duration(text: str) -> int | None:
    candidates: list[tuple[int, int]] = []
    for pattern, factor in _DURATION_PATTERNS:
        for match in pattern.finditer(text):
            if _NOT_DURATION_BEFORE.search(text[: match.start()]):
                continue
            if _NOT_DURATION_AFTER.search(text[match.end():]):
                continue
            if factor is None:
                minutes = _FIXED_DURATIONS.get(match.group(0).split()[0].lower(), 60)
            else:
                minutes = int(round(float(match.group(1)) * factor))
            candidates.append((match.start(), minutes))

    if not candidates:
        return None
    # First mention in the text wins
    return min(candidates)[1]


def extract_duration(text: str, now: datetime | None = None) -> int | None:
    """Duration in minutes.

    Explicit quantities win ("90 minutes", "1.5 hours", "2-hour"). Otherwise a
    meeting or appointment with a resolved date/time defaults to an hour.
    """
    minutes = _explicit_duration(text)
    if minutes is not None:
        return minutes

    if _MEETING_NOUN.search(text) and extract_date_time(text, now) is not None:
        return DEFAULT_MEETING_MINUTES
    return None


# ─────────────────────────────────────────────────────────────────────────────
# Title, people, places
# ─────────────────────────────────────────────────────────────────────────────


def extract_title(text: str) -> str:
    """Event title: a quoted phrase verbatim, else the text minus command words."""
    quoted = _QUOTED.search(text)
    if quoted and quoted.group(1).strip():
        return quoted.group(1).strip()

    title = text
    for pattern in _TITLE_KEYWORDS:
        title = pattern.sub(" ", title)
    title = _TITLE_TRAILING_CLAUSE.sub(" ", title)
    title = _TITLE_TEMPORAL.sub(" ", title)
    title = re.sub(r"\s+", " ", title).strip(" .,!?;:-")
    title = _TITLE_LEADING_ARTICLES.sub("", title).strip()

    return title or DEFAULT_TITLE


def extract_attendees(text: str) -> list[str] | None:
    """Names from "with A, B and C" and "invite/add X" clauses, first-seen order."""
    attendees: list[str] = []

    for match in _WITH_ATTENDEES.finditer(text):
        for raw in re.split(_LIST_SEPARATOR, match.group(1)):
            name = _clean_name(raw)
            if name:
                attendees.append(name)

    for match in _INVITE_ATTENDEE.finditer(text):
        name = _clean_name(match.group(1))
        if name:
            attendees.append(name)

    unique = list(dict.fromkeys(attendees))
    return unique or None


def extract_location(text: str) -> str | None:
    """Place named by "at/in <Capitalized phrase>" or "location: ..."."""
    for pattern in _LOCATION_PATTERNS:
        for match in pattern.finditer(text):
            location = match.group(1).strip()
            if location and not _LOCATION_TEMPORAL.search(location):
                return location
    return None


def extract_contact_name(text: str) -> str | None:
    """Name from "contact/person named X", "X's email" or "phone number for X"."""
    for pattern in _CONTACT_PATTERNS:
        for match in pattern.finditer(text):
            name = _clean_name(match.group(1))
            if name:
                return name
    return None


# ─────────────────────────────────────────────────────────────────────────────
# Ranges, recurrence, reminders
# ─────────────────────────────────────────────────────────────────────────────


def _day_range(day: datetime) -> tuple[datetime, datetime]:
    return start_of(day, "day"), end_of(day, "day")


def _week_range(day: datetime) -> tuple[datetime, datetime]:
    return start_of(day, "week"), end_of(day, "week")


def _month_range(day: datetime) -> tuple[datetime, datetime]:
    return start_of(day, "month"), end_of(day, "month")


def _year_range(day: datetime) -> tuple[datetime, datetime]:
    return start_of(day, "year"), end_of(day, "year")


_NAMED_RANGES: list[tuple[re.Pattern[str], Callable[[datetime], tuple[datetime, datetime]]]] = [
    (re.compile(r"\b(?:today|tonight)\b", re.IGNORECASE), _day_range),
    (re.compile(r"\btomorrow\b", re.IGNORECASE), lambda now: _day_range(add_time(now, 1, "days"))),
    (re.compile(r"\byesterday\b", re.IGNORECASE), lambda now: _day_range(add_time(now, -1, "days"))),
    (re.compile(r"\bthis\s+week\b", re.IGNORECASE), _week_range),
    (re.compile(r"\bnext\s+week\b", re.IGNORECASE), lambda now: _week_range(add_time(now, 7, "days"))),
    (re.compile(r"\bthis\s+month\b", re.IGNORECASE), _month_range),
    (
        re.compile(r"\bnext\s+month\b", re.IGNORECASE),
        lambda now: _month_range(add_time(start_of(now, "month"), 1, "months")),
    ),
    (re.compile(r"\bthis\s+year\b", re.IGNORECASE), _year_range),
    (
        re.compile(r"\bnext\s+year\b", re.IGNORECASE),
        lambda now: _year_range(add_time(start_of(now, "year"), 1, "years")),
    ),
]


def extract_time_range(text: str, now: datetime | None = None) -> TimeRange | None:
    """Window a query covers: a named range, else the whole day of a resolved date."""
    now = _reference(now)

    for pattern, compute in _NAMED_RANGES:
        if pattern.search(text):
            start, end = compute(now)
            return TimeRange(start=start, end=end)

    day = extract_date_time(text, now)
    if day is not None:
        start, end = _day_range(day)
        return TimeRange(start=start, end=end)
    return None


def _weekly_days(text: str) -> list[int]:
    days: set[int] = set()
    if _EVERY_WEEKDAY.search(text):
        days.update(range(1, 6))
    for match in _EVERY_WEEKDAY_LIST.finditer(text):
        for name in re.findall(_WEEKDAY, match.group(1), re.IGNORECASE):
            days.add(WEEKDAYS.index(name.lower()))
    for match in _PLURAL_WEEKDAY.finditer(text):
        days.add(WEEKDAYS.index(match.group(1).lower()))
    return sorted(days)


def _frequency(text: str) -> tuple[RecurrenceFrequency, int]:
    explicit = _EVERY_N_UNITS.search(text)
    if explicit:
        return _UNIT_FREQUENCY[explicit.group(2).lower()], max(1, int(explicit.group(1)))

    every_other = _EVERY_OTHER_UNIT.search(text)
    if every_other:
        return _UNIT_FREQUENCY[every_other.group(1).lower()], 2

    for pattern, frequency in _FREQUENCY_KEYWORDS:
        if pattern.search(text):
            return frequency, 1
    return RecurrenceFrequency.DAILY, 1


def _terminal_condition(text: str, now: datetime) -> dict[str, datetime | int]:
    """end_date or occurrences, whichever clause comes first in the text."""
    clauses: list[tuple[int, str, datetime | int]] = []

    until = _UNTIL.search(text)
    if until:
        clause = until.group(1)
        end_date = extract_date_time(clause, now)
        if end_date is not None:
            if extract_time_of_day(clause) is None:
                end_date = end_of(end_date, "day")
            clauses.append((until.start(), "end_date", end_date))

    count = _FOR_OCCURRENCES.search(text)
    if count and int(count.group(1)) >= 1:
        clauses.append((count.start(), "occurrences", int(count.group(1))))

    if not clauses:
        return {}
    _, field_name, value = min(clauses, key=lambda clause: clause[0])
    return {field_name: value}


def extract_recurring_pattern(text: str, now: datetime | None = None) -> RecurringPattern | None:
    """Repeating schedule described by the text, if any recurrence keyword is present."""
    if not _RECURRENCE_TRIGGER.search(text):
        return None
    now = _reference(now)

    frequency, interval = _frequency(text)
    fields: dict = {"frequency": frequency, "interval": interval}

    if frequency == RecurrenceFrequency.WEEKLY:
        days = _weekly_days(text)
        if days:
            fields["days_of_week"] = days

    if frequency == RecurrenceFrequency.MONTHLY:
        day_of_month = _DAY_OF_MONTH.search(text)
        if day_of_month and 1 <= int(day_of_month.group(1)) <= 31:
            fields["day_of_month"] = int(day_of_month.group(1))

    fields.update(_terminal_condition(text, now))

    try:
        return RecurringPattern(**fields)
    except ValidationError:
        return None


def extract_reminder(text: str, now: datetime | None = None) -> ReminderInfo:
    """Reminder instant (if any) and channel; push unless email or SMS is named."""
    if _EMAIL_CHANNEL.search(text):
        reminder_type = ReminderType.EMAIL
    elif _SMS_CHANNEL.search(text):
        reminder_type = ReminderType.SMS
    else:
        reminder_type = ReminderType.PUSH

    return ReminderInfo(
        reminder_time=extract_date_time(text, now),
        reminder_type=reminder_type,
    )
