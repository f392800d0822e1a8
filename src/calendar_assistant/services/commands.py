"""Typed output of the command parsing pipeline.

Entity fields are all optional and only populated when an extractor (or the
remote model) produced a value, so `present_fields()` tells the calendar and
contact routers exactly what the user said. Serialized form uses camelCase
keys and leaves absent fields out entirely.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CommandIntent(str, Enum):
    CREATE_EVENT = "CREATE_EVENT"
    UPDATE_EVENT = "UPDATE_EVENT"
    DELETE_EVENT = "DELETE_EVENT"
    LIST_EVENTS = "LIST_EVENTS"
    QUERY_SCHEDULE = "QUERY_SCHEDULE"
    ADD_CONTACT = "ADD_CONTACT"
    QUERY_CONTACT = "QUERY_CONTACT"
    SET_REMINDER = "SET_REMINDER"
    FIND_TIME = "FIND_TIME"
    FIND_FREE_TIME = "FIND_FREE_TIME"
    ADD_ATTENDEE = "ADD_ATTENDEE"
    CHECK_CONFLICTS = "CHECK_CONFLICTS"
    UNKNOWN = "UNKNOWN"


class RecurrenceFrequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class ReminderType(str, Enum):
    EMAIL = "EMAIL"
    PUSH = "PUSH"
    SMS = "SMS"


class CommandModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys and absent fields omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TimeRange(CommandModel):
    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _start_before_end(self) -> "TimeRange":
        if self.start >= self.end:
            raise ValueError("time range start must be before end")
        return self


class RecurringPattern(CommandModel):
    """A repeating schedule.

    days_of_week uses Sunday=0 .. Saturday=6. At most one terminal condition
    (end_date or occurrences) is set on an instance.
    """

    frequency: RecurrenceFrequency
    interval: int = Field(default=1, ge=1)
    days_of_week: list[int] | None = None
    day_of_month: int | None = Field(default=None, ge=1, le=31)
    end_date: datetime | None = None
    occurrences: int | None = Field(default=None, ge=1)

    @field_validator("days_of_week")
    @classmethod
    def _normalize_days(cls, value: list[int] | None) -> list[int] | None:
        if value is None:
            return None
        for day in value:
            if not 0 <= day <= 6:
                raise ValueError(f"day of week out of range: {day}")
        return sorted(set(value))

    @model_validator(mode="after")
    def _single_terminal_condition(self) -> "RecurringPattern":
        if self.end_date is not None and self.occurrences is not None:
            raise ValueError("end_date and occurrences are mutually exclusive")
        return self


class CommandEntities(CommandModel):
    date_time: datetime | None = None
    duration: int | None = Field(default=None, ge=0)  # minutes
    title: str | None = None
    attendees: list[str] | None = None
    location: str | None = None
    description: str | None = None
    contact_name: str | None = None
    time_range: TimeRange | None = None
    recurring_pattern: RecurringPattern | None = None
    event_id: str | None = None
    reminder_time: datetime | None = None
    reminder_type: ReminderType | None = None

    @field_validator("attendees")
    @classmethod
    def _dedupe_attendees(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        # First-seen order wins
        return list(dict.fromkeys(name for name in value if name))

    def present_fields(self) -> set[str]:
        """Names of the entity fields that carry a value."""
        return {name for name in type(self).model_fields if getattr(self, name) is not None}


class ParsedCommand(CommandModel):
    intent: CommandIntent = CommandIntent.UNKNOWN
    entities: CommandEntities = Field(default_factory=CommandEntities)
    confidence: float = Field(default=0.3, ge=0.0, le=1.0)
    original_text: str = ""
