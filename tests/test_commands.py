"""Tests for parsed command models."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from calendar_assistant.services.commands import (
    CommandEntities,
    CommandIntent,
    ParsedCommand,
    RecurrenceFrequency,
    RecurringPattern,
    TimeRange,
)

UTC = ZoneInfo("UTC")


class TestTimeRange:
    def test_start_must_precede_end(self):
        start = datetime(2026, 10, 14, tzinfo=UTC)
        with pytest.raises(ValidationError):
            TimeRange(start=start, end=start)
        with pytest.raises(ValidationError):
            TimeRange(start=start, end=start - timedelta(minutes=1))


class TestRecurringPattern:
    def test_defaults(self):
        pattern = RecurringPattern(frequency=RecurrenceFrequency.DAILY)
        assert pattern.interval == 1
        assert pattern.days_of_week is None

    def test_days_sorted_and_unique(self):
        pattern = RecurringPattern(frequency="WEEKLY", days_of_week=[5, 1, 5, 3])
        assert pattern.days_of_week == [1, 3, 5]

    def test_day_out_of_range(self):
        with pytest.raises(ValidationError):
            RecurringPattern(frequency="WEEKLY", days_of_week=[7])

    def test_interval_must_be_positive(self):
        with pytest.raises(ValidationError):
            RecurringPattern(frequency="DAILY", interval=0)

    def test_single_terminal_condition(self):
        with pytest.raises(ValidationError):
            RecurringPattern(
                frequency="DAILY",
                end_date=datetime(2026, 12, 1, tzinfo=UTC),
                occurrences=3,
            )

    def test_accepts_camel_case_input(self):
        pattern = RecurringPattern.model_validate({"frequency": "MONTHLY", "dayOfMonth": 15})
        assert pattern.day_of_month == 15


class TestCommandEntities:
    def test_attendees_deduplicated_in_order(self):
        entities = CommandEntities(attendees=["Sarah", "John", "Sarah"])
        assert entities.attendees == ["Sarah", "John"]

    def test_present_fields(self):
        entities = CommandEntities(title="Standup", duration=15)
        assert entities.present_fields() == {"title", "duration"}

    def test_negative_duration_rejected(self):
        with pytest.raises(ValidationError):
            CommandEntities(duration=-5)


class TestParsedCommand:
    def test_defaults(self):
        command = ParsedCommand()
        assert command.intent == CommandIntent.UNKNOWN
        assert command.confidence == 0.3
        assert command.entities.present_fields() == set()

    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            ParsedCommand(confidence=1.5)

    def test_to_dict_uses_camel_case_and_omits_absent(self):
        command = ParsedCommand(
            intent=CommandIntent.CREATE_EVENT,
            entities=CommandEntities(
                contact_name="John",
                recurring_pattern=RecurringPattern(frequency="WEEKLY", days_of_week=[1]),
            ),
            confidence=0.6,
            original_text="x",
        )
        data = command.to_dict()

        assert data == {
            "intent": "CREATE_EVENT",
            "entities": {
                "contactName": "John",
                "recurringPattern": {"frequency": "WEEKLY", "interval": 1, "daysOfWeek": [1]},
            },
            "confidence": 0.6,
            "originalText": "x",
        }
