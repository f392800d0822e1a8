"""Tests for keyword intent classification."""

import pytest

from calendar_assistant.services.commands import CommandIntent
from calendar_assistant.services.intent import detect_intent, normalize


@pytest.mark.parametrize(
    ("text", "intent"),
    [
        ("Schedule a meeting with John tomorrow at 2pm", CommandIntent.CREATE_EVENT),
        ("Book an appointment with the dentist", CommandIntent.CREATE_EVENT),
        ("Create a team standup every Monday at 9am", CommandIntent.CREATE_EVENT),
        ("Reschedule the budget meeting to next Wednesday", CommandIntent.UPDATE_EVENT),
        ("Move the all-hands meeting to the main auditorium", CommandIntent.UPDATE_EVENT),
        ("Cancel the 3pm meeting today", CommandIntent.DELETE_EVENT),
        ("Delete the training session on Friday", CommandIntent.DELETE_EVENT),
        ("What's on my calendar for next Tuesday?", CommandIntent.LIST_EVENTS),
        ("Show me my schedule for this week", CommandIntent.LIST_EVENTS),
        ("List all events for next month", CommandIntent.LIST_EVENTS),
        ("When is my next meeting with Sarah?", CommandIntent.QUERY_SCHEDULE),
        ("What time is the standup", CommandIntent.QUERY_SCHEDULE),
        ("Add contact John Smith with email john@example.com", CommandIntent.ADD_CONTACT),
        ("Find contact information for Sarah Johnson", CommandIntent.QUERY_CONTACT),
        ("Remind me to call the dentist in 2 hours", CommandIntent.SET_REMINDER),
        ("Set a reminder to submit the report tomorrow at 9am", CommandIntent.SET_REMINDER),
        ("When am I free for a quick chat?", CommandIntent.FIND_FREE_TIME),
        ("Find time for a 2-hour workshop next week", CommandIntent.FIND_TIME),
        ("Is Sarah available on Thursday?", CommandIntent.FIND_TIME),
        ("Check if I have any conflicts next Monday afternoon", CommandIntent.CHECK_CONFLICTS),
        ("Am I double-booked on Friday?", CommandIntent.CHECK_CONFLICTS),
        ("Add Sarah to the budget review meeting", CommandIntent.ADD_ATTENDEE),
        ("Invite John to the project kickoff", CommandIntent.ADD_ATTENDEE),
        ("invite Sarah to the budget meeting", CommandIntent.ADD_ATTENDEE),
        ("Hello there", CommandIntent.UNKNOWN),
    ],
)
def test_detect_intent(text, intent):
    assert detect_intent(text) == intent


class TestPrecedence:
    def test_add_person_to_meeting_beats_create(self):
        # Both the attendee and creation rules match; attendee is listed first
        assert detect_intent("Add Mike to the weekly meeting") == CommandIntent.ADD_ATTENDEE

    def test_invite_person_to_meeting_is_an_attendee(self):
        assert detect_intent("invite Sarah to the budget meeting") == CommandIntent.ADD_ATTENDEE
        assert detect_intent("Invite Sarah and add a budget meeting to the team") == CommandIntent.ADD_ATTENDEE

    def test_add_to_calendar_is_not_an_attendee(self):
        assert detect_intent("Add a meeting to my calendar") == CommandIntent.CREATE_EVENT

    def test_recurring_creation_without_event_noun(self):
        assert detect_intent("Set up a daily sync") == CommandIntent.CREATE_EVENT

    def test_reschedule_is_not_schedule(self):
        assert detect_intent("reschedule the session") == CommandIntent.UPDATE_EVENT

    def test_case_and_typographic_apostrophes(self):
        assert detect_intent("WHAT’S ON MY CALENDAR") == CommandIntent.LIST_EVENTS


def test_normalize():
    assert normalize("  What’s Up  ") == "what's up"
