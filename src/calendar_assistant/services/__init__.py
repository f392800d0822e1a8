"""Calendar command parsing services.

Intent classification, entity extraction, local and LLM parsers, the parse
cache and the facade that ties them together. Imports are lazy so that
importing one piece does not pull in the HTTP stack.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

_EXPORTS: dict[str, tuple[str, str]] = {
    # Commands
    "CommandEntities": ("calendar_assistant.services.commands", "CommandEntities"),
    "CommandIntent": ("calendar_assistant.services.commands", "CommandIntent"),
    "ParsedCommand": ("calendar_assistant.services.commands", "ParsedCommand"),
    "RecurrenceFrequency": ("calendar_assistant.services.commands", "RecurrenceFrequency"),
    "RecurringPattern": ("calendar_assistant.services.commands", "RecurringPattern"),
    "ReminderType": ("calendar_assistant.services.commands", "ReminderType"),
    "TimeRange": ("calendar_assistant.services.commands", "TimeRange"),
    # Dates
    "add_time": ("calendar_assistant.services.dates", "add_time"),
    "date_diff": ("calendar_assistant.services.dates", "date_diff"),
    "end_of": ("calendar_assistant.services.dates", "end_of"),
    "format_date": ("calendar_assistant.services.dates", "format_date"),
    "format_duration": ("calendar_assistant.services.dates", "format_duration"),
    "get_next_occurrence": ("calendar_assistant.services.dates", "get_next_occurrence"),
    "get_occurrences_in_range": ("calendar_assistant.services.dates", "get_occurrences_in_range"),
    "is_same_day": ("calendar_assistant.services.dates", "is_same_day"),
    "parse_date": ("calendar_assistant.services.dates", "parse_date"),
    "start_of": ("calendar_assistant.services.dates", "start_of"),
    # Timezone
    "TimezoneService": ("calendar_assistant.services.timezone", "TimezoneService"),
    "get_timezone_service": ("calendar_assistant.services.timezone", "get_timezone_service"),
    "reset_timezone_service": ("calendar_assistant.services.timezone", "reset_timezone_service"),
    # Intent
    "detect_intent": ("calendar_assistant.services.intent", "detect_intent"),
    # Parsers
    "LocalCommandParser": ("calendar_assistant.services.parser", "LocalCommandParser"),
    "RemoteCommandParser": ("calendar_assistant.services.llm_parser", "RemoteCommandParser"),
    "RemoteParseError": ("calendar_assistant.services.llm_parser", "RemoteParseError"),
    "OpenRouterClient": ("calendar_assistant.services.llm_client", "OpenRouterClient"),
    "RateLimitCooldown": ("calendar_assistant.services.llm_client", "RateLimitCooldown"),
    # Cache
    "ParseCache": ("calendar_assistant.services.cache", "ParseCache"),
    # Facade
    "CommandParsingService": ("calendar_assistant.services.nlp", "CommandParsingService"),
    "get_command_parser": ("calendar_assistant.services.nlp", "get_command_parser"),
    "parse_command": ("calendar_assistant.services.nlp", "parse_command"),
    "reset_command_parser": ("calendar_assistant.services.nlp", "reset_command_parser"),
}

__all__ = list(_EXPORTS.keys())


def __getattr__(name: str) -> Any:
    if name not in _EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = _EXPORTS[name]
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(list(globals().keys()) + list(_EXPORTS.keys()))
