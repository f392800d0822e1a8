"""Tests for the parse result cache."""

import time

from calendar_assistant.services.cache import ParseCache
from calendar_assistant.services.commands import CommandEntities, CommandIntent, ParsedCommand


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestParseCache:
    def setup_method(self):
        self.clock = FakeClock()
        self.cache = ParseCache(default_ttl=60, clock=self.clock, sweep_interval=60)

    def test_round_trip(self):
        self.cache.set("key", {"intent": "CREATE_EVENT"})
        assert self.cache.get("key") == {"intent": "CREATE_EVENT"}

    def test_missing_key(self):
        assert self.cache.get("nope") is None

    def test_expires_after_ttl(self):
        self.cache.set("key", "value")
        self.clock.advance(60)
        assert self.cache.get("key") == "value"

        self.clock.advance(1)
        assert self.cache.get("key") is None
        assert self.cache.size() == 0

    def test_per_call_ttl(self):
        self.cache.set("short", "value", ttl=5)
        self.clock.advance(6)
        assert self.cache.get("short") is None

    def test_values_are_copied(self):
        command = ParsedCommand(
            intent=CommandIntent.CREATE_EVENT,
            entities=CommandEntities(attendees=["John"]),
        )
        self.cache.set("key", command)
        command.entities.attendees.append("Mallory")

        cached = self.cache.get("key")
        assert cached.entities.attendees == ["John"]

        cached.entities.attendees.append("Eve")
        assert self.cache.get("key").entities.attendees == ["John"]

    def test_delete_and_clear(self):
        self.cache.set("a", 1)
        self.cache.set("b", 2)

        assert self.cache.delete("a") is True
        assert self.cache.delete("a") is False
        assert self.cache.size() == 1

        self.cache.clear()
        assert self.cache.size() == 0

    def test_sweep_removes_only_expired(self):
        self.cache.set("old", 1, ttl=10)
        self.cache.set("fresh", 2, ttl=100)
        self.clock.advance(50)

        assert self.cache.sweep() == 1
        assert self.cache.size() == 1
        assert self.cache.get("fresh") == 2


class TestSweeperThread:
    def test_background_sweep(self):
        clock = FakeClock()
        cache = ParseCache(default_ttl=1, clock=clock, sweep_interval=0.01)
        cache.set("key", "value")
        clock.advance(5)

        cache.start_sweeper()
        try:
            deadline = time.monotonic() + 2
            while cache.size() and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            cache.stop_sweeper(timeout=1)

        assert cache.size() == 0

    def test_start_is_idempotent_and_stop_is_safe(self):
        cache = ParseCache(sweep_interval=10)
        cache.start_sweeper()
        first = cache._sweeper
        cache.start_sweeper()
        assert cache._sweeper is first

        cache.stop_sweeper(timeout=1)
        assert cache._sweeper is None
        cache.stop_sweeper()
