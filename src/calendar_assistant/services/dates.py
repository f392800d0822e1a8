"""Calendar arithmetic and recurrence expansion.

Weeks start on Sunday (weekday numbers are Sunday=0 .. Saturday=6, matching
RecurringPattern.days_of_week). Month and year shifts roll a day-of-month
overflow forward (Jan 31 + 1 month is Mar 3, or Mar 2 in a leap year) rather
than clamping to the end of the month.
"""

import calendar
import math
import re
from collections.abc import Iterator
from datetime import datetime, timedelta
from typing import Literal

from calendar_assistant.services.commands import RecurrenceFrequency, RecurringPattern

TimeUnit = Literal["minutes", "hours", "days", "weeks", "months", "years"]
PeriodUnit = Literal["day", "week", "month", "year"]

# Millisecond precision: end_of("day") is 23:59:59.999
END_OF_DAY_MICROSECOND = 999_000

_UNIT_SECONDS = {
    "minutes": 60,
    "hours": 60 * 60,
    "days": 60 * 60 * 24,
    "weeks": 60 * 60 * 24 * 7,
}

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_US_DATE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")
_DASHED_DATE = re.compile(r"^(\d{2})-(\d{2})-(\d{4})$")


def sunday_weekday(dt: datetime) -> int:
    """Weekday number with Sunday=0."""
    return (dt.weekday() + 1) % 7


def _rollover(dt: datetime, year: int, month: int, day: int) -> datetime:
    """Move dt to year/month/day, letting month and day overflow forward."""
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    first = dt.replace(year=year, month=month, day=1)
    return first + timedelta(days=day - 1)


def add_time(dt: datetime, amount: int, unit: TimeUnit) -> datetime:
    """Shift dt by a signed amount of calendar units."""
    if unit == "minutes":
        return dt + timedelta(minutes=amount)
    if unit == "hours":
        return dt + timedelta(hours=amount)
    if unit == "days":
        return dt + timedelta(days=amount)
    if unit == "weeks":
        return dt + timedelta(weeks=amount)
    if unit == "months":
        return _rollover(dt, dt.year, dt.month + amount, dt.day)
    if unit == "years":
        return _rollover(dt, dt.year + amount, dt.month, dt.day)
    raise ValueError(f"Unsupported time unit: {unit}")


def start_of(dt: datetime, unit: PeriodUnit) -> datetime:
    midnight = dt.replace(hour=0, minute=0, second=0, microsecond=0)
    if unit == "day":
        return midnight
    if unit == "week":
        return midnight - timedelta(days=sunday_weekday(dt))
    if unit == "month":
        return midnight.replace(day=1)
    if unit == "year":
        return midnight.replace(month=1, day=1)
    raise ValueError(f"Unsupported period: {unit}")


def end_of(dt: datetime, unit: PeriodUnit) -> datetime:
    last = dt.replace(hour=23, minute=59, second=59, microsecond=END_OF_DAY_MICROSECOND)
    if unit == "day":
        return last
    if unit == "week":
        return last + timedelta(days=6 - sunday_weekday(dt))
    if unit == "month":
        return last.replace(day=calendar.monthrange(dt.year, dt.month)[1])
    if unit == "year":
        return last.replace(month=12, day=31)
    raise ValueError(f"Unsupported period: {unit}")


def is_same_day(first: datetime, second: datetime) -> bool:
    return first.date() == second.date()


def date_diff(start: datetime, end: datetime, unit: TimeUnit) -> int:
    """Difference end - start in whole units.

    Minutes through weeks are floored elapsed time; months and years compare
    calendar fields only.
    """
    if unit in _UNIT_SECONDS:
        return math.floor((end - start).total_seconds() / _UNIT_SECONDS[unit])
    if unit == "months":
        return (end.year - start.year) * 12 + end.month - start.month
    if unit == "years":
        return end.year - start.year
    raise ValueError(f"Unsupported time unit: {unit}")


def format_date(dt: datetime, fmt: str = "YYYY-MM-DD") -> str:
    """Render dt with YYYY/MM/DD/HH/mm/ss tokens."""
    return (
        fmt.replace("YYYY", f"{dt.year:04d}")
        .replace("MM", f"{dt.month:02d}")
        .replace("DD", f"{dt.day:02d}")
        .replace("HH", f"{dt.hour:02d}")
        .replace("mm", f"{dt.minute:02d}")
        .replace("ss", f"{dt.second:02d}")
    )


def parse_date(value: str) -> datetime | None:
    """Parse ISO 8601, YYYY-MM-DD, MM/DD/YYYY or DD-MM-YYYY; None if unparseable."""
    value = value.strip()
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        pass

    for pattern, order in (
        (_ISO_DATE, ("year", "month", "day")),
        (_US_DATE, ("month", "day", "year")),
        (_DASHED_DATE, ("day", "month", "year")),
    ):
        match = pattern.match(value)
        if match:
            parts = dict(zip(order, (int(group) for group in match.groups())))
            try:
                return datetime(parts["year"], parts["month"], parts["day"])
            except ValueError:
                return None
    return None


def format_duration(minutes: int) -> str:
    """Human readable duration, e.g. "1 hour 30 minutes"."""
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"

    hours, remaining = divmod(minutes, 60)
    hours_text = f"{hours} hour{'s' if hours != 1 else ''}"
    if remaining == 0:
        return hours_text
    return f"{hours_text} {remaining} minute{'s' if remaining != 1 else ''}"


def _next_listed_weekday(current: datetime, days: list[int], interval: int) -> datetime:
    today = sunday_weekday(current)
    later = [day for day in days if day > today]
    if later:
        return current + timedelta(days=later[0] - today)
    # Wrap to the first listed day of the week `interval` weeks ahead
    return current + timedelta(days=7 * interval - today + days[0])


def _advance(current: datetime, pattern: RecurringPattern) -> datetime:
    interval = pattern.interval or 1

    if pattern.frequency == RecurrenceFrequency.DAILY:
        return add_time(current, interval, "days")

    if pattern.frequency == RecurrenceFrequency.WEEKLY:
        if pattern.days_of_week:
            return _next_listed_weekday(current, pattern.days_of_week, interval)
        return add_time(current, interval * 7, "days")

    if pattern.frequency == RecurrenceFrequency.MONTHLY:
        if pattern.day_of_month:
            return _rollover(current, current.year, current.month + interval, pattern.day_of_month)
        return add_time(current, interval, "months")

    return add_time(current, interval, "years")


def iter_occurrences(start: datetime, pattern: RecurringPattern) -> Iterator[datetime]:
    """Yield the anchor and each later occurrence until a cap is reached.

    The anchor counts as occurrence #1 towards pattern.occurrences. Without a
    cap the iterator is infinite.
    """
    current = start
    count = 0
    while True:
        if pattern.end_date is not None and current > pattern.end_date:
            return
        if pattern.occurrences is not None and count >= pattern.occurrences:
            return
        yield current
        count += 1
        try:
            current = _advance(current, pattern)
        except (OverflowError, ValueError):
            # Ran past datetime.max
            return


def get_next_occurrence(
    start: datetime,
    pattern: RecurringPattern,
    after: datetime | None = None,
) -> datetime | None:
    """First occurrence strictly after `after` (default: now).

    The anchor itself is never returned. Returns None once end_date or the
    occurrence count is exhausted.
    """
    if after is None:
        after = datetime.now(start.tzinfo)

    if pattern.end_date is not None and after > pattern.end_date:
        return None

    occurrences = iter_occurrences(start, pattern)
    next(occurrences, None)
    for occurrence in occurrences:
        if occurrence > after:
            return occurrence
    return None


def get_occurrences_in_range(
    start: datetime,
    pattern: RecurringPattern,
    range_start: datetime,
    range_end: datetime,
) -> list[datetime]:
    """All occurrences inside [range_start, range_end], in order."""
    if start > range_end:
        return []
    if pattern.end_date is not None and pattern.end_date < range_start:
        return []

    occurrences: list[datetime] = []
    for occurrence in iter_occurrences(start, pattern):
        if occurrence > range_end:
            break
        if occurrence >= range_start:
            occurrences.append(occurrence)
    return occurrences
