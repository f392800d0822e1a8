"""Clock and timezone handling for command parsing.

- All relative expressions ("tomorrow", "at 2pm") resolve in the user's
  configured timezone
- Datetimes handed to collaborators are always timezone-aware
"""

from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from calendar_assistant.config import settings


class TimezoneService:
    """Reference clock for the parsing pipeline.

    Holds the user's IANA timezone and hands out aware datetimes in it.
    """

    def __init__(self, default_timezone: str | None = None):
        """Initialize timezone service.

        Args:
            default_timezone: IANA timezone name. Defaults to settings.user_timezone.
        """
        self._default_tz_name = default_timezone or settings.user_timezone
        try:
            self._default_tz = ZoneInfo(self._default_tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            # Fallback to UTC if invalid timezone
            self._default_tz_name = "UTC"
            self._default_tz = ZoneInfo("UTC")

    @property
    def default_timezone(self) -> str:
        """Get the default timezone name."""
        return self._default_tz_name

    @property
    def tz(self) -> ZoneInfo:
        return self._default_tz

    def now(self) -> datetime:
        """Get current time in user's timezone."""
        return datetime.now(self._default_tz)

    def localize(self, dt: datetime) -> datetime:
        """Attach the user timezone to a naive datetime or convert an aware one.

        Naive values are assumed to already be wall-clock time in the user's zone.
        """
        if dt.tzinfo is None:
            return dt.replace(tzinfo=self._default_tz)
        return dt.astimezone(self._default_tz)

    def format_for_display(self, dt: datetime) -> str:
        """Format a time of day as "2pm" or "9:30am"."""
        hour = dt.hour
        minute = dt.minute

        if hour == 0:
            time_str = "12"
            ampm = "am"
        elif hour < 12:
            time_str = str(hour)
            ampm = "am"
        elif hour == 12:
            time_str = "12"
            ampm = "pm"
        else:
            time_str = str(hour - 12)
            ampm = "pm"

        if minute > 0:
            time_str = f"{time_str}:{minute:02d}"

        return f"{time_str}{ampm}"


# Module-level singleton
_timezone_service: TimezoneService | None = None


def get_timezone_service(default_timezone: str | None = None) -> TimezoneService:
    """Get the singleton TimezoneService instance.

    Args:
        default_timezone: Optional timezone to use. Only used on first call.
    """
    global _timezone_service
    if _timezone_service is None:
        _timezone_service = TimezoneService(default_timezone)
    return _timezone_service


def reset_timezone_service() -> None:
    """Reset the singleton (useful for testing)."""
    global _timezone_service
    _timezone_service = None


def now() -> datetime:
    """Get current time in user's timezone."""
    return get_timezone_service().now()


def localize(dt: datetime) -> datetime:
    """Localize a datetime to the user's timezone."""
    return get_timezone_service().localize(dt)
