"""Sentry error tracking for the calendar assistant.

Usage:
    # Once at startup
    from calendar_assistant.sentry import init_sentry
    init_sentry()

    # Report an exception that was recovered from
    from calendar_assistant.sentry import capture_exception
    try:
        parser.parse(text)
    except Exception as e:
        capture_exception(e)

All helpers are no-ops until `init_sentry` succeeds, so library code can
call them unconditionally.
"""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version
from typing import TYPE_CHECKING, Any, cast

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from calendar_assistant.config import settings

if TYPE_CHECKING:
    from sentry_sdk._types import Event, Hint

logger = logging.getLogger(__name__)

SENSITIVE_KEYS = frozenset(
    [
        "token",
        "api_key",
        "apikey",
        "secret",
        "password",
        "authorization",
        "bearer",
        "openrouter_api_key",
        "sentry_dsn",
    ]
)

_initialized = False


def init_sentry(
    dsn: str | None = None,
    environment: str | None = None,
    release: str | None = None,
    traces_sample_rate: float = 0.0,
    debug: bool = False,
) -> bool:
    """Initialize the Sentry SDK.

    Args:
        dsn: Sentry DSN. Defaults to settings.sentry_dsn; empty disables Sentry.
        environment: Environment name. Defaults to settings.sentry_environment.
        release: Release version. Defaults to the installed package version.
        traces_sample_rate: Sample rate for performance tracing (0.0-1.0).
        debug: Enable Sentry debug mode.

    Returns:
        True if Sentry is initialized, False if skipped.
    """
    global _initialized

    if _initialized:
        logger.debug("Sentry already initialized")
        return True

    dsn = settings.sentry_dsn if dsn is None else dsn
    if not dsn:
        logger.info("No SENTRY_DSN configured, error tracking disabled")
        return False

    environment = environment or settings.sentry_environment
    if release is None:
        try:
            release = f"calendar-assistant@{version('calendar-assistant')}"
        except PackageNotFoundError:
            release = "calendar-assistant@unknown"

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        release=release,
        traces_sample_rate=traces_sample_rate,
        debug=debug,
        integrations=[LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)],
        send_default_pii=False,
        attach_stacktrace=True,
        before_send=_before_send,
    )

    _initialized = True
    logger.info("Sentry initialized: environment=%s, release=%s", environment, release)
    return True


def _before_send(event: Event, hint: Hint) -> Event | None:
    """Drop expected network noise and scrub secrets before sending."""
    if "exc_info" in hint:
        exc_type, _, _ = hint["exc_info"]
        # Retried before fallback, not actionable
        if exc_type.__name__ in ("TimeoutError", "ConnectionError", "ConnectTimeout", "ReadTimeout"):
            return None

    if "request" in event:
        _scrub_dict(cast(dict[str, Any], event["request"]))

    if "breadcrumbs" in event:
        breadcrumbs = cast(dict[str, Any], event["breadcrumbs"])
        for breadcrumb in breadcrumbs.get("values", []):
            if "data" in breadcrumb:
                _scrub_dict(breadcrumb["data"])

    return event


def _scrub_dict(data: dict[str, Any]) -> None:
    """Scrub sensitive keys from a dictionary in-place."""
    for key in list(data.keys()):
        if key.lower() in SENSITIVE_KEYS:
            data[key] = "[REDACTED]"
        elif isinstance(data[key], dict):
            _scrub_dict(data[key])


def set_tag(key: str, value: str) -> None:
    if not _initialized:
        return
    sentry_sdk.set_tag(key, value)


def add_breadcrumb(
    message: str,
    category: str = "default",
    level: str = "info",
    data: dict[str, Any] | None = None,
) -> None:
    """Add a breadcrumb shown with the next error event."""
    if not _initialized:
        return
    sentry_sdk.add_breadcrumb(message=message, category=category, level=level, data=data or {})


def capture_exception(exception: BaseException | None = None) -> str | None:
    """Send an exception to Sentry; returns the event ID, or None when disabled."""
    if not _initialized:
        return None
    return sentry_sdk.capture_exception(exception)


def flush(timeout: float = 2.0) -> None:
    """Flush pending events before shutdown."""
    if not _initialized:
        return
    sentry_sdk.flush(timeout=timeout)


def is_enabled() -> bool:
    return _initialized


def reset_sentry() -> None:
    """Forget initialization state (useful for testing)."""
    global _initialized
    _initialized = False
