"""Entry point for turning a user's calendar command into a ParsedCommand.

Order of resolution:
1. Cached result for the same (case- and whitespace-normalized) text
2. Remote LLM parser, when an API key is configured and no rate-limit
   cool-down is active
3. Local rule-based parser

Callers always get a ParsedCommand back for non-empty text. Failures
anywhere in the remote path end in a local parse.
"""

from __future__ import annotations

import logging

from calendar_assistant import sentry
from calendar_assistant.config import Settings, settings
from calendar_assistant.services.cache import ParseCache
from calendar_assistant.services.commands import ParsedCommand
from calendar_assistant.services.llm_client import RateLimitCooldown, get_rate_limit_cooldown
from calendar_assistant.services.llm_parser import RemoteCommandParser
from calendar_assistant.services.parser import LocalCommandParser

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "nlp:"


def cache_key(text: str) -> str:
    return CACHE_KEY_PREFIX + text.lower().strip()


class CommandParsingService:
    def __init__(
        self,
        *,
        local_parser: LocalCommandParser | None = None,
        remote_parser: RemoteCommandParser | None = None,
        cache: ParseCache | None = None,
        cooldown: RateLimitCooldown | None = None,
        config: Settings | None = None,
    ) -> None:
        self.config = config or settings
        self.local_parser = local_parser or LocalCommandParser()
        self.cooldown = cooldown or get_rate_limit_cooldown()
        if remote_parser is None and self.config.has_openrouter:
            remote_parser = RemoteCommandParser(base_parser=self.local_parser, cooldown=self.cooldown)
        self.remote_parser = remote_parser
        self.cache = cache or ParseCache(default_ttl=self.config.cache_ttl_seconds)

    @property
    def remote_available(self) -> bool:
        return (
            self.remote_parser is not None
            and self.remote_parser.is_configured
            and not self.cooldown.active
        )

    def parse_command(self, text: str) -> ParsedCommand:
        """Interpret one command.

        Raises:
            ValueError: If text is not a non-empty string.
        """
        if not isinstance(text, str) or not text.strip():
            raise ValueError("Command text must be a non-empty string")

        key = cache_key(text)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Parse cache hit for %r", text)
            return cached

        use_remote = self.remote_available
        try:
            if use_remote:
                result = self.remote_parser.parse(text)
            else:
                if self.cooldown.active:
                    logger.info(
                        "Remote parser cooling down for %.0fs; using local parser",
                        self.cooldown.remaining_seconds,
                    )
                result = self.local_parser.parse(text)
        except Exception as exc:
            logger.warning("Command parsing failed; falling back to local parser: %s", exc)
            sentry.set_tag("parser", "remote" if use_remote else "local")
            sentry.add_breadcrumb(
                "Command parsing fell back to local parser",
                category="nlp",
                level="warning",
                data={"text_length": len(text)},
            )
            sentry.capture_exception(exc)
            return self.local_parser.parse(text)

        self.cache.set(key, result, ttl=self.config.cache_ttl_seconds)
        return result

    def close(self) -> None:
        """Stop the cache sweeper and release the remote parser's HTTP client."""
        self.cache.stop_sweeper()
        if self.remote_parser is not None:
            self.remote_parser.close()


_service: CommandParsingService | None = None


def get_command_parser() -> CommandParsingService:
    global _service
    if _service is None:
        _service = CommandParsingService()
        _service.cache.start_sweeper()
    return _service


def reset_command_parser() -> None:
    """Reset the singleton (useful for testing)."""
    global _service
    if _service is not None:
        _service.close()
    _service = None


def parse_command(text: str) -> ParsedCommand:
    """Parse with the process-wide service."""
    return get_command_parser().parse_command(text)
