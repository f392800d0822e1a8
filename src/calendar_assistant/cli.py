import argparse
import json
import logging
import sys

from calendar_assistant.config import settings
from calendar_assistant.sentry import flush as sentry_flush
from calendar_assistant.sentry import init_sentry


def setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def parse(text: str, local: bool = False) -> int:
    from calendar_assistant.services.nlp import get_command_parser
    from calendar_assistant.services.parser import LocalCommandParser

    if not text.strip():
        print("Error: command text is empty", file=sys.stderr)
        return 1

    if local:
        result = LocalCommandParser().parse(text)
    else:
        result = get_command_parser().parse_command(text)

    print(json.dumps(result.to_dict(), indent=2))
    return 0


def check_config() -> int:
    from calendar_assistant.services.timezone import get_timezone_service

    print("Calendar Assistant Configuration Check\n")

    checks = [
        ("OpenRouter API Key", settings.has_openrouter),
        ("Sentry DSN", settings.has_sentry),
    ]
    for name, configured in checks:
        status = "OK" if configured else "MISSING"
        symbol = "+" if configured else "-"
        print(f"  [{symbol}] {name}: {status}")

    print(f"\n  Model: {settings.openrouter_model}")
    print(f"  Timezone: {get_timezone_service().default_timezone}")
    print(f"  Cache TTL: {settings.cache_ttl_seconds}s")

    print()
    if settings.has_openrouter:
        print("Remote parsing enabled.")
    else:
        print("No OPENROUTER_API_KEY set; commands will use the local parser only.")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Calendar command parser")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    parse_cmd = subparsers.add_parser("parse", help="Parse a calendar command and print it as JSON")
    parse_cmd.add_argument("text", help="Command text, e.g. \"Schedule a meeting tomorrow at 2pm\"")
    parse_cmd.add_argument("--local", action="store_true", help="Skip the remote parser")
    subparsers.add_parser("check-config", help="Check configuration")

    args = parser.parse_args(argv)

    setup_logging()

    # Disabled if no DSN configured
    init_sentry()

    try:
        if args.command == "parse":
            return parse(args.text, local=args.local)
        if args.command == "check-config":
            return check_config()
        parser.print_help()
        return 1
    finally:
        sentry_flush(timeout=2.0)


if __name__ == "__main__":
    sys.exit(main())
