"""Command-line interface for the info providers."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

__all__ = ["main", "parse_args", "build_parser"]

from infoprovider.errors import InfoProviderError
from infoprovider.logging_config import get_logger, setup_logging
from infoprovider.registry import ProviderRegistry, build_providers

logger = get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Look up electronic parts from shops and product pages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List providers and whether they are enabled
  python -m infoprovider.cli providers

  # Search Reichelt
  PROVIDER_REICHELT_ENABLE=1 python -m infoprovider.cli search reichelt "NE555"

  # Import any product page with structured data
  python -m infoprovider.cli search strucdata https://shop.example.com/product/123

  # Full record for a Reichelt article number
  python -m infoprovider.cli details reichelt 10447
        """,
    )
    parser.add_argument(
        "--env-file",
        metavar="PATH",
        help="Load PROVIDER_* settings from this .env file (default: .env in the working directory)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show debug logging",
    )
    parser.add_argument(
        "--log-file",
        action="store_true",
        help="Also write JSONL logs to the logs/ directory",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    search = subparsers.add_parser("search", help="Search a provider by keyword")
    search.add_argument("provider", help="Provider key (e.g. strucdata, reichelt, pollin)")
    search.add_argument("keyword", help="Search keyword (a URL for strucdata)")

    details = subparsers.add_parser("details", help="Fetch the full record of one part")
    details.add_argument("provider", help="Provider key")
    details.add_argument("provider_id", help="Provider-specific part id")

    subparsers.add_parser("providers", help="List providers and their state")

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def list_providers(registry: ProviderRegistry) -> None:
    """Print provider info as JSON."""
    rows = []
    for provider in registry.all():
        info = dict(provider.get_provider_info())
        info["key"] = provider.get_provider_key()
        info["active"] = provider.is_active()
        info["capabilities"] = sorted(c.value for c in provider.get_capabilities())
        rows.append(info)
    _print_json(rows)


def main(argv: Optional[List[str]] = None, registry: Optional[ProviderRegistry] = None) -> int:
    """Main entry point for CLI. Returns the process exit code."""
    args = parse_args(argv)

    if args.env_file:
        load_dotenv(dotenv_path=Path(args.env_file))
    else:
        load_dotenv()

    setup_logging(level=logging.DEBUG if args.verbose else logging.WARNING, log_to_file=args.log_file)

    registry = registry or build_providers()

    if args.command == "providers":
        list_providers(registry)
        return 0

    try:
        provider = registry.get(args.provider)
        if args.command == "search":
            results = provider.search_by_keyword(args.keyword)
            _print_json([r.to_dict() for r in results])
        else:
            _print_json(provider.get_details(args.provider_id).to_dict())
    except InfoProviderError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
