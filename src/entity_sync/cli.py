"""Command-line entry point: ``entity-sync``.

Copies every post of one type from a source site to a target site and
prints the batch report. Per-post events go to stderr through logging.
"""

import argparse
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from types import FrameType

from dotenv import load_dotenv

from . import __version__
from .config import load_unified_config, resolve_site_pair
from .errors import ConfigurationError
from .logger import setup_logging
from .sync.engine import sync_sites
from .sync.reporter import format_sync_report, report_to_json

logger = logging.getLogger(__name__)

EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="entity-sync",
        description="Sync posts of one type from a source site to a target site",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Copy all musician posts from site 1 to site 3
  entity-sync --source-site 1 --copy-site 3

  # Sync another post type, print the report as JSON
  entity-sync --source-site main --copy-site music --post-type band --json

  # Use an explicit config file and debug logging
  entity-sync --source-site 1 --copy-site 3 --config sites.yml --debug

Sites are defined under 'sites:' in .entity_sync/config.yml.
Credentials may come from WP_USERNAME / WP_PASSWORD (or a .env file).
        """,
    )
    parser.add_argument(
        "--source-site",
        help="Configured site to copy posts from",
    )
    parser.add_argument(
        "--copy-site",
        help="Configured site to copy posts to",
    )
    parser.add_argument(
        "--post-type",
        help="Post type to sync (default: sync.post_type from config, or 'musician')",
    )
    parser.add_argument(
        "--config",
        help="Read only this config file instead of the discovered ones",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--debug-format",
        choices=["text", "json"],
        default="text",
        help="Log line format (default: text)",
    )
    parser.add_argument(
        "--log-file",
        help="Also write log lines to this file",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"entity-sync version {__version__}",
    )
    return parser


def _install_sigint_handler(cancel_event: threading.Event):
    """First Ctrl+C finishes the current post and stops; the second aborts."""

    def sigint_handler(
        _signal_received: int, _frame: FrameType | None
    ) -> None:
        if cancel_event.is_set():
            raise KeyboardInterrupt
        logger.warning(
            "Cancelling after the current post (Ctrl+C again to abort)"
        )
        cancel_event.set()

    return signal.signal(signal.SIGINT, sigint_handler)


def main(argv: list[str] | None = None) -> int:
    """Run one batch; return the process exit status."""
    args = build_parser().parse_args(argv)

    load_dotenv()

    try:
        unified = load_unified_config(
            Path(args.config) if args.config else None
        )
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        debug_format=args.debug_format,
        level=unified.logging.level,
    )

    try:
        source_site, target_site = resolve_site_pair(
            args.source_site, args.copy_site, unified
        )
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    post_type = args.post_type or unified.sync.post_type

    cancel_event = threading.Event()
    previous_handler = _install_sigint_handler(cancel_event)
    try:
        report = sync_sites(
            source_site,
            target_site,
            post_type,
            post_status=unified.sync.post_status,
            cancel_event=cancel_event,
        )
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_CANCELLED
    except Exception as exc:
        logger.exception("Sync failed")
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    else:
        print(format_sync_report(report))

    if report.cancelled:
        print("Warning: Sync cancelled", file=sys.stderr)
        return EXIT_CANCELLED

    print("Success: Sync completed")
    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
