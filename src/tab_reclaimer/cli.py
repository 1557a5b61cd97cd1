"""CLI entry point for tab-reclaimer.

Usage:
    tab-reclaimer config [--file reclaimer.yaml]     # Show effective configuration
    tab-reclaimer journal --state ~/.tab-reclaimer   # Show aggregated eviction journal
    tab-reclaimer journal --search "docs" --unread   # Filter the journal
    tab-reclaimer journal --mark-read                # Mark every entry read
    tab-reclaimer --version                          # Show version
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import yaml

from tab_reclaimer import __version__

DEFAULT_STATE_DIR = "~/.tab-reclaimer"


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="tab-reclaimer",
        description="tab-reclaimer - Idle browser tab reclamation engine",
    )
    parser.add_argument(
        "--version",
        "-V",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command")

    config_parser = subparsers.add_parser(
        "config",
        help="Show the effective configuration",
    )
    config_parser.add_argument(
        "--file",
        type=str,
        default="reclaimer.yaml",
        help="YAML config file (default: reclaimer.yaml)",
    )

    journal_parser = subparsers.add_parser(
        "journal",
        help="Show the aggregated eviction journal",
    )
    journal_parser.add_argument(
        "--state",
        type=str,
        default=DEFAULT_STATE_DIR,
        help=f"State directory (default: {DEFAULT_STATE_DIR})",
    )
    journal_parser.add_argument(
        "--search",
        type=str,
        default="",
        help="Only rows whose title or url contain every term",
    )
    journal_parser.add_argument(
        "--unread",
        action="store_true",
        help="Only rows with unread entries",
    )
    journal_parser.add_argument(
        "--limit",
        type=int,
        default=100,
        help="Maximum rows shown (default: 100)",
    )
    journal_parser.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Print rows as JSON",
    )
    journal_parser.add_argument(
        "--mark-read",
        action="store_true",
        help="Mark every entry read after printing",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "config":
        return show_config(Path(args.file))
    if args.command == "journal":
        return asyncio.run(
            show_journal(
                state_dir=Path(args.state),
                search=args.search,
                unread_only=args.unread,
                limit=args.limit,
                as_json=args.as_json,
                mark_read=args.mark_read,
            )
        )

    parser.print_help()
    return 1


def show_config(config_file: Path) -> int:
    """Print the configuration loaded from a YAML file."""
    from tab_reclaimer.config import load_config

    config = load_config(config_file)
    if not config_file.exists():
        print(f"# {config_file} not found, showing defaults", file=sys.stderr)

    data = {
        "reclaimer": {
            **config.to_synced(),
            "probe_timeout_seconds": config.probe_timeout_seconds,
            "journal_max_entries": config.journal_max_entries,
            "extra_placeholder_urls": config.extra_placeholder_urls,
            "extra_placeholder_titles": config.extra_placeholder_titles,
        }
    }
    print(yaml.safe_dump(data, sort_keys=False, allow_unicode=True), end="")
    return 0


async def show_journal(
    state_dir: Path,
    search: str = "",
    unread_only: bool = False,
    limit: int = 100,
    as_json: bool = False,
    mark_read: bool = False,
) -> int:
    """Print the aggregated journal stored under ``state_dir``."""
    from tab_reclaimer.reclamation.journal import EvictionJournal
    from tab_reclaimer.storage import JsonFileKeyValueStore

    journal = EvictionJournal(JsonFileKeyValueStore(state_dir))
    rows = await journal.search(search, limit=limit)
    if unread_only:
        rows = [r for r in rows if not r.is_read]

    if as_json:
        print(json.dumps([r.model_dump() for r in rows], ensure_ascii=False, indent=2))
    elif not rows:
        print("No closed tabs found")
    else:
        for row in rows:
            marker = "*" if not row.is_read else " "
            closed = datetime.fromtimestamp(row.last_closed_at / 1000).strftime("%Y-%m-%d %H:%M")
            print(f"{marker} {row.title or row.url}")
            print(f"    {row.url}")
            print(f"    closed {row.count}x, last {closed}")

    if mark_read:
        changed = await journal.mark_all_read()
        print(f"Marked {changed} entries read", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
