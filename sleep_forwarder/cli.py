"""CLI for forwarding an ACPI sleep button event to vbht."""

from __future__ import annotations

import argparse
import json

from sleep_forwarder.forwarder import DEFAULT_EVENT, EventForwarder, is_valid_event
from utils import log_utils
from utils.about import version_line
from utils.settings_store import get_settings, load_env_files, update_settings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vbht-sleepbtn",
        description="Forward an ACPI button event to vbht, or to the legacy handler.",
    )
    parser.add_argument(
        "event",
        nargs="?",
        default=DEFAULT_EVENT,
        help="Event name passed to `vbht forward` (default: sleep).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report which handler would receive the event.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the dispatch result as JSON.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable deep logging for this run.",
    )
    parser.add_argument("-V", "--version", action="version", version=version_line("vbht-sleepbtn"))
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not is_valid_event(args.event):
        parser.error(f"invalid event name: {args.event!r}")

    load_env_files()
    settings = get_settings()
    if args.verbose:
        settings = update_settings({"log_level": "DEEP"})
    # ACPI handlers run without a terminal; keep stdout for the handlers.
    log_utils.configure(settings.get("log_file"), system="SLEEPBTN")
    log_utils.log_to_stderr()

    result = EventForwarder(settings).forward(args.event, dry_run=args.dry_run)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    if result.returncode is None:
        return 0 if result.status == "ok" else 1
    return result.returncode


if __name__ == "__main__":
    raise SystemExit(main())
