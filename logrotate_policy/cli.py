"""CLI that prints or installs the vbht logrotate policy."""

from __future__ import annotations

import argparse
import sys

from logrotate_policy.policy import render_logrotate_config
from utils.about import version_line
from utils.file_utils import write_text
from utils.settings_store import get_settings, load_env_files


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vbht-logrotate",
        description="Render the logrotate policy for the vbht logs.",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Write the policy to this path (e.g. /etc/logrotate.d/vbht) instead of stdout.",
    )
    parser.add_argument("-V", "--version", action="version", version=version_line("vbht-logrotate"))
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    load_env_files()
    try:
        text = render_logrotate_config(get_settings())
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.output:
        try:
            path = write_text(args.output, text)
        except OSError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
        print(f"Wrote {path}")
    else:
        sys.stdout.write(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
