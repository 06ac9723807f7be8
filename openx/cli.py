"""CLI for openx: start a new X server and run a command on it as a regular user."""

from __future__ import annotations

import argparse
import os
import sys

from openx.ancestry import collect_ancestry
from openx.display import claim_display, find_free_display, parse_display
from openx.launcher import XSessionLauncher
from openx.privileges import check_invoker, resolve_target_user, verify_privileges
from utils import log_utils
from utils.about import LICENSE_NOTICE, version_line
from utils.errors import VbhtError
from utils.log_utils import tprint
from utils.settings_store import get_settings, load_env_files, update_settings

USAGE_EXIT_CODE = 2

_EPILOG = """examples:
  sudo openx xterm
  sudo openx -u alice -d :3 -- startxfce4 --replace
"""


class _LicenseAction(argparse.Action):
    def __init__(self, option_strings, dest=argparse.SUPPRESS, default=argparse.SUPPRESS, help=None):
        super().__init__(option_strings=option_strings, dest=dest, default=default, nargs=0, help=help)

    def __call__(self, parser, namespace, values, option_string=None):
        print(LICENSE_NOTICE)
        parser.exit()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="openx",
        description="Start a new X server and run COMMAND on it as an unprivileged user.",
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-u", "--user", help="Account to run the session as (default: invoking user).")
    parser.add_argument("-d", "--display", help="Display to use, e.g. :2 (default: first free).")
    parser.add_argument("--vt", type=int, help="Virtual terminal for the X server.")
    parser.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Verify and print the session command without starting it.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable deep logging.")
    parser.add_argument("-V", "--version", action="version", version=version_line("openx"))
    parser.add_argument("--license", action=_LicenseAction, help="Show license information and exit.")
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Client command and its arguments.")
    return parser


def _identity() -> tuple[int, int]:
    return os.getuid(), os.geteuid()


def run(args: argparse.Namespace, settings: dict) -> int:
    """Verify the invocation, then start the session. Raises VbhtError on refusal."""
    real_uid, effective_uid = _identity()
    check_invoker(real_uid, effective_uid).require_allowed()
    chain = collect_ancestry(max_depth=int(settings.get("max_ancestry_depth", 64)))
    user = resolve_target_user(args.user, chain)
    decision = verify_privileges(
        chain,
        real_uid=real_uid,
        effective_uid=effective_uid,
        target_uid=user.uid,
        settings=settings,
    ).require_allowed()
    tprint(f"[OPENX] authorized {user.name}: {decision.reason}")

    reclaim = bool(settings.get("reclaim_stale_locks", False))
    if args.display:
        slot = claim_display(parse_display(args.display), reclaim_stale=reclaim)
    else:
        slot = find_free_display(
            int(settings.get("first_display", 1)),
            int(settings.get("display_search_limit", 64)),
            reclaim_stale=reclaim,
        )

    result = XSessionLauncher(settings).launch(
        args.command, user, slot, vt=args.vt, dry_run=args.dry_run
    )
    if result.status == "dry_run":
        print(" ".join(result.command))
        return 0
    return result.returncode if result.returncode is not None else 1


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command and args.command[0] == "--":
        args.command = args.command[1:]
    if not args.command:
        parser.print_usage(sys.stderr)
        print("openx: error: no command given", file=sys.stderr)
        return USAGE_EXIT_CODE
    if args.display:
        try:
            parse_display(args.display)
        except VbhtError as exc:
            parser.error(str(exc))

    load_env_files()
    settings = get_settings()
    if args.verbose:
        settings = update_settings({"log_level": "DEEP"})
    log_utils.configure(settings.get("log_file"), system="OPENX")

    try:
        return run(args, settings)
    except VbhtError as exc:
        tprint(f"[OPENX][ERROR] {exc}")
        print(f"Error: {exc}", file=sys.stderr)
        return exc.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
