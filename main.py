"""Development entry point for the vbht helper tools.

    python main.py sleepbtn [EVENT]
    python main.py openx [OPTIONS] -- COMMAND
    python main.py logrotate [-o PATH]
"""

import sys
from collections.abc import Callable

from logrotate_policy import cli as logrotate_cli
from openx import cli as openx_cli
from sleep_forwarder import cli as sleepbtn_cli
from utils.system_utils import is_linux

TOOLS: dict[str, Callable[[list[str] | None], int]] = {
    "sleepbtn": sleepbtn_cli.main,
    "openx": openx_cli.main,
    "logrotate": logrotate_cli.main,
}


def _ensure_linux() -> None:
    """Raise early on platforms without /proc, X lock files and ACPI scripts."""
    if not is_linux():
        raise RuntimeError("The vbht helper tools only run on Linux.")


def bootstrap(argv: list[str] | None = None) -> int:
    """Dispatch to the tool named by the first argument."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args or args[0] not in TOOLS:
        names = ", ".join(sorted(TOOLS))
        print(f"usage: main.py {{{names}}} [ARGS...]", file=sys.stderr)
        return 2

    _ensure_linux()
    return TOOLS[args[0]](args[1:])


if __name__ == "__main__":
    raise SystemExit(bootstrap())
