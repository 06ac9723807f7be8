"""X display slot selection based on lock files and sockets."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

import psutil

from utils.errors import DisplayError
from utils.file_utils import read_pid_file
from utils.settings_store import deep_log

X_LOCK_FILE_TEMPLATE = "/tmp/.X{}-lock"
X_SOCKET_TEMPLATE = "/tmp/.X11-unix/X{}"

_DISPLAY_RE = re.compile(r"^:?(\d+)$")


@dataclass(frozen=True)
class DisplaySlot:
    number: int
    lock_path: Path
    socket_path: Path

    @property
    def name(self) -> str:
        return f":{self.number}"


def parse_display(value: str) -> int:
    """Accept `:N` or `N` and return N."""
    match = _DISPLAY_RE.match(value.strip())
    if not match:
        raise DisplayError(f"invalid display {value!r}")
    return int(match.group(1))


def _slot(number: int, lock_template: str, socket_template: str) -> DisplaySlot:
    return DisplaySlot(
        number=number,
        lock_path=Path(lock_template.format(number)),
        socket_path=Path(socket_template.format(number)),
    )


def _is_stale_lock(lock_path: Path) -> bool:
    pid = read_pid_file(lock_path)
    return pid is not None and not psutil.pid_exists(pid)


def slot_is_free(slot: DisplaySlot, *, reclaim_stale: bool = False) -> bool:
    if slot.socket_path.exists():
        return False
    if not slot.lock_path.exists():
        return True
    if reclaim_stale and _is_stale_lock(slot.lock_path):
        deep_log(f"[DEEP][OPENX] treating stale lock {slot.lock_path} as free")
        return True
    return False


def find_free_display(
    start: int = 1,
    limit: int = 64,
    *,
    reclaim_stale: bool = False,
    lock_template: str = X_LOCK_FILE_TEMPLATE,
    socket_template: str = X_SOCKET_TEMPLATE,
) -> DisplaySlot:
    """Return the first free display number >= start, checking at most limit slots."""
    for number in range(start, start + limit):
        slot = _slot(number, lock_template, socket_template)
        if slot_is_free(slot, reclaim_stale=reclaim_stale):
            return slot
    raise DisplayError(f"no free X display between :{start} and :{start + limit - 1}")


def claim_display(
    number: int,
    *,
    reclaim_stale: bool = False,
    lock_template: str = X_LOCK_FILE_TEMPLATE,
    socket_template: str = X_SOCKET_TEMPLATE,
) -> DisplaySlot:
    """Check that an explicitly requested display is free."""
    slot = _slot(number, lock_template, socket_template)
    if not slot_is_free(slot, reclaim_stale=reclaim_stale):
        raise DisplayError(f"display {slot.name} is already in use")
    return slot
