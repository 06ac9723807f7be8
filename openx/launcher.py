"""Start an X server with a client command under the target user's identity."""

from __future__ import annotations

import os
import shutil
import subprocess
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from openx.display import DisplaySlot
from openx.privileges import TargetUser
from utils.errors import PrivilegeError
from utils.log_utils import tprint
from utils.settings_store import deep_log, get_settings

COMMAND_NOT_FOUND_EXIT_CODE = 127
COMMAND_NOT_EXECUTABLE_EXIT_CODE = 126

# Caller variables allowed to reach the session, when set.
_PASSTHROUGH_VARS = ("LANG",)

Runner = Callable[..., subprocess.CompletedProcess]


@dataclass
class LaunchResult:
    status: str  # "ok" | "failed" | "dry_run"
    display: str
    returncode: int | None
    elapsed_ms: int
    command: list[str] = field(default_factory=list)
    details: dict[str, Any] | None = None


def build_environment(
    user: TargetUser,
    display: DisplaySlot,
    settings: dict | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Build the session environment from scratch."""
    settings = settings or get_settings()
    source = os.environ if environ is None else environ
    env = {
        "HOME": user.home,
        "USER": user.name,
        "LOGNAME": user.name,
        "SHELL": user.shell,
        "PATH": str(settings.get("safe_path", "/usr/local/bin:/usr/bin:/bin")),
        "DISPLAY": display.name,
    }
    for name in _PASSTHROUGH_VARS:
        if source.get(name):
            env[name] = source[name]
    return env


def resolve_client(command: Sequence[str], settings: dict | None = None) -> list[str] | None:
    """Return command with its program as an absolute path, or None if not found.

    xinit only runs a client starting with `/` or `.`; any other word is
    appended to its default client line.
    """
    settings = settings or get_settings()
    program = command[0]
    if program.startswith(("/", ".")):
        return list(command)
    resolved = shutil.which(program, path=str(settings.get("safe_path", "/usr/local/bin:/usr/bin:/bin")))
    if resolved is None:
        return None
    return [resolved, *command[1:]]


def build_command(
    command: Sequence[str],
    display: DisplaySlot,
    settings: dict | None = None,
    *,
    vt: int | None = None,
) -> list[str]:
    """xinit CLIENT ARGS -- SERVER :N [vtN] SERVER_ARGS"""
    settings = settings or get_settings()
    server_args = [str(arg) for arg in settings.get("xserver_args") or []]
    if vt is not None:
        server_args = [f"vt{vt}", *server_args]
    return [
        str(settings.get("xinit_binary", "/usr/bin/xinit")),
        *command,
        "--",
        str(settings.get("xserver_binary", "/usr/bin/X")),
        display.name,
        *server_args,
    ]


class XSessionLauncher:
    """Run xinit for one client command as an unprivileged user."""

    def __init__(self, settings: dict | None = None, runner: Runner | None = None) -> None:
        self._settings = settings or get_settings()
        self._run = runner or subprocess.run

    def launch(
        self,
        command: Sequence[str],
        user: TargetUser,
        display: DisplaySlot,
        *,
        vt: int | None = None,
        dry_run: bool = False,
    ) -> LaunchResult:
        if user.uid == 0:
            raise PrivilegeError("refusing to start an X session as root")
        if not command:
            raise ValueError("no client command given")

        start = time.monotonic()
        client = resolve_client(command, self._settings)
        if client is None:
            return self._failed(
                display, list(command), COMMAND_NOT_FOUND_EXIT_CODE, f"{command[0]}: command not found", start
            )
        argv = build_command(client, display, self._settings, vt=vt)
        env = build_environment(user, display, self._settings)
        if dry_run:
            tprint(f"[OPENX] dry run: as {user.name} on {display.name}: {' '.join(argv)}")
            return LaunchResult(
                status="dry_run",
                display=display.name,
                returncode=None,
                elapsed_ms=self._elapsed(start),
                command=argv,
                details={"user": user.name, "env": env},
            )

        tprint(f"[OPENX] starting {display.name} for {user.name}: {' '.join(command)}")
        deep_log(f"[DEEP][OPENX] argv={argv} groups={user.groups}")
        try:
            completed = self._run(
                argv,
                env=env,
                cwd=user.home if os.path.isdir(user.home) else "/",
                user=user.uid,
                group=user.gid,
                extra_groups=list(user.groups),
                close_fds=True,
                check=False,
            )
        except FileNotFoundError as exc:
            return self._failed(display, argv, COMMAND_NOT_FOUND_EXIT_CODE, str(exc), start)
        except OSError as exc:
            return self._failed(display, argv, COMMAND_NOT_EXECUTABLE_EXIT_CODE, str(exc), start)

        tprint(f"[OPENX] session on {display.name} ended with {completed.returncode}")
        return LaunchResult(
            status="ok" if completed.returncode == 0 else "failed",
            display=display.name,
            returncode=completed.returncode,
            elapsed_ms=self._elapsed(start),
            command=argv,
        )

    def _failed(
        self, display: DisplaySlot, argv: list[str], returncode: int, reason: str, start: float
    ) -> LaunchResult:
        tprint(f"[OPENX][ERROR] cannot start {argv[0]}: {reason}")
        return LaunchResult(
            status="failed",
            display=display.name,
            returncode=returncode,
            elapsed_ms=self._elapsed(start),
            command=argv,
            details={"reason": reason},
        )

    @staticmethod
    def _elapsed(start: float) -> int:
        return int((time.monotonic() - start) * 1000)


def launch(
    command: Sequence[str],
    user: TargetUser,
    display: DisplaySlot,
    settings: dict | None = None,
    runner: Runner | None = None,
) -> LaunchResult:
    return XSessionLauncher(settings, runner).launch(command, user, display)
