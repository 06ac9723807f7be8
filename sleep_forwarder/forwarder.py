"""Forward ACPI button events to the vbht daemon, or to the legacy handler."""

from __future__ import annotations

import re
import subprocess
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from utils.log_utils import tprint
from utils.settings_store import deep_log, get_settings

# Shell `exec` exit codes for a handler that cannot be started.
COMMAND_NOT_FOUND_EXIT_CODE = 127
COMMAND_NOT_EXECUTABLE_EXIT_CODE = 126

DEFAULT_EVENT = "sleep"

_EVENT_RE = re.compile(r"^[a-z][a-z0-9_-]*$")

Runner = Callable[..., subprocess.CompletedProcess]


@dataclass
class ForwardResult:
    """Outcome of dispatching one ACPI event."""

    status: str  # "ok" | "failed"
    handler_used: str  # "daemon" | "legacy" | "none"
    attempts_made: list[str]
    returncode: int | None
    elapsed_ms: int
    command: list[str] = field(default_factory=list)
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "status": self.status,
            "handler_used": self.handler_used,
            "attempts_made": list(self.attempts_made),
            "returncode": self.returncode,
            "elapsed_ms": self.elapsed_ms,
            "command": list(self.command),
        }
        if self.error_message is not None:
            payload["error_message"] = self.error_message
        return payload


def is_valid_event(event: str) -> bool:
    return bool(_EVENT_RE.match(event or ""))


class EventForwarder:
    """Probe the vbht daemon and hand the event to whoever should get it."""

    def __init__(self, settings: dict | None = None, runner: Runner | None = None) -> None:
        """Initialize the forwarder.

        Args:
            settings: Configuration dict (uses get_settings() if None)
            runner: subprocess.run compatible callable, replaceable in tests
        """
        self._settings = settings or get_settings()
        self._run = runner or subprocess.run

    @property
    def vbht_binary(self) -> str:
        return str(self._settings.get("vbht_binary", "/opt/vbht/vbht"))

    def probe_daemon(self) -> bool:
        """Return True when `vbht info -M` reports a running instance."""
        command = [self.vbht_binary, "info", "-M"]
        timeout = float(self._settings.get("probe_timeout_secs", 5.0))
        try:
            completed = self._run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                timeout=timeout,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            deep_log(f"[DEEP][SLEEPBTN] probe failed: {exc}")
            return False

        output = (completed.stdout or b"").rstrip(b"\n")
        deep_log(
            f"[DEEP][SLEEPBTN] probe rc={completed.returncode} "
            f"output={output.decode('utf-8', errors='replace')!r}"
        )
        return output != b""

    def legacy_handler_for(self, event: str) -> str:
        handlers = self._settings.get("legacy_handlers") or {}
        if event in handlers:
            return str(handlers[event])
        return str(self._settings.get("legacy_sleep_handler", "/etc/acpi/pre-vbht-sleepbtn.sh"))

    def plan(self, event: str) -> tuple[str, list[str]]:
        """Decide which handler gets the event, without running anything."""
        if self.probe_daemon():
            return "daemon", [self.vbht_binary, "forward", event]
        return "legacy", [self.legacy_handler_for(event)]

    def forward(self, event: str = DEFAULT_EVENT, *, dry_run: bool = False) -> ForwardResult:
        """Forward the event to the daemon, falling back to the legacy handler.

        Args:
            event: ACPI event name understood by `vbht forward`
            dry_run: Only report the chosen handler

        Returns:
            ForwardResult carrying the handler's exit code
        """
        start = time.monotonic()
        if not is_valid_event(event):
            return ForwardResult(
                status="failed",
                handler_used="none",
                attempts_made=[],
                returncode=None,
                elapsed_ms=self._elapsed(start),
                error_message=f"invalid event name {event!r}",
            )

        handler, command = self.plan(event)
        attempts = ["probe", handler]
        if dry_run:
            tprint(f"[SLEEPBTN] dry run: {handler} handler would run {' '.join(command)}")
            return ForwardResult(
                status="ok",
                handler_used=handler,
                attempts_made=attempts,
                returncode=None,
                elapsed_ms=self._elapsed(start),
                command=command,
            )

        tprint(f"[SLEEPBTN] event={event} handler={handler}")
        quiet = handler == "daemon"
        try:
            completed = self._run(
                command,
                stdout=subprocess.DEVNULL if quiet else None,
                stderr=subprocess.DEVNULL if quiet else None,
                check=False,
            )
        except FileNotFoundError as exc:
            return self._not_started(handler, attempts, command, COMMAND_NOT_FOUND_EXIT_CODE, exc, start)
        except OSError as exc:
            return self._not_started(handler, attempts, command, COMMAND_NOT_EXECUTABLE_EXIT_CODE, exc, start)

        status = "ok" if completed.returncode == 0 else "failed"
        if status == "failed":
            tprint(f"[SLEEPBTN][WARN] {handler} handler exited with {completed.returncode}")
        return ForwardResult(
            status=status,
            handler_used=handler,
            attempts_made=attempts,
            returncode=completed.returncode,
            elapsed_ms=self._elapsed(start),
            command=command,
        )

    def _not_started(
        self,
        handler: str,
        attempts: list[str],
        command: list[str],
        returncode: int,
        exc: OSError,
        start: float,
    ) -> ForwardResult:
        tprint(f"[SLEEPBTN][ERROR] cannot run {command[0]}: {exc}")
        return ForwardResult(
            status="failed",
            handler_used=handler,
            attempts_made=attempts,
            returncode=returncode,
            elapsed_ms=self._elapsed(start),
            command=command,
            error_message=str(exc),
        )

    @staticmethod
    def _elapsed(start: float) -> int:
        return int((time.monotonic() - start) * 1000)


def probe_daemon(settings: dict | None = None) -> bool:
    return EventForwarder(settings).probe_daemon()


def forward_event(event: str = DEFAULT_EVENT, settings: dict | None = None) -> ForwardResult:
    return EventForwarder(settings).forward(event)
