"""Timestamped logging helpers shared by the vbht tools."""

from __future__ import annotations

import builtins
import re
import sys
import time
from pathlib import Path
from typing import Any, TextIO


_LEVELS = {"DEEP", "DEBUG", "INFO", "WARN", "ERROR"}
_LEADING_TAG = re.compile(r"\s*\[([^\[\]]*[^\[\]\s][^\[\]]*)\]")

_log_file: Path | None = None
_stream: TextIO | None = None
_system = "VBHT"


def configure(
    log_file: str | Path | None = None,
    *,
    stream: TextIO | None = None,
    system: str = "VBHT",
) -> None:
    """Set the log file, console stream and default system tag used by tprint."""
    global _log_file, _stream, _system
    _log_file = Path(log_file) if log_file else None
    _stream = stream
    _system = system


def _split_tags(message: str) -> tuple[list[str], str]:
    tags: list[str] = []
    pos = 0
    while match := _LEADING_TAG.match(message, pos):
        tags.append(match.group(1).strip())
        pos = match.end()
    return tags, message[pos:].strip()


def _format_message(message: str, default_system: str | None = None) -> str:
    """Order tags as [SYSTEM][LEVEL]; a missing system becomes the tool's own."""
    tags, text = _split_tags(message)
    system = default_system or _system
    level = None
    if tags and tags[0].upper() in _LEVELS:
        level = tags.pop(0).upper()
    if tags:
        system = tags.pop(0)
    if level is None and tags:
        level = tags.pop(0)
    parts = [f"[{system}]"]
    if level:
        parts.append(f"[{level}]")
    if tags:
        parts.append(f" [{' '.join(tags)}]")
    if text:
        parts.append(f" {text}")
    return "".join(parts)


def _append_to_file(line: str) -> None:
    if _log_file is None:
        return
    try:
        _log_file.parent.mkdir(parents=True, exist_ok=True)
        with _log_file.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")
    except OSError:
        # Unwritable log file: the console line is still emitted.
        return


def tprint(*args: Any, **kwargs: Any) -> None:
    """Print with a timestamp prefix and normalized tag order."""
    timestamp = time.strftime("%Y-%m-%d %H:%M:%S")
    message = " ".join(str(arg) for arg in args)
    line = f"[{timestamp}]{_format_message(message)}"
    if "file" not in kwargs and _stream is not None:
        kwargs["file"] = _stream
    builtins.print(line, **kwargs)
    _append_to_file(line)


def log(system: str, message: str, variant: str | None = None) -> None:
    """Log with explicit system and optional variant."""
    if variant:
        tprint(f"[{system}][{variant}] {message}")
    else:
        tprint(f"[{system}] {message}")


def log_to_stderr() -> None:
    """Route console log lines to stderr, keeping the configured log file."""
    configure(_log_file, stream=sys.stderr, system=_system)
