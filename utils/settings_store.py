"""Cached settings for the vbht tools."""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from utils.file_utils import load_json
from utils.log_utils import tprint

DEFAULT_SETTINGS_PATH = "/etc/vbht/settings.json"

DEFAULTS: dict[str, Any] = {
    "log_level": "INFO",
    "log_file": "/var/log/vbht/helpers.log",
    # sleep button forwarding
    "vbht_binary": "/opt/vbht/vbht",
    "legacy_sleep_handler": "/etc/acpi/pre-vbht-sleepbtn.sh",
    "legacy_handlers": {},
    "probe_timeout_secs": 5.0,
    # openx
    "xinit_binary": "/usr/bin/xinit",
    "xserver_binary": "/usr/bin/X",
    "xserver_args": ["-nolisten", "tcp"],
    "first_display": 1,
    "display_search_limit": 64,
    "reclaim_stale_locks": False,
    "trusted_elevators": ["sudo", "doas", "pkexec", "vbht"],
    "min_user_uid": 1000,
    "max_ancestry_depth": 64,
    "safe_path": "/usr/local/bin:/usr/bin:/bin",
    # logrotate
    "log_dir": "/var/log/vbht",
    "logrotate_frequency": "weekly",
    "logrotate_keep": 4,
}

_lock = threading.Lock()
_settings_cache: dict[str, Any] = {}


def settings_path() -> Path:
    return Path(os.getenv("VBHT_SETTINGS", DEFAULT_SETTINGS_PATH))


def load_env_files() -> None:
    """Load .env files from common locations without overriding the environment."""
    candidates = [
        Path("/etc/vbht/env"),
        Path.cwd() / ".env",
        Path.home() / ".vbht.env",
    ]
    for path in candidates:
        if path.exists():
            load_dotenv(dotenv_path=str(path), override=False)


def refresh_settings() -> dict[str, Any]:
    """Reload settings from disk and replace the cache."""
    data = dict(DEFAULTS)
    data.update(load_json(settings_path()))
    with _lock:
        _settings_cache.clear()
        _settings_cache.update(data)
        return dict(_settings_cache)


def get_settings() -> dict[str, Any]:
    """Return a copy of the cached settings."""
    with _lock:
        cached = dict(_settings_cache)
    if not cached:
        return refresh_settings()
    return cached


def is_deep_logging() -> bool:
    """Return True when log_level requests deep tracing."""
    level = str(get_settings().get("log_level", "")).upper()
    return level in {"DEEP"}


def deep_log(message: str) -> None:
    if is_deep_logging():
        tprint(message)


def update_settings(values: dict[str, Any]) -> dict[str, Any]:
    """Apply per-run overrides (e.g. CLI flags) on top of the cached settings."""
    current = get_settings()
    current.update(values)
    with _lock:
        _settings_cache.clear()
        _settings_cache.update(current)
        return dict(_settings_cache)
