"""Render the logrotate policy for the vbht log directory."""

from __future__ import annotations

from utils.settings_store import get_settings

FREQUENCIES = {"daily", "weekly", "monthly", "yearly"}

_TEMPLATE = """# logrotate policy for the vbht helper daemon and its helper tools
{log_dir}/*.log {{
    {frequency}
    rotate {keep}
    compress
    delaycompress
    missingok
    notifempty
    create 0640 root adm
}}
"""


def render_logrotate_config(settings: dict | None = None) -> str:
    settings = settings or get_settings()
    log_dir = str(settings.get("log_dir", "/var/log/vbht")).rstrip("/") or "/"
    if not log_dir.startswith("/"):
        raise ValueError(f"log_dir must be absolute, got {log_dir!r}")
    frequency = str(settings.get("logrotate_frequency", "weekly")).lower()
    if frequency not in FREQUENCIES:
        raise ValueError(f"unsupported rotation frequency {frequency!r}")
    keep = int(settings.get("logrotate_keep", 4))
    if keep < 0:
        raise ValueError("logrotate_keep must be >= 0")
    return _TEMPLATE.format(log_dir=log_dir, frequency=frequency, keep=keep)
