"""System helpers for environment checks."""

import platform


def current_os() -> str:
    return platform.system().lower()


def is_linux() -> bool:
    return current_os() == "linux"
