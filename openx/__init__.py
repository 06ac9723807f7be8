"""Start X sessions for regular users from a verified privileged chain."""

from openx.ancestry import ProcessChain, ProcessRecord, collect_ancestry
from openx.display import DisplaySlot, find_free_display
from openx.launcher import LaunchResult, build_command, build_environment, launch
from openx.privileges import PrivilegeDecision, TargetUser, resolve_target_user, verify_privileges

__all__ = [
    "DisplaySlot",
    "LaunchResult",
    "PrivilegeDecision",
    "ProcessChain",
    "ProcessRecord",
    "TargetUser",
    "build_command",
    "build_environment",
    "collect_ancestry",
    "find_free_display",
    "launch",
    "resolve_target_user",
    "verify_privileges",
]
