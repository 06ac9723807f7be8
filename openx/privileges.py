"""Decide whether openx may run for the invoking chain and target user."""

from __future__ import annotations

import os
import pwd
from collections.abc import Mapping
from dataclasses import dataclass, field

from openx.ancestry import ProcessChain
from utils.errors import PrivilegeError
from utils.settings_store import get_settings


@dataclass
class PrivilegeDecision:
    """Result of checking one invocation against the privilege rules."""

    allowed: bool
    reason: str
    invoking_uid: int | None = None
    target_uid: int | None = None
    elevator: str | None = None

    def require_allowed(self) -> "PrivilegeDecision":
        if not self.allowed:
            raise PrivilegeError(self.reason)
        return self


@dataclass(frozen=True)
class TargetUser:
    """Account the X session is started as."""

    name: str
    uid: int
    gid: int
    home: str
    shell: str
    groups: list[int] = field(default_factory=list)


def lookup_user(name: str) -> TargetUser:
    try:
        entry = pwd.getpwnam(name)
    except KeyError as exc:
        raise PrivilegeError(f"user '{name}' does not exist") from exc
    return TargetUser(
        name=entry.pw_name,
        uid=entry.pw_uid,
        gid=entry.pw_gid,
        home=entry.pw_dir,
        shell=entry.pw_shell or "/bin/sh",
        groups=sorted(set(os.getgrouplist(entry.pw_name, entry.pw_gid))),
    )


def resolve_target_user(
    name: str | None,
    chain: ProcessChain,
    environ: Mapping[str, str] | None = None,
) -> TargetUser:
    """Pick the target account: explicit name, then the invoking user, then SUDO_USER.

    A root-only chain has no invoking user. For such a chain a SUDO_USER left
    by sudo counts as naming the target; without it the caller must pass
    --user.
    """
    if name:
        return lookup_user(name)

    invoking = chain.invoking_record()
    if invoking is not None:
        try:
            return lookup_user(pwd.getpwuid(invoking.real_uid).pw_name)
        except KeyError as exc:
            raise PrivilegeError(f"invoking uid {invoking.real_uid} has no account") from exc

    env = os.environ if environ is None else environ
    sudo_user = env.get("SUDO_USER", "").strip()
    if sudo_user:
        return lookup_user(sudo_user)
    raise PrivilegeError("no target user: invoked from a root-only chain, pass --user")


def _refuse(reason: str, **kwargs) -> PrivilegeDecision:
    return PrivilegeDecision(allowed=False, reason=reason, **kwargs)


def check_invoker(real_uid: int, effective_uid: int) -> PrivilegeDecision:
    """Check the rules that depend only on openx's own identity."""
    if effective_uid != 0:
        return _refuse("openx must be started with root privileges")
    if real_uid != effective_uid:
        return _refuse("refusing set-uid invocation (real uid is not root)")
    return PrivilegeDecision(allowed=True, reason="running as root")


def verify_privileges(
    chain: ProcessChain,
    *,
    real_uid: int,
    effective_uid: int,
    target_uid: int,
    settings: dict | None = None,
) -> PrivilegeDecision:
    """Check the invocation against the user/privilege rules.

    Never raises; a refusal comes back with allowed=False and the reason.
    """
    settings = settings or get_settings()
    trusted = list(settings.get("trusted_elevators") or [])
    min_user_uid = int(settings.get("min_user_uid", 1000))

    invoker = check_invoker(real_uid, effective_uid)
    if not invoker.allowed:
        invoker.target_uid = target_uid
        return invoker
    if target_uid == 0:
        return _refuse("refusing to run X clients as root", target_uid=target_uid)
    if target_uid < min_user_uid:
        return _refuse(f"refusing to run as system account uid {target_uid}", target_uid=target_uid)
    if len(chain) == 0:
        return _refuse("empty invoking process chain", target_uid=target_uid)

    if chain.is_root_chain:
        return PrivilegeDecision(
            allowed=True,
            reason="invoked from a root chain",
            invoking_uid=0,
            target_uid=target_uid,
        )

    invoking_uid = chain.invoking_uid()
    elevator = chain.elevator()
    elevator_name = elevator.name if elevator else None
    if invoking_uid != target_uid:
        return _refuse(
            f"user uid {invoking_uid} may not open X sessions for uid {target_uid}",
            invoking_uid=invoking_uid,
            target_uid=target_uid,
            elevator=elevator_name,
        )
    if elevator is None or not elevator.matches(trusted):
        return _refuse(
            f"root privileges were not granted by a trusted program (got {elevator_name or 'nothing'})",
            invoking_uid=invoking_uid,
            target_uid=target_uid,
            elevator=elevator_name,
        )
    return PrivilegeDecision(
        allowed=True,
        reason=f"elevated by {elevator_name}",
        invoking_uid=invoking_uid,
        target_uid=target_uid,
        elevator=elevator_name,
    )
