"""Read the chain of processes that invoked openx."""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

import psutil

from utils.errors import AncestryError
from utils.settings_store import deep_log


@dataclass(frozen=True)
class ProcessRecord:
    """Snapshot of one ancestor process."""

    pid: int
    ppid: int
    name: str
    exe: str
    real_uid: int
    effective_uid: int
    username: str | None = None

    @property
    def is_root(self) -> bool:
        return self.real_uid == 0 and self.effective_uid == 0

    def matches(self, names: Iterable[str]) -> bool:
        """True when the process name or executable basename is in names."""
        wanted = set(names)
        return self.name in wanted or (bool(self.exe) and os.path.basename(self.exe) in wanted)


@dataclass
class ProcessChain:
    """Ancestors ordered from the immediate parent up to the tree root."""

    records: list[ProcessRecord] = field(default_factory=list)

    def __iter__(self) -> Iterator[ProcessRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def boundary_index(self) -> int | None:
        """Index of the nearest ancestor whose real uid is not root."""
        for index, record in enumerate(self.records):
            if record.real_uid != 0:
                return index
        return None

    @property
    def is_root_chain(self) -> bool:
        return self.boundary_index() is None

    def invoking_record(self) -> ProcessRecord | None:
        index = self.boundary_index()
        return None if index is None else self.records[index]

    def invoking_uid(self) -> int:
        record = self.invoking_record()
        return 0 if record is None else record.real_uid

    def elevator(self) -> ProcessRecord | None:
        """The process that switched the chain from a regular user to root.

        A set-uid elevator (sudo, doas, pkexec) keeps the user's real uid
        with an effective uid of root, so it is the boundary record itself.
        Otherwise the elevator is the root process started by the boundary.
        """
        index = self.boundary_index()
        if index is None:
            return None
        boundary = self.records[index]
        if boundary.effective_uid == 0:
            return boundary
        if index == 0:
            return None
        return self.records[index - 1]

    def describe(self) -> str:
        return " <- ".join(f"{r.name}[{r.pid}:{r.real_uid}/{r.effective_uid}]" for r in self.records)


def _snapshot(process: psutil.Process) -> ProcessRecord:
    with process.oneshot():
        uids = process.uids()
        try:
            exe = process.exe()
        except (psutil.AccessDenied, psutil.ZombieProcess):
            exe = ""
        try:
            username = process.username()
        except (psutil.AccessDenied, KeyError):
            username = None
        return ProcessRecord(
            pid=process.pid,
            ppid=process.ppid(),
            name=process.name(),
            exe=exe,
            real_uid=uids.real,
            effective_uid=uids.effective,
            username=username,
        )


def collect_ancestry(pid: int | None = None, *, max_depth: int = 64) -> ProcessChain:
    """Walk parent links from the parent of pid (default: this process) to the root.

    Raises:
        AncestryError: an ancestor exited or could not be read mid-walk, the
            chain loops, or it is deeper than max_depth.
    """
    start_pid = os.getpid() if pid is None else pid
    records: list[ProcessRecord] = []
    seen = {start_pid}
    try:
        child = psutil.Process(start_pid)
        child_started = child.create_time()
        ppid = child.ppid()
        while ppid != 0:
            if ppid in seen:
                raise AncestryError(f"process ancestry loops at pid {ppid}")
            if len(records) >= max_depth:
                raise AncestryError(f"process ancestry deeper than {max_depth} levels")
            # Raises NoSuchProcess when the parent is gone.
            parent = psutil.Process(ppid)
            parent_started = parent.create_time()
            if parent_started > child_started:
                raise AncestryError(f"pid {ppid} was reused while reading the invoking chain")
            seen.add(ppid)
            record = _snapshot(parent)
            records.append(record)
            child_started = parent_started
            ppid = record.ppid
    except psutil.NoSuchProcess as exc:
        raise AncestryError(f"process {exc.pid} exited while reading the invoking chain") from exc
    except psutil.AccessDenied as exc:
        raise AncestryError(f"cannot inspect process {exc.pid} in the invoking chain") from exc

    chain = ProcessChain(records)
    deep_log(f"[DEEP][OPENX] ancestry {chain.describe()}")
    return chain
