"""Per-process memory ranking."""

import logging
import os
from collections.abc import Callable, Iterable

import psutil

from nanostats.config import MIN_PROCESS_MEMORY_BYTES
from nanostats.models import ProcessDetails, clamp_percentage

logger = logging.getLogger(__name__)

# Attributes fetched per process during enumeration
PROCESS_ATTRS = ["pid", "name", "exe", "memory_info"]


def _iter_processes() -> Iterable[psutil.Process]:
    # Unreadable attributes come back as None instead of raising
    return psutil.process_iter(attrs=PROCESS_ATTRS, ad_value=None)


def resolve_process_name(pid: int, exe: str | None, comm: str | None) -> str:
    """
    Best-effort display name for a process.

    Prefers the executable's file name, then the kernel's short command
    name, then a ``pid-<pid>`` placeholder.
    """
    if exe:
        basename = os.path.basename(exe)
        if basename:
            return basename
    if comm:
        return comm
    return f"pid-{pid}"


def rank_processes(candidates: Iterable[ProcessDetails], limit: int) -> list[ProcessDetails]:
    """
    Deduplicate by pid and return the ``limit`` largest by resident memory.

    A later entry for the same pid replaces an earlier one. Entries with
    equal memory are ordered by pid ascending.
    """
    by_pid: dict[int, ProcessDetails] = {}
    for details in candidates:
        by_pid[details.pid] = details

    ranked = sorted(by_pid.values(), key=lambda p: (-p.memory_usage_bytes, p.pid))
    return ranked[:limit]


class ProcessMemoryRanker:
    """
    Rank running processes by resident memory.

    Args:
        process_source: Callable returning an iterable of process objects
            whose ``info`` dict carries ``pid``, ``name``, ``exe`` and
            ``memory_info``. Defaults to ``psutil.process_iter``.
    """

    def __init__(self, process_source: Callable[[], Iterable] | None = None) -> None:
        self._process_source = process_source if process_source is not None else _iter_processes

    def fetch_top_memory_processes(
        self,
        limit: int,
        total_physical_memory: int,
        min_memory_bytes: int = MIN_PROCESS_MEMORY_BYTES,
    ) -> list[ProcessDetails]:
        """
        Return up to ``limit`` processes sorted by memory usage (descending).

        Processes at or below ``min_memory_bytes`` are left out. Returns an
        empty list if the process table itself cannot be read.
        """
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        if total_physical_memory <= 0:
            raise ValueError(f"total_physical_memory must be positive, got {total_physical_memory}")

        # Enumerate afresh every call; the table changes between samples
        try:
            processes = list(self._process_source())
        except (psutil.Error, OSError) as exc:
            logger.warning("Could not enumerate processes: %s", exc)
            return []

        candidates: list[ProcessDetails] = []
        for proc in processes:
            info = proc.info
            pid = info.get("pid") or 0
            if pid <= 0:
                continue

            # Exited mid-scan, access denied, or zombie
            mem_info = info.get("memory_info")
            if mem_info is None:
                logger.debug("Skipping pid %d: memory info unavailable", pid)
                continue

            memory_bytes = mem_info.rss
            if memory_bytes <= min_memory_bytes:
                continue

            candidates.append(
                ProcessDetails(
                    pid=pid,
                    name=resolve_process_name(pid, info.get("exe"), info.get("name")),
                    memory_usage_bytes=memory_bytes,
                    memory_usage_percentage=clamp_percentage(
                        memory_bytes / total_physical_memory * 100.0
                    ),
                )
            )

        return rank_processes(candidates, limit)
