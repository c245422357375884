"""System-wide memory sampling."""

import logging

import psutil

from nanostats.config import INACTIVE_WEIGHT
from nanostats.models import MemoryBreakdown, clamp_percentage
from nanostats.vmstat import VMCounters, VMReader, VMStatError, default_vm_reader

logger = logging.getLogger(__name__)


def compute_breakdown(
    total_bytes: int,
    counters: VMCounters,
    inactive_weight: float = INACTIVE_WEIGHT,
) -> MemoryBreakdown:
    """
    Build a MemoryBreakdown from raw counters.

    "Used" is active + wired + a fraction of inactive, which is how the
    OS presents used memory to people rather than an exact kernel figure.
    """
    if total_bytes <= 0:
        raise ValueError(f"total_bytes must be positive, got {total_bytes}")

    active = counters.active_bytes
    wired = counters.wired_bytes
    inactive = counters.inactive_bytes
    used = active + wired + int(inactive * inactive_weight)

    return MemoryBreakdown(
        total_bytes=total_bytes,
        active_bytes=active,
        wired_bytes=wired,
        inactive_bytes=inactive,
        compressed_bytes=counters.compressed_bytes,
        used_bytes=used,
        free_bytes=max(0, total_bytes - used),
        usage_percentage=clamp_percentage(used / total_bytes * 100.0),
    )


class SystemMemorySampler:
    """
    Sample system memory usage.

    Stateless: every call reads the OS again. Failures are reported as
    ``None`` and never retried here; the caller's next tick retries.
    """

    def __init__(
        self,
        vm_reader: VMReader | None = None,
        inactive_weight: float = INACTIVE_WEIGHT,
    ) -> None:
        self._vm_reader = vm_reader if vm_reader is not None else default_vm_reader()
        self._inactive_weight = inactive_weight

    def fetch_total_physical_memory(self) -> int | None:
        """Installed physical memory in bytes, or None if it cannot be determined."""
        try:
            total = psutil.virtual_memory().total
        except (psutil.Error, OSError) as exc:
            logger.warning("Could not read total physical memory: %s", exc)
            return None

        if not isinstance(total, int) or isinstance(total, bool) or total <= 0:
            logger.warning("Unexpected total physical memory value: %r", total)
            return None
        return total

    def fetch_memory_breakdown(self) -> MemoryBreakdown | None:
        """Current memory breakdown, or None if any input is unavailable."""
        total = self.fetch_total_physical_memory()
        if total is None:
            return None

        try:
            counters = self._vm_reader.read()
        except VMStatError as exc:
            logger.warning("Could not read VM statistics: %s", exc)
            return None

        if counters.page_size <= 0:
            logger.warning("VM statistics reported page size %d", counters.page_size)
            return None

        return compute_breakdown(total, counters, self._inactive_weight)
