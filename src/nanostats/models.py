"""Data models for nanostats."""

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class MemoryBreakdown:
    """Immutable system-wide memory breakdown."""

    total_bytes: int
    active_bytes: int
    wired_bytes: int
    inactive_bytes: int
    compressed_bytes: int
    used_bytes: int  # active + wired + weighted inactive
    free_bytes: int  # never negative
    usage_percentage: float  # 0.0 - 100.0


@dataclass(slots=True, frozen=True)
class ProcessDetails:
    """Immutable memory snapshot of a single process."""

    pid: int
    name: str
    memory_usage_bytes: int  # Resident set size
    memory_usage_percentage: float  # 0.0 - 100.0 of physical memory


def clamp_percentage(value: float) -> float:
    """Clamp a percentage to the 0-100 range."""
    return max(0.0, min(100.0, value))
