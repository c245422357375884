"""Configuration constants and settings for nanostats."""

import math
from dataclasses import dataclass

# How often the monitor samples memory (seconds)
UPDATE_INTERVAL_SECONDS = 2.0

# Number of processes shown in the top list
TOP_PROCESS_COUNT = 10

# Processes with this much resident memory or less are left out
MIN_PROCESS_MEMORY_BYTES = 1024 * 1024

# Share of inactive memory counted as "used"
INACTIVE_WEIGHT = 0.25

DEFAULT_TITLE = "NanoStats"


@dataclass(slots=True, frozen=True)
class NanoStatsConfig:
    """Validated runtime settings."""

    title: str = DEFAULT_TITLE
    update_interval: float = UPDATE_INTERVAL_SECONDS
    top_process_count: int = TOP_PROCESS_COUNT
    min_process_bytes: int = MIN_PROCESS_MEMORY_BYTES
    inactive_weight: float = INACTIVE_WEIGHT

    def __post_init__(self) -> None:
        if not self.title:
            raise ValueError("title must not be empty")
        if not math.isfinite(self.update_interval) or self.update_interval <= 0:
            raise ValueError(f"update_interval must be positive and finite, got {self.update_interval}")
        if self.top_process_count <= 0:
            raise ValueError(f"top_process_count must be positive, got {self.top_process_count}")
        if not math.isfinite(self.min_process_bytes) or self.min_process_bytes < 0:
            raise ValueError(f"min_process_bytes must not be negative, got {self.min_process_bytes}")
        if not (math.isfinite(self.inactive_weight) and 0.0 <= self.inactive_weight <= 1.0):
            raise ValueError(f"inactive_weight must be within [0, 1], got {self.inactive_weight}")
