"""Periodic memory monitor for nanostats."""

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from queue import Queue

from nanostats.config import MIN_PROCESS_MEMORY_BYTES, TOP_PROCESS_COUNT, UPDATE_INTERVAL_SECONDS
from nanostats.memory import SystemMemorySampler
from nanostats.models import MemoryBreakdown, ProcessDetails
from nanostats.processes import ProcessMemoryRanker

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MemorySnapshot:
    """Result of one monitor tick."""

    breakdown: MemoryBreakdown | None
    processes: list[ProcessDetails]
    total_physical_memory: int | None
    timestamp: float = field(default_factory=time.time)


class MemoryMonitor:
    """
    Memory monitor that samples system and process memory on an interval.

    Runs in a separate daemon thread and pushes snapshots to a thread-safe
    Queue. At most one sample runs at a time; a tick that overlaps a running
    sample is skipped.
    """

    def __init__(
        self,
        update_queue: Queue[MemorySnapshot],
        poll_rate: float = UPDATE_INTERVAL_SECONDS,
        top_process_count: int = TOP_PROCESS_COUNT,
        min_process_bytes: int = MIN_PROCESS_MEMORY_BYTES,
        sampler: SystemMemorySampler | None = None,
        ranker: ProcessMemoryRanker | None = None,
    ) -> None:
        """
        Initialize the MemoryMonitor.

        Args:
            update_queue: Thread-safe queue to push snapshots to.
            poll_rate: How often to sample (in seconds). Default 2.0s.
            top_process_count: How many processes each snapshot keeps.
            min_process_bytes: Processes at or below this size are left out.
            sampler: System memory sampler, created if omitted.
            ranker: Process ranker, created if omitted.
        """
        if top_process_count <= 0:
            raise ValueError(f"top_process_count must be positive, got {top_process_count}")

        self._queue = update_queue
        self._poll_rate = UPDATE_INTERVAL_SECONDS
        self.poll_rate = poll_rate
        self._top_process_count = top_process_count
        self._min_process_bytes = min_process_bytes
        self._sampler = sampler if sampler is not None else SystemMemorySampler()
        self._ranker = ranker if ranker is not None else ProcessMemoryRanker()
        self._stop_event = threading.Event()
        self._sample_lock = threading.Lock()
        self._thread: threading.Thread | None = None

        # Installed memory does not change while we run; fetch it once
        self._total_physical_memory = self._sampler.fetch_total_physical_memory()
        if self._total_physical_memory is None:
            logger.error("Total physical memory unavailable at startup; will retry")

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        # Event.wait spins on nan and overflows on inf
        if not math.isfinite(value):
            raise ValueError(f"poll_rate must be finite, got {value}")
        self._poll_rate = min(max(0.1, value), threading.TIMEOUT_MAX)  # Minimum 0.1 seconds

    @property
    def total_physical_memory(self) -> int | None:
        """Cached installed memory in bytes, None until a fetch has succeeded."""
        return self._total_physical_memory

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="MemoryMonitor",
        )
        self._thread.start()
        logger.debug("Memory monitor started (poll rate %.1fs)", self._poll_rate)

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            logger.debug("Memory monitor stopped")

    def sample(self) -> MemorySnapshot | None:
        """
        Take one sample.

        Returns None without sampling if another sample is still running.
        """
        if not self._sample_lock.acquire(blocking=False):
            logger.debug("Previous sample still running; skipping tick")
            return None
        try:
            return self._collect_snapshot()
        finally:
            self._sample_lock.release()

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                snapshot = self.sample()
                if snapshot is not None:
                    self._queue.put(snapshot)
            except Exception:
                # Keep the loop running; the next tick samples again
                logger.exception("Memory sample failed")

            # Wait for poll_rate seconds or until stop is requested
            self._stop_event.wait(timeout=self._poll_rate)

    def _collect_snapshot(self) -> MemorySnapshot:
        """Collect a snapshot of current memory usage."""
        if self._total_physical_memory is None:
            self._total_physical_memory = self._sampler.fetch_total_physical_memory()

        breakdown = self._sampler.fetch_memory_breakdown()

        processes: list[ProcessDetails] = []
        if self._total_physical_memory is not None:
            processes = self._ranker.fetch_top_memory_processes(
                self._top_process_count,
                self._total_physical_memory,
                min_memory_bytes=self._min_process_bytes,
            )

        return MemorySnapshot(
            breakdown=breakdown,
            processes=processes,
            total_physical_memory=self._total_physical_memory,
        )
