"""Shared fakes for nanostats tests."""

from types import SimpleNamespace

import pytest

from nanostats.memory import SystemMemorySampler
from nanostats.models import MemoryBreakdown
from nanostats.vmstat import VMCounters, VMStatError

MiB = 1024 * 1024
GiB = 1024 * MiB


class FakeProcess:
    """Stands in for a psutil.Process returned by process_iter(attrs=...)."""

    def __init__(self, pid, rss, name="proc", exe=None):
        memory_info = SimpleNamespace(rss=rss) if rss is not None else None
        self.info = {"pid": pid, "name": name, "exe": exe, "memory_info": memory_info}


class FakeVMReader:
    """VM reader returning fixed counters, or raising when given an error."""

    def __init__(self, counters=None, error=None):
        self.counters = counters
        self.error = error
        self.calls = 0

    def read(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.counters


class FakeSampler(SystemMemorySampler):
    """Sampler with scripted total memory and breakdown results."""

    def __init__(self, totals=(16 * GiB,), breakdown=None):
        super().__init__(vm_reader=FakeVMReader(error=VMStatError("unused")))
        self._totals = list(totals)
        self._breakdown = breakdown
        self.total_calls = 0

    def fetch_total_physical_memory(self):
        self.total_calls += 1
        if len(self._totals) > 1:
            return self._totals.pop(0)
        return self._totals[0]

    def fetch_memory_breakdown(self):
        return self._breakdown


@pytest.fixture
def counters():
    """Counters matching 4e9 active, 1e9 wired, 2e9 inactive, 0.5e9 compressed."""
    return VMCounters(
        active_count=4_000_000,
        inactive_count=2_000_000,
        wire_count=1_000_000,
        compressor_page_count=500_000,
        page_size=1000,
    )


@pytest.fixture
def breakdown():
    return MemoryBreakdown(
        total_bytes=16 * GiB,
        active_bytes=4 * GiB,
        wired_bytes=2 * GiB,
        inactive_bytes=4 * GiB,
        compressed_bytes=1 * GiB,
        used_bytes=7 * GiB,
        free_bytes=9 * GiB,
        usage_percentage=43.75,
    )


@pytest.fixture
def fake_processes():
    return [
        FakeProcess(101, 300 * MiB, name="Safari", exe="/Applications/Safari.app/Contents/MacOS/Safari"),
        FakeProcess(202, 800 * MiB, name="python3", exe="/usr/bin/python3"),
        FakeProcess(303, 50 * MiB, name="zsh", exe="/bin/zsh"),
    ]
