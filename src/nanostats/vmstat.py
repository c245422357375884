"""
Virtual-memory page counters.

Two readers produce the same ``VMCounters`` value:

- ``MachVMReader`` asks the macOS kernel directly through
  ``host_statistics64`` and ``sysctlbyname`` (via ctypes on libSystem).
  This is the only source that reports compressor pages.
- ``PsutilVMReader`` works on any platform psutil supports. Counters the
  platform does not report read as zero pages.

Both raise ``VMStatError`` instead of returning partial or estimated data.
"""

import ctypes
import ctypes.util
import logging
import mmap
import sys
from ctypes import Structure, byref, c_int, c_uint32, c_uint64, c_void_p, sizeof
from dataclasses import dataclass
from typing import Protocol

import psutil

logger = logging.getLogger(__name__)

# Mach host_statistics64 flavor (mach/host_info.h)
HOST_VM_INFO64 = 4
KERN_SUCCESS = 0


class VMStatError(OSError):
    """Raised when virtual-memory counters cannot be read."""


@dataclass(slots=True, frozen=True)
class VMCounters:
    """Raw page counters plus the page size they are measured in."""

    active_count: int
    inactive_count: int
    wire_count: int
    compressor_page_count: int
    page_size: int

    @property
    def active_bytes(self) -> int:
        return self.active_count * self.page_size

    @property
    def inactive_bytes(self) -> int:
        return self.inactive_count * self.page_size

    @property
    def wired_bytes(self) -> int:
        return self.wire_count * self.page_size

    @property
    def compressed_bytes(self) -> int:
        return self.compressor_page_count * self.page_size


class VMReader(Protocol):
    def read(self) -> VMCounters:
        ...


class vm_statistics64(Structure):
    """Mach VM statistics (mach/vm_statistics.h). Counts are in pages."""

    _fields_ = [
        ("free_count", c_uint32),
        ("active_count", c_uint32),
        ("inactive_count", c_uint32),
        ("wire_count", c_uint32),
        ("zero_fill_count", c_uint64),
        ("reactivations", c_uint64),
        ("pageins", c_uint64),
        ("pageouts", c_uint64),
        ("faults", c_uint64),
        ("cow_faults", c_uint64),
        ("lookups", c_uint64),
        ("hits", c_uint64),
        ("purges", c_uint64),
        ("purgeable_count", c_uint32),
        ("speculative_count", c_uint32),
        ("decompressions", c_uint64),
        ("compressions", c_uint64),
        ("swapins", c_uint64),
        ("swapouts", c_uint64),
        ("compressor_page_count", c_uint32),
        ("throttled_count", c_uint32),
        ("external_page_count", c_uint32),
        ("internal_page_count", c_uint32),
        ("total_uncompressed_pages_in_compressor", c_uint64),
    ]


# Number of integer_t words the kernel is expected to fill in
HOST_VM_INFO64_COUNT = sizeof(vm_statistics64) // sizeof(c_int)


def _load_libsystem():
    """Load libSystem and declare the signatures used by MachVMReader."""
    path = ctypes.util.find_library("System") or "/usr/lib/libSystem.B.dylib"
    libc = ctypes.CDLL(path, use_errno=True)
    libc.mach_host_self.restype = c_uint32
    libc.mach_host_self.argtypes = []
    libc.host_statistics64.restype = c_int
    libc.host_statistics64.argtypes = [c_uint32, c_int, c_void_p, c_void_p]
    libc.sysctlbyname.restype = c_int
    libc.sysctlbyname.argtypes = [ctypes.c_char_p, c_void_p, c_void_p, c_void_p, ctypes.c_size_t]
    return libc


class MachVMReader:
    """
    Read page counters from the macOS kernel.

    Args:
        libc: Object exposing ``mach_host_self``, ``host_statistics64`` and
            ``sysctlbyname``. Loaded from libSystem on first use when omitted.
    """

    def __init__(self, libc=None) -> None:
        self._libc = libc

    @property
    def libc(self):
        if self._libc is None:
            self._libc = _load_libsystem()
        return self._libc

    def page_size(self) -> int:
        """Kernel page size in bytes (16K on Apple Silicon, 4K on Intel)."""
        value = c_uint64()
        size = ctypes.c_size_t(sizeof(value))
        result = self.libc.sysctlbyname(b"hw.pagesize", byref(value), byref(size), None, 0)
        if result != 0:
            raise VMStatError(f"sysctlbyname(hw.pagesize) failed with {result}")
        if value.value == 0:
            raise VMStatError("kernel reported a zero page size")
        return value.value

    def read(self) -> VMCounters:
        libc = self.libc
        stats = vm_statistics64()
        count = c_uint32(HOST_VM_INFO64_COUNT)
        result = libc.host_statistics64(
            libc.mach_host_self(), HOST_VM_INFO64, byref(stats), byref(count)
        )
        if result != KERN_SUCCESS:
            raise VMStatError(f"host_statistics64 failed with {result}")
        if count.value != HOST_VM_INFO64_COUNT:
            raise VMStatError(
                f"host_statistics64 returned {count.value} words, expected {HOST_VM_INFO64_COUNT}"
            )

        return VMCounters(
            active_count=stats.active_count,
            inactive_count=stats.inactive_count,
            wire_count=stats.wire_count,
            compressor_page_count=stats.compressor_page_count,
            page_size=self.page_size(),
        )


class PsutilVMReader:
    """
    Derive page counters from ``psutil.virtual_memory()``.

    psutil reports bytes, so values are divided back into pages of the
    OS page size.
    """

    def __init__(self, page_size: int | None = None) -> None:
        self._page_size = mmap.PAGESIZE if page_size is None else page_size

    def read(self) -> VMCounters:
        if self._page_size <= 0:
            raise VMStatError("page size must be positive")

        try:
            mem = psutil.virtual_memory()
        except (psutil.Error, OSError) as exc:
            raise VMStatError(f"psutil.virtual_memory() failed: {exc}") from exc

        def pages(field: str) -> int:
            # wired exists only on macOS/BSD
            return int(getattr(mem, field, 0) or 0) // self._page_size

        return VMCounters(
            active_count=pages("active"),
            inactive_count=pages("inactive"),
            wire_count=pages("wired"),
            compressor_page_count=0,
            page_size=self._page_size,
        )


def default_vm_reader() -> VMReader:
    """Pick the most precise reader available on this platform."""
    if sys.platform == "darwin":
        return MachVMReader()
    logger.debug("Using psutil page counters on %s", sys.platform)
    return PsutilVMReader()
