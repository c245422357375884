"""nanostats - Textual application showing memory usage and top processes."""

import logging
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widgets import DataTable, Footer, Static

from nanostats.config import NanoStatsConfig
from nanostats.memory import SystemMemorySampler
from nanostats.models import MemoryBreakdown, ProcessDetails
from nanostats.monitor import MemoryMonitor, MemorySnapshot
from nanostats.processes import ProcessMemoryRanker

logger = logging.getLogger(__name__)

MEMORY_ERROR_TEXT = "Could not fetch memory details"
PROCESS_ERROR_TEXT = "Could not fetch processes"
INVALID_TOTAL_TEXT = "Error: Invalid total memory for process list."


def format_bytes(size: int) -> str:
    """Format a memory size adaptively as KB, MB or GB (binary multiples)."""
    if size < 1024**2:
        return f"{size / 1024:.0f} KB"
    if size < 1024**3:
        text = f"{size / 1024**2:.1f}"
        unit = "MB"
    else:
        text = f"{size / 1024**3:.2f}"
        unit = "GB"
    return f"{text.rstrip('0').rstrip('.')} {unit}"


def breakdown_lines(breakdown: MemoryBreakdown | None) -> list[str]:
    """Text lines describing a memory breakdown."""
    if breakdown is None:
        return [MEMORY_ERROR_TEXT]
    return [
        f"Total RAM: {format_bytes(breakdown.total_bytes)}",
        "",
        f"Active: {format_bytes(breakdown.active_bytes)}",
        f"Wired: {format_bytes(breakdown.wired_bytes)}",
        f"Inactive: {format_bytes(breakdown.inactive_bytes)}",
        f"Compressed: {format_bytes(breakdown.compressed_bytes)}",
        f"Used (A+I+W): {format_bytes(breakdown.used_bytes)}",
        f"Free: {format_bytes(breakdown.free_bytes)}",
    ]


def format_percentage(percentage: float) -> str:
    """Whole-number percentage, rounding halves up (42.5 -> ``43%``)."""
    # percentage is clamped to 0-100, so int() truncation is a floor
    return f"{int(percentage + 0.5)}%"


def process_label(process: ProcessDetails) -> str:
    """One-line label for a process, e.g. ``python - 120.5 MB (0.7%)``."""
    return (
        f"{process.name} - {format_bytes(process.memory_usage_bytes)} "
        f"({process.memory_usage_percentage:.1f}%)"
    )


class MemoryStatus(Static):
    """Compact RAM usage indicator."""

    DEFAULT_CSS = """
    MemoryStatus {
        width: 12;
        height: 3;
        content-align: center middle;
        text-align: center;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__("RAM\n0%", *args, **kwargs)
        self._percentage: float | None = 0.0
        self._label = "0%"

    @property
    def percentage(self) -> float | None:
        return self._percentage

    @property
    def label(self) -> str:
        return self._label

    def update_percentage(self, percentage: float) -> None:
        self._percentage = percentage
        self._label = format_percentage(percentage)
        self.update(f"RAM\n[b]{self._label}[/b]")

    def show_error(self) -> None:
        self._percentage = None
        self._label = "Error"
        self.update("RAM: Error")


class BreakdownPanel(Static):
    """System memory breakdown."""

    DEFAULT_CSS = """
    BreakdownPanel {
        width: 1fr;
        height: auto;
        padding: 0 1;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__("Loading memory info...", *args, **kwargs)
        self._lines: list[str] = []

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    def update_breakdown(self, breakdown: MemoryBreakdown | None) -> None:
        self._lines = breakdown_lines(breakdown)
        self.update("\n".join(self._lines))


class ProcessList(Container):
    """Top processes by resident memory."""

    DEFAULT_CSS = """
    ProcessList {
        height: 1fr;
        border: solid $primary;
    }

    #process-message {
        height: auto;
        padding: 0 1;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessList."""
        super().__init__(*args, **kwargs)
        self._current_pids: list[int] = []
        self._message: str = ""

    @property
    def message(self) -> str:
        return self._message

    def compose(self) -> ComposeResult:
        yield Static("Top Processes", id="process-heading")
        yield Static("", id="process-message")
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        self._ensure_columns(self.query_one("#process-table", DataTable))

    def _ensure_columns(self, table: DataTable) -> None:
        if table.columns:
            return
        table.cursor_type = "row"
        table.add_column("Process", key="process")
        table.add_column("PID", key="pid", width=8)

    def update_processes(
        self, processes: list[ProcessDetails], total_physical_memory: int | None
    ) -> None:
        """
        Replace the table contents with the given ranking.

        Rows are rebuilt on every update since the ranking order changes.
        """
        table = self.query_one("#process-table", DataTable)
        self._ensure_columns(table)
        table.clear()
        self._current_pids = []

        if total_physical_memory is None:
            self._set_message(INVALID_TOTAL_TEXT)
            return
        if not processes:
            self._set_message(PROCESS_ERROR_TEXT)
            return

        self._set_message("")
        for proc in processes:
            table.add_row(process_label(proc), str(proc.pid), key=str(proc.pid))
            self._current_pids.append(proc.pid)

    def _set_message(self, text: str) -> None:
        self._message = text
        self.query_one("#process-message", Static).update(text)


class NanoStatsApp(App):
    """Main nanostats application."""

    TITLE = "NanoStats"
    SUB_TITLE = "Memory Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #summary {
        height: auto;
        min-height: 9;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit NanoStats"),
    ]

    def __init__(
        self,
        config: NanoStatsConfig | None = None,
        sampler: SystemMemorySampler | None = None,
        ranker: ProcessMemoryRanker | None = None,
    ) -> None:
        """Initialize the NanoStatsApp."""
        super().__init__()
        self._config = config if config is not None else NanoStatsConfig()
        self.title = self._config.title
        self._update_queue: Queue[MemorySnapshot] = Queue()
        if sampler is None:
            sampler = SystemMemorySampler(inactive_weight=self._config.inactive_weight)
        self._monitor = MemoryMonitor(
            self._update_queue,
            poll_rate=self._config.update_interval,
            top_process_count=self._config.top_process_count,
            min_process_bytes=self._config.min_process_bytes,
            sampler=sampler,
            ranker=ranker,
        )
        self._cleaned_up = False

    @property
    def monitor(self) -> MemoryMonitor:
        return self._monitor

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield Horizontal(
            MemoryStatus(id="memory-status"),
            BreakdownPanel(id="breakdown"),
            id="summary",
        )
        yield ProcessList(id="process-list")
        yield Footer()

    def on_mount(self) -> None:
        """Queue a first sample, then start the monitor."""
        snapshot = self._monitor.sample()
        if snapshot is not None:
            self._update_queue.put(snapshot)
        self._monitor.start()
        # Show the first sample once the widgets are laid out
        self.call_after_refresh(self._check_for_updates)
        # Poll the queue for updates from the monitor thread
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Check the queue for snapshots and refresh the UI."""
        # Drain the queue to get the most recent snapshot
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshot is not None:
            self._update_ui(snapshot)

    def _update_ui(self, snapshot: MemorySnapshot) -> None:
        """Update the UI with a new memory snapshot."""
        status = self.query_one("#memory-status", MemoryStatus)
        if snapshot.breakdown is not None:
            status.update_percentage(snapshot.breakdown.usage_percentage)
        else:
            status.show_error()

        self.query_one("#breakdown", BreakdownPanel).update_breakdown(snapshot.breakdown)
        self.query_one(ProcessList).update_processes(
            snapshot.processes, snapshot.total_physical_memory
        )

    def cleanup(self) -> None:
        """Stop the monitor. Safe to call more than once."""
        if self._cleaned_up:
            return
        self._cleaned_up = True
        logger.debug("Stopping %s", self.title)
        self._monitor.stop()

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self.cleanup()
        self.exit()
