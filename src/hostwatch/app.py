"""hostwatch - Terminal dashboard fed by the delivery channel."""

from enum import Enum

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widgets import DataTable, Footer, Static

from hostwatch.assembler import SnapshotAssembler
from hostwatch.history import HistoryStore
from hostwatch.models import GigabyteSummary, ProcessMetric, Snapshot, summarize
from hostwatch.sampler import PlatformSampler
from hostwatch.scheduler import CollectionScheduler, DeliveryChannel


class SortKey(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    MEM = "mem"
    PID = "pid"


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{size:5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def usage_bar(percent: float, color: str, width: int = 20) -> str:
    """Render a percentage as a markup bar of fixed width."""
    filled = min(max(int(percent / (100 / width)), 0), width)
    return f"[{color}]█[/{color}]" * filled + "[dim]░[/dim]" * (width - filled)


class HeaderStats(Static):
    """Header widget showing CPU, memory, load and thread statistics."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 5;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._summary: GigabyteSummary | None = None

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Horizontal(
            Static(self._get_usage_info(), id="usage-info"),
            Static(self._get_disk_info(), id="disk-info"),
        )

    def update_stats(self, summary: GigabyteSummary) -> None:
        """Update the statistics from a snapshot summary."""
        self._summary = summary
        self.query_one("#usage-info", Static).update(self._get_usage_info())
        self.query_one("#disk-info", Static).update(self._get_disk_info())

    def _get_usage_info(self) -> str:
        summary = self._summary
        if summary is None:
            return "Waiting for first sample..."
        load = summary.system_load
        threads = summary.thread_metrics
        return (
            f"CPU\\[{usage_bar(summary.cpu_usage, 'green')}] {summary.cpu_usage:5.1f}%\n"
            f"Mem\\[{usage_bar(summary.memory_percent, 'cyan')}] "
            f"{summary.used_memory_gb:.1f}G/{summary.total_memory_gb:.1f}G\n"
            f"Load average: {load.one_minute:.2f} {load.five_minutes:.2f} "
            f"{load.fifteen_minutes:.2f}\n"
            f"Threads: {threads.active_threads}/{threads.total_threads} active, "
            f"{threads.thread_per_core:.2f} per core"
        )

    def _get_disk_info(self) -> str:
        summary = self._summary
        if summary is None:
            return ""
        if not summary.disks:
            return "No block devices"
        lines = []
        for disk in summary.disks:
            used_gb = disk.total_gb - disk.available_gb
            lines.append(
                f"{disk.name[:14]:<14}\\[{usage_bar(disk.usage_percent, 'yellow', 10)}] "
                f"{used_gb:.1f}G/{disk.total_gb:.1f}G"
            )
        return "\n".join(lines)


class ProcessTable(Container):
    """Container for the top-process table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._sort_key: SortKey = SortKey.CPU
        self._processes: tuple[ProcessMetric, ...] = ()

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key, re-render and return it."""
        keys = list(SortKey)
        self._sort_key = keys[(keys.index(self._sort_key) + 1) % len(keys)]
        self._render_rows()
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"
        table.add_column("PID", key="pid", width=8)
        table.add_column("CPU%", key="cpu", width=8)
        table.add_column("RES", key="rss", width=8)
        table.add_column("Command", key="name")

    def update_processes(self, processes: tuple[ProcessMetric, ...]) -> None:
        """Replace the table contents with a new top-process list."""
        self._processes = processes
        self._render_rows()

    def sorted_processes(self) -> list[ProcessMetric]:
        """Processes ordered by the current sort key."""
        key_func = {
            SortKey.CPU: lambda p: p.cpu_usage,
            SortKey.MEM: lambda p: p.memory_bytes,
            SortKey.PID: lambda p: p.pid,
        }
        reverse = self._sort_key is not SortKey.PID
        return sorted(self._processes, key=key_func[self._sort_key], reverse=reverse)

    def _render_rows(self) -> None:
        # At most ten rows, so a full redraw is cheap
        table = self.query_one("#process-table", DataTable)
        table.clear()
        for proc in self.sorted_processes():
            table.add_row(
                str(proc.pid),
                f"{proc.cpu_usage:5.1f}",
                format_bytes(proc.memory_bytes),
                proc.name[:50],
                key=str(proc.pid),
            )


class DashboardApp(App):
    """Live view of the local host, subscribed to the delivery channel."""

    TITLE = "hostwatch"
    SUB_TITLE = "Host Metrics Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
        min-height: 6;
    }

    Horizontal {
        height: auto;
    }

    #usage-info {
        width: 1fr;
        padding-right: 2;
    }

    #disk-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
    ]

    def __init__(
        self,
        channel: DeliveryChannel | None = None,
        scheduler: CollectionScheduler | None = None,
        interval: float = 2.0,
    ) -> None:
        """
        Initialize the DashboardApp.

        Args:
            channel: Delivery channel to drain. A new one is created if omitted.
            scheduler: Collection scheduler feeding the channel. When omitted,
                one sampling the local host every ``interval`` seconds is built.
            interval: Collection interval for the default scheduler (seconds).
        """
        super().__init__()
        self._channel = channel or DeliveryChannel()
        if scheduler is None:
            scheduler = CollectionScheduler(
                SnapshotAssembler(PlatformSampler()),
                HistoryStore(capacity=60),
                self._channel,
                interval=interval,
            )
        self._scheduler = scheduler
        self.latest: Snapshot | None = None

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield ProcessTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start collection when the app is mounted."""
        self._scheduler.start()
        self.set_interval(0.5, self.check_for_updates)

    def on_unmount(self) -> None:
        self._scheduler.stop()

    def check_for_updates(self) -> None:
        """Drain the channel and render the most recent snapshot."""
        snapshot = self._channel.drain_latest()
        if snapshot is not None:
            self.show_snapshot(snapshot)

    def show_snapshot(self, snapshot: Snapshot) -> None:
        self.latest = snapshot
        self.query_one("#header-stats", HeaderStats).update_stats(summarize(snapshot))
        self.query_one(ProcessTable).update_processes(snapshot.top_processes)

    def action_sort(self) -> None:
        """Cycle through sort keys."""
        new_sort_key = self.query_one(ProcessTable).cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_quit(self) -> None:
        """Stop collection and exit."""
        self._scheduler.stop()
        self.exit()
