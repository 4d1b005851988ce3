"""Raw OS counters for hostwatch, read through psutil."""

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass

import psutil

logger = logging.getLogger(__name__)

ThreadCounter = Callable[[int], int]

# Field index of num_threads in /proc/<pid>/stat, counted after the comm field
_STAT_NUM_THREADS = 17


@dataclass(slots=True, frozen=True)
class RawProcess:
    """Per-process counters as read from the OS."""

    pid: int
    name: str
    cpu_percent: float
    rss: int


def _busy_and_total(times) -> tuple[float, float]:
    """Split a psutil cpu_times() reading into (busy, total) seconds."""
    total = sum(times)
    # Linux counts guest time inside user and nice as well
    total -= getattr(times, "guest", 0.0) + getattr(times, "guest_nice", 0.0)
    idle = times.idle + getattr(times, "iowait", 0.0)
    return total - idle, total


def proc_stat_thread_count(pid: int) -> int:
    """
    Read the thread count of a process from ``/proc/<pid>/stat``.

    The command name in parentheses may contain spaces, so fields are split
    after the closing parenthesis.

    Raises:
        OSError: If the stat file cannot be read.
        ValueError: If the file does not have the expected layout.
    """
    with open(f"/proc/{pid}/stat", encoding="utf-8", errors="replace") as stat_file:
        contents = stat_file.read()
    _, _, rest = contents.rpartition(")")
    fields = rest.split()
    if len(fields) <= _STAT_NUM_THREADS:
        raise ValueError(f"truncated stat record for pid {pid}")
    return int(fields[_STAT_NUM_THREADS])


def psutil_thread_count(pid: int) -> int:
    """Read the thread count of a process through psutil."""
    return psutil.Process(pid).num_threads()


def default_thread_counter() -> ThreadCounter:
    """Pick the /proc reader where procfs exists, psutil elsewhere."""
    if os.path.isdir("/proc/self"):
        return proc_stat_thread_count
    return psutil_thread_count


class PlatformSampler:
    """
    Reads the raw host counters that make up a snapshot.

    Per-item failures (a partition that cannot be stat'ed, a process that
    exits mid-iteration) are skipped here; whole-metric failures propagate
    to the caller, which decides the fallback.
    """

    def __init__(self, thread_counter: ThreadCounter | None = None) -> None:
        """
        Initialize the PlatformSampler.

        CPU baselines are kept per instance rather than in psutil's module
        state, so each sampler measures the time since its own previous read.

        Args:
            thread_counter: Callable returning the thread count for a pid.
                Defaults to the best provider for this platform.
        """
        self._thread_counter = thread_counter or default_thread_counter()
        self._last_cpu_times = _busy_and_total(psutil.cpu_times())
        self._process_cache: dict[int, psutil.Process] = {}
        # First cpu_percent() per Process returns 0.0
        self.processes()

    def cpu_percent(self) -> float:
        """Host CPU usage since the previous call on this sampler."""
        busy, total = _busy_and_total(psutil.cpu_times())
        last_busy, last_total = self._last_cpu_times
        self._last_cpu_times = (busy, total)
        elapsed = total - last_total
        if elapsed <= 0:
            return 0.0
        return min(100.0, max(0.0, (busy - last_busy) / elapsed * 100.0))

    def memory(self) -> tuple[int, int]:
        """Return (total, used) memory in bytes."""
        mem = psutil.virtual_memory()
        return mem.total, mem.used

    def disks(self) -> list[tuple[str, int, int]]:
        """Return (device, total, available) for every mounted partition."""
        volumes: list[tuple[str, int, int]] = []
        for partition in psutil.disk_partitions(all=False):
            try:
                usage = psutil.disk_usage(partition.mountpoint)
            except (PermissionError, OSError):
                # Unready removable media, stale mounts
                continue
            volumes.append((partition.device or partition.mountpoint, usage.total, usage.free))
        return volumes

    def network(self) -> list[tuple[str, int, int]]:
        """Return (interface, bytes received, bytes sent) per interface."""
        counters = psutil.net_io_counters(pernic=True)
        return [(name, nic.bytes_recv, nic.bytes_sent) for name, nic in counters.items()]

    def processes(self) -> list[RawProcess]:
        """
        Enumerate running processes.

        Process objects are cached on this sampler between calls, so cpu
        percentages are measured against this sampler's previous enumeration.
        """
        processes: list[RawProcess] = []
        seen: dict[int, psutil.Process] = {}
        for pid in psutil.pids():
            try:
                proc = self._process_cache.get(pid)
                if proc is None or not proc.is_running():
                    # New pid, or a reused one
                    proc = psutil.Process(pid)
                info = proc.as_dict(attrs=["name", "cpu_percent", "memory_info"], ad_value=None)
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
            seen[pid] = proc
            mem_info = info.get("memory_info")
            processes.append(
                RawProcess(
                    pid=pid,
                    name=info.get("name") or "",
                    cpu_percent=info.get("cpu_percent") or 0.0,
                    rss=mem_info.rss if mem_info else 0,
                )
            )
        self._process_cache = seen
        return processes

    def load_average(self) -> tuple[float, float, float]:
        return psutil.getloadavg()

    def logical_cores(self) -> int:
        return psutil.cpu_count(logical=True) or 1

    def thread_count(self, pid: int) -> int:
        """Thread count of a process, 1 if the provider cannot tell."""
        try:
            return self._thread_counter(pid)
        except Exception:
            logger.debug("Could not read thread count of pid %d, using 1", pid, exc_info=True)
            return 1
