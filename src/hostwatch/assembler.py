"""Snapshot assembly for hostwatch."""

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from typing import Protocol, TypeVar

from hostwatch.models import (
    DiskMetric,
    LoadAverages,
    NetworkMetric,
    ProcessMetric,
    Snapshot,
    ThreadDetail,
    ThreadMetrics,
)
from hostwatch.sampler import RawProcess

logger = logging.getLogger(__name__)

TOP_PROCESS_LIMIT = 10
ACTIVE_CPU_THRESHOLD = 0.1  # percent

T = TypeVar("T")


class Sampler(Protocol):
    """What the assembler needs from a source of raw counters."""

    def cpu_percent(self) -> float: ...

    def memory(self) -> tuple[int, int]: ...

    def disks(self) -> list[tuple[str, int, int]]: ...

    def network(self) -> list[tuple[str, int, int]]: ...

    def processes(self) -> list[RawProcess]: ...

    def load_average(self) -> tuple[float, float, float]: ...

    def logical_cores(self) -> int: ...

    def thread_count(self, pid: int) -> int: ...


def top_processes(
    processes: Iterable[RawProcess], limit: int = TOP_PROCESS_LIMIT
) -> tuple[ProcessMetric, ...]:
    """
    Select the busiest processes.

    Idle processes (cpu usage 0) are dropped. sorted() is stable, so ties
    keep enumeration order.
    """
    busy = [proc for proc in processes if proc.cpu_percent > 0.0]
    busy = sorted(busy, key=lambda p: p.cpu_percent, reverse=True)[:limit]
    return tuple(
        ProcessMetric(pid=p.pid, name=p.name, cpu_usage=p.cpu_percent, memory_bytes=p.rss)
        for p in busy
    )


def thread_metrics(
    processes: Sequence[RawProcess],
    thread_count: Callable[[int], int],
    cores: int,
) -> ThreadMetrics:
    """
    Sum per-process thread counts into host-wide totals.

    A process whose thread count cannot be read counts as one thread.
    """
    total = 0
    active = 0
    details: list[ThreadDetail] = []
    for proc in processes:
        try:
            count = thread_count(proc.pid)
        except Exception:
            logger.debug("Could not read thread count of pid %d, using 1", proc.pid, exc_info=True)
            count = 1
        total += count
        if proc.cpu_percent > ACTIVE_CPU_THRESHOLD:
            active += count
        details.append(
            ThreadDetail(process_name=proc.name, thread_count=count, cpu_usage=proc.cpu_percent)
        )
    return ThreadMetrics(
        total_threads=total,
        active_threads=active,
        thread_per_core=total / max(cores, 1),
        thread_details=tuple(details),
    )


class SnapshotAssembler:
    """
    Builds one consistent Snapshot from a sampler.

    sample() never raises: each sub-metric is read on its own and falls
    back to a neutral default when the read fails.
    """

    def __init__(self, sampler: Sampler, clock: Callable[[], float] = time.time) -> None:
        self._sampler = sampler
        self._clock = clock

    def _read(self, label: str, reader: Callable[[], T], default: T) -> T:
        try:
            return reader()
        except Exception:
            logger.debug("Could not read %s metrics, using default", label, exc_info=True)
            return default

    def sample(self) -> Snapshot:
        """Sample the host once."""
        sampler = self._sampler

        cpu = self._read("cpu", sampler.cpu_percent, 0.0)
        total_memory, used_memory = self._read("memory", sampler.memory, (0, 0))

        disks = self._read("disk", sampler.disks, [])
        disk_usage = tuple(
            DiskMetric.from_sizes(name, total, available) for name, total, available in disks
        )

        interfaces = self._read("network", sampler.network, [])
        network_usage = tuple(
            NetworkMetric(interface_name=name, bytes_received=received, bytes_sent=sent)
            for name, received, sent in interfaces
        )

        processes = self._read("process", sampler.processes, [])
        load = self._read("load", sampler.load_average, (0.0, 0.0, 0.0))
        cores = self._read("core count", sampler.logical_cores, 1)
        threads = self._read(
            "thread",
            lambda: thread_metrics(processes, sampler.thread_count, cores),
            ThreadMetrics(),
        )

        return Snapshot(
            timestamp=int(self._clock()),
            cpu_usage=float(cpu),
            total_memory=total_memory,
            used_memory=used_memory,
            disk_usage=disk_usage,
            network_usage=network_usage,
            top_processes=top_processes(processes),
            system_load=LoadAverages(*load),
            thread_metrics=threads,
        )
