"""Data models for hostwatch."""

import json
import math
from dataclasses import asdict, dataclass, field
from typing import Any

GIB = 1024**3


class SerializationError(ValueError):
    """Raised when a snapshot cannot be encoded for the wire."""


@dataclass(slots=True, frozen=True)
class DiskMetric:
    """Usage of one mounted volume."""

    name: str
    usage_percent: float  # 0.0 - 100.0
    total_bytes: int
    available_bytes: int

    @classmethod
    def from_sizes(cls, name: str, total: int, available: int) -> "DiskMetric":
        """Build a metric from raw sizes; an empty volume reports 0% usage."""
        if total <= 0:
            return cls(name=name, usage_percent=0.0, total_bytes=total, available_bytes=available)
        usage = 100.0 * (total - available) / total
        return cls(name=name, usage_percent=usage, total_bytes=total, available_bytes=available)


@dataclass(slots=True, frozen=True)
class NetworkMetric:
    """Cumulative counters of one network interface."""

    interface_name: str
    bytes_received: int
    bytes_sent: int


@dataclass(slots=True, frozen=True)
class ProcessMetric:
    """One entry of the top-process list."""

    pid: int
    name: str
    cpu_usage: float
    memory_bytes: int  # RSS


@dataclass(slots=True, frozen=True)
class LoadAverages:
    one_minute: float = 0.0
    five_minutes: float = 0.0
    fifteen_minutes: float = 0.0


@dataclass(slots=True, frozen=True)
class ThreadDetail:
    process_name: str
    thread_count: int
    cpu_usage: float


@dataclass(slots=True, frozen=True)
class ThreadMetrics:
    """Thread totals across all processes."""

    total_threads: int = 0
    active_threads: int = 0
    thread_per_core: float = 0.0
    thread_details: tuple[ThreadDetail, ...] = ()


@dataclass(slots=True, frozen=True)
class Snapshot:
    """
    Immutable point-in-time bundle of host metrics.

    Every sequence is a tuple, so a snapshot can be shared between the
    history store, the delivery channel and any number of connections.
    """

    timestamp: int  # Unix seconds
    cpu_usage: float
    total_memory: int
    used_memory: int
    agent_id: str | None = None
    disk_usage: tuple[DiskMetric, ...] = ()
    network_usage: tuple[NetworkMetric, ...] = ()
    top_processes: tuple[ProcessMetric, ...] = ()
    system_load: LoadAverages = field(default_factory=LoadAverages)
    thread_metrics: ThreadMetrics = field(default_factory=ThreadMetrics)

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation as plain dicts and lists."""
        data = asdict(self)
        return {
            "timestamp": data["timestamp"],
            "agent_id": data["agent_id"],
            "cpu_usage": data["cpu_usage"],
            "total_memory": data["total_memory"],
            "used_memory": data["used_memory"],
            "disk_usage": list(data["disk_usage"]),
            "network_usage": list(data["network_usage"]),
            "top_processes": list(data["top_processes"]),
            "system_load": data["system_load"],
            "thread_metrics": {
                **data["thread_metrics"],
                "thread_details": list(data["thread_metrics"]["thread_details"]),
            },
        }


def serialize_snapshot(snapshot: Snapshot) -> str:
    """
    Encode a snapshot as strict JSON.

    Raises:
        SerializationError: If the snapshot holds values JSON cannot carry
            (NaN, infinity) or is not a snapshot at all.
    """
    try:
        return json.dumps(snapshot.to_dict(), allow_nan=False)
    except (TypeError, ValueError, AttributeError) as exc:
        raise SerializationError(f"cannot serialize snapshot: {exc}") from exc


@dataclass(slots=True, frozen=True)
class DiskSummary:
    name: str
    usage_percent: float
    total_gb: float
    available_gb: float


@dataclass(slots=True, frozen=True)
class GigabyteSummary:
    """Human-scale view of a snapshot, sizes in GiB."""

    timestamp: int
    cpu_usage: float
    total_memory_gb: float
    used_memory_gb: float
    disks: tuple[DiskSummary, ...]
    top_processes: tuple[ProcessMetric, ...]
    system_load: LoadAverages
    thread_metrics: ThreadMetrics

    @property
    def memory_percent(self) -> float:
        if self.total_memory_gb <= 0:
            return 0.0
        return self.used_memory_gb / self.total_memory_gb * 100.0


def _round2(value: float) -> float:
    if not math.isfinite(value):
        return value
    return round(value * 100.0) / 100.0


def summarize(snapshot: Snapshot) -> GigabyteSummary:
    """
    Convert a snapshot to GiB units for display.

    Only block-device volumes (``/dev/...``) are kept; pseudo filesystems
    are dropped. Process cpu usage and load averages are rounded to two
    decimals.
    """
    disks = tuple(
        DiskSummary(
            name=disk.name,
            usage_percent=disk.usage_percent,
            total_gb=disk.total_bytes / GIB,
            available_gb=disk.available_bytes / GIB,
        )
        for disk in snapshot.disk_usage
        if disk.name.startswith("/dev/")
    )
    processes = tuple(
        ProcessMetric(
            pid=proc.pid,
            name=proc.name,
            cpu_usage=_round2(proc.cpu_usage),
            memory_bytes=proc.memory_bytes,
        )
        for proc in snapshot.top_processes
    )
    load = snapshot.system_load
    return GigabyteSummary(
        timestamp=snapshot.timestamp,
        cpu_usage=snapshot.cpu_usage,
        total_memory_gb=snapshot.total_memory / GIB,
        used_memory_gb=snapshot.used_memory / GIB,
        disks=disks,
        top_processes=processes,
        system_load=LoadAverages(
            one_minute=_round2(load.one_minute),
            five_minutes=_round2(load.five_minutes),
            fifteen_minutes=_round2(load.fifteen_minutes),
        ),
        thread_metrics=snapshot.thread_metrics,
    )
