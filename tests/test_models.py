"""Tests for hostwatch data models."""

import json
import math

import pytest

from hostwatch.models import (
    GIB,
    DiskMetric,
    LoadAverages,
    NetworkMetric,
    ProcessMetric,
    SerializationError,
    Snapshot,
    ThreadDetail,
    ThreadMetrics,
    serialize_snapshot,
    summarize,
)


def full_snapshot() -> Snapshot:
    return Snapshot(
        timestamp=1700000000,
        agent_id="web",
        cpu_usage=42.5,
        total_memory=16 * GIB,
        used_memory=4 * GIB,
        disk_usage=(
            DiskMetric(name="/dev/nvme0n1p2", usage_percent=75.0, total_bytes=100 * GIB,
                       available_bytes=25 * GIB),
            DiskMetric(name="tmpfs", usage_percent=0.0, total_bytes=GIB, available_bytes=GIB),
        ),
        network_usage=(NetworkMetric(interface_name="eth0", bytes_received=10, bytes_sent=20),),
        top_processes=(ProcessMetric(pid=42, name="python", cpu_usage=12.3456, memory_bytes=1000),),
        system_load=LoadAverages(one_minute=1.23456, five_minutes=0.5, fifteen_minutes=0.251),
        thread_metrics=ThreadMetrics(
            total_threads=8,
            active_threads=3,
            thread_per_core=2.0,
            thread_details=(ThreadDetail(process_name="python", thread_count=3, cpu_usage=12.3),),
        ),
    )


class TestDiskMetric:
    """Tests for disk usage computation."""

    def test_usage_percent(self):
        disk = DiskMetric.from_sizes("/dev/sda1", total=1000, available=250)
        assert disk.usage_percent == pytest.approx(75.0)
        assert disk.total_bytes == 1000
        assert disk.available_bytes == 250

    def test_zero_total_reports_zero_usage(self):
        disk = DiskMetric.from_sizes("/dev/loop0", total=0, available=0)
        assert disk.usage_percent == 0.0
        assert not math.isnan(disk.usage_percent)

    def test_full_disk(self):
        disk = DiskMetric.from_sizes("/dev/sdb", total=500, available=0)
        assert disk.usage_percent == pytest.approx(100.0)


class TestSnapshot:
    """Tests for the Snapshot dataclass."""

    def test_snapshot_is_frozen(self, make_snapshot):
        snapshot = make_snapshot()
        with pytest.raises(AttributeError):
            snapshot.cpu_usage = 99.0

    def test_snapshot_uses_slots(self, make_snapshot):
        # Slots-based dataclasses don't have __dict__
        assert not hasattr(make_snapshot(), "__dict__")

    def test_defaults(self, make_snapshot):
        snapshot = make_snapshot()
        assert snapshot.agent_id is None
        assert snapshot.disk_usage == ()
        assert snapshot.top_processes == ()
        assert snapshot.system_load == LoadAverages()
        assert snapshot.thread_metrics.total_threads == 0

    def test_to_dict_field_names(self):
        data = full_snapshot().to_dict()
        assert list(data) == [
            "timestamp",
            "agent_id",
            "cpu_usage",
            "total_memory",
            "used_memory",
            "disk_usage",
            "network_usage",
            "top_processes",
            "system_load",
            "thread_metrics",
        ]
        assert data["disk_usage"][0] == {
            "name": "/dev/nvme0n1p2",
            "usage_percent": 75.0,
            "total_bytes": 100 * GIB,
            "available_bytes": 25 * GIB,
        }
        assert data["network_usage"] == [
            {"interface_name": "eth0", "bytes_received": 10, "bytes_sent": 20}
        ]
        assert data["top_processes"] == [
            {"pid": 42, "name": "python", "cpu_usage": 12.3456, "memory_bytes": 1000}
        ]
        assert data["system_load"] == {
            "one_minute": 1.23456,
            "five_minutes": 0.5,
            "fifteen_minutes": 0.251,
        }
        assert set(data["thread_metrics"]) == {
            "total_threads",
            "active_threads",
            "thread_per_core",
            "thread_details",
        }
        assert data["thread_metrics"]["thread_details"] == [
            {"process_name": "python", "thread_count": 3, "cpu_usage": 12.3}
        ]


class TestSerialization:
    """Tests for serialize_snapshot."""

    def test_serialize_produces_json(self):
        payload = serialize_snapshot(full_snapshot())
        decoded = json.loads(payload)
        assert decoded["timestamp"] == 1700000000
        assert decoded["agent_id"] == "web"
        assert decoded["thread_metrics"]["total_threads"] == 8

    def test_nan_is_rejected(self, make_snapshot):
        with pytest.raises(SerializationError):
            serialize_snapshot(make_snapshot(cpu_usage=float("nan")))

    def test_infinity_is_rejected(self, make_snapshot):
        with pytest.raises(SerializationError):
            serialize_snapshot(make_snapshot(cpu_usage=float("inf")))

    def test_serialization_error_is_value_error(self):
        assert issubclass(SerializationError, ValueError)


class TestSummarize:
    """Tests for the GiB summary view."""

    def test_memory_in_gigabytes(self):
        summary = summarize(full_snapshot())
        assert summary.total_memory_gb == pytest.approx(16.0)
        assert summary.used_memory_gb == pytest.approx(4.0)
        assert summary.memory_percent == pytest.approx(25.0)

    def test_only_block_devices_kept(self):
        summary = summarize(full_snapshot())
        assert [disk.name for disk in summary.disks] == ["/dev/nvme0n1p2"]
        assert summary.disks[0].total_gb == pytest.approx(100.0)
        assert summary.disks[0].available_gb == pytest.approx(25.0)

    def test_rounding(self):
        summary = summarize(full_snapshot())
        assert summary.top_processes[0].cpu_usage == 12.35
        assert summary.system_load.one_minute == 1.23
        assert summary.system_load.fifteen_minutes == 0.25

    def test_zero_memory(self, make_snapshot):
        summary = summarize(make_snapshot(total_memory=0, used_memory=0))
        assert summary.memory_percent == 0.0
