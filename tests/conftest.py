"""Shared fixtures for hostwatch tests."""

import pytest

from hostwatch.models import Snapshot
from hostwatch.sampler import RawProcess


class FakeSampler:
    """In-memory stand-in for PlatformSampler."""

    def __init__(
        self,
        cpu: float = 12.5,
        memory: tuple[int, int] = (16 * 1024**3, 8 * 1024**3),
        disks: list[tuple[str, int, int]] | None = None,
        network: list[tuple[str, int, int]] | None = None,
        processes: list[RawProcess] | None = None,
        load: tuple[float, float, float] = (1.0, 0.5, 0.25),
        cores: int = 4,
        threads: dict[int, int] | None = None,
    ) -> None:
        self.cpu = cpu
        self.mem = memory
        self.disk_list = disks if disks is not None else [("/dev/sda1", 1000, 250)]
        self.net_list = network if network is not None else [("eth0", 1024, 2048)]
        self.process_list = processes if processes is not None else []
        self.load = load
        self.cores = cores
        self.threads = threads or {}
        self.failing: set[str] = set()

    def _check(self, name: str) -> None:
        if name in self.failing:
            raise OSError(f"{name} unavailable")

    def cpu_percent(self) -> float:
        self._check("cpu")
        return self.cpu

    def memory(self) -> tuple[int, int]:
        self._check("memory")
        return self.mem

    def disks(self) -> list[tuple[str, int, int]]:
        self._check("disks")
        return self.disk_list

    def network(self) -> list[tuple[str, int, int]]:
        self._check("network")
        return self.net_list

    def processes(self) -> list[RawProcess]:
        self._check("processes")
        return self.process_list

    def load_average(self) -> tuple[float, float, float]:
        self._check("load")
        return self.load

    def logical_cores(self) -> int:
        self._check("cores")
        return self.cores

    def thread_count(self, pid: int) -> int:
        return self.threads.get(pid, 1)


@pytest.fixture
def fake_sampler() -> FakeSampler:
    return FakeSampler()


@pytest.fixture
def make_snapshot():
    """Factory for minimal snapshots distinguished by timestamp."""

    def factory(timestamp: int = 1, **overrides) -> Snapshot:
        values = {
            "timestamp": timestamp,
            "cpu_usage": 10.0,
            "total_memory": 1024,
            "used_memory": 512,
        }
        values.update(overrides)
        return Snapshot(**values)

    return factory
