"""Periodic collection for hostwatch."""

import dataclasses
import logging
import threading
from collections.abc import Callable, Sequence
from queue import Empty, Full, Queue

from hostwatch.assembler import SnapshotAssembler
from hostwatch.config import AgentConfig
from hostwatch.history import HistoryStore
from hostwatch.models import GIB, Snapshot

logger = logging.getLogger(__name__)


class DeliveryChannel:
    """
    Bounded hand-off of fresh snapshots to an external subscriber.

    offer() never blocks: when the queue is full the oldest pending
    snapshot is dropped to make room, so an absent subscriber costs at most
    ``maxsize`` snapshots of memory.
    """

    def __init__(self, maxsize: int = 100) -> None:
        if maxsize < 1:
            raise ValueError(f"maxsize must be >= 1, got {maxsize}")
        self._queue: Queue[Snapshot] = Queue(maxsize=maxsize)
        self._lock = threading.Lock()
        self.dropped = 0

    def offer(self, snapshot: Snapshot) -> bool:
        """Queue a snapshot without blocking. Returns False if it was not queued."""
        with self._lock:
            try:
                self._queue.put_nowait(snapshot)
                return True
            except Full:
                pass
            try:
                self._queue.get_nowait()
                self.dropped += 1
                logger.debug("Delivery channel full, dropped oldest snapshot")
            except Empty:
                pass
            try:
                self._queue.put_nowait(snapshot)
                return True
            except Full:
                logger.warning("Failed to deliver snapshot %s: channel full", snapshot.timestamp)
                return False

    def get(self, timeout: float | None = None) -> Snapshot:
        """Block until a snapshot is available. Raises queue.Empty on timeout."""
        return self._queue.get(timeout=timeout)

    def get_nowait(self) -> Snapshot:
        return self._queue.get_nowait()

    def drain_latest(self) -> Snapshot | None:
        """Empty the channel and return the most recent snapshot, if any."""
        snapshot = None
        while True:
            try:
                snapshot = self._queue.get_nowait()
            except Empty:
                return snapshot

    def qsize(self) -> int:
        return self._queue.qsize()


class CollectionScheduler:
    """
    Samples the host on a fixed delay and records each snapshot.

    Runs in a daemon thread. Every tick the snapshot is offered to the
    delivery channel (never blocking) and then appended to the history
    store, whatever the channel did.
    """

    def __init__(
        self,
        assembler: SnapshotAssembler,
        history: HistoryStore,
        channel: DeliveryChannel | None = None,
        interval: float = 10.0,
        agent_id: str | None = None,
    ) -> None:
        """
        Initialize the CollectionScheduler.

        Args:
            assembler: Produces one snapshot per tick.
            history: Store every snapshot is appended to.
            channel: Optional delivery channel offered each snapshot.
            interval: Delay between the end of one tick and the next (seconds).
            agent_id: Source identifier stamped on every snapshot.
        """
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self._assembler = assembler
        self._history = history
        self._channel = channel
        self._interval = interval
        self._agent_id = agent_id
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def agent_id(self) -> str | None:
        return self._agent_id

    @property
    def is_running(self) -> bool:
        """Check if the collection thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the collection thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        name = "CollectionScheduler"
        if self._agent_id:
            name = f"{name}-{self._agent_id}"
        self._thread = threading.Thread(target=self._run, daemon=True, name=name)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the collection thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("Error collecting metrics")
            # Fixed delay from the end of the tick
            self._stop_event.wait(timeout=self._interval)

    def tick(self) -> Snapshot:
        """Run one collection cycle and return the recorded snapshot."""
        snapshot = self._assembler.sample()
        if self._agent_id is not None:
            snapshot = dataclasses.replace(snapshot, agent_id=self._agent_id)

        threads = snapshot.thread_metrics
        logger.info(
            "Collected metrics%s - CPU: %.1f%%, Mem: %.1f/%.1f GB, Threads: %d/%d",
            f" [{self._agent_id}]" if self._agent_id else "",
            snapshot.cpu_usage,
            snapshot.used_memory / GIB,
            snapshot.total_memory / GIB,
            threads.active_threads,
            threads.total_threads,
        )

        if self._channel is not None:
            try:
                self._channel.offer(snapshot)
            except Exception:
                logger.exception("Failed to send metrics")

        self._history.append(snapshot)
        return snapshot


def build_schedulers(
    config: AgentConfig,
    make_assembler: Callable[[], SnapshotAssembler],
    history: HistoryStore,
    channel: DeliveryChannel | None = None,
) -> list[CollectionScheduler]:
    """
    Create the collection units described by the configuration.

    Each configured source gets its own scheduler, interval and assembler;
    all of them share the same store and channel. A unit's CPU readings are
    relative to its own previous tick. Without sources a single untagged
    scheduler runs at the default interval.
    """
    if not config.sources:
        return [CollectionScheduler(make_assembler(), history, channel, config.collect_interval)]
    return [
        CollectionScheduler(
            make_assembler(), history, channel, source.interval, agent_id=source.id
        )
        for source in config.sources
    ]


def start_all(schedulers: Sequence[CollectionScheduler]) -> None:
    for scheduler in schedulers:
        scheduler.start()


def stop_all(schedulers: Sequence[CollectionScheduler], timeout: float | None = 5.0) -> None:
    for scheduler in schedulers:
        scheduler.stop(timeout=timeout)
