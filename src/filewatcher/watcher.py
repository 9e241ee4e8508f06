"""Main file watcher orchestrator."""

import logging
import os
import queue
import threading
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .classifier import Callback, ChangeClassifier
from .config import WatcherConfig
from .groups import DirectoryWatchGroup, NativeWatchBackend, WatchdogBackend
from .models import RawEvent, Stat
from .reconciler import ReconciliationLoop
from .registry import TargetRegistry
from .snapshot import Snapshot, SnapshotStore

logger = logging.getLogger(__name__)

NativeDelivery = Tuple[DirectoryWatchGroup, int, RawEvent]


class FileWatcher:
    """
    Watches files and directories and reports normalized changes.

    Native events and reconciliation ticks are two producers funneled
    into one classifier. Every entry point holds the same re-entrant
    lock, so the registry only ever has one writer and callbacks may
    call back into the watcher.

    Backend threads never take that lock: native deliveries are queued
    and classified by a single consumer thread, since the backend holds
    its own lock while delivering and needs it again to open or close
    watches.
    """

    def __init__(
        self,
        callback: Callback,
        config: Optional[WatcherConfig] = None,
        backend: Optional[NativeWatchBackend] = None,
        dispatch_thread: bool = True,
    ):
        """
        Initialize the watcher.

        Args:
            callback: Called as (kind, path, stat) for every detected change
            config: Watcher configuration
            backend: Native watch backend (defaults to watchdog)
            dispatch_thread: Classify native events on a background consumer
                thread. When False, queued events are only classified by
                dispatch_pending().
        """
        self.config = config or WatcherConfig()
        self.callback = callback
        self._lock = threading.RLock()
        self._backend = backend or WatchdogBackend()
        self._native_events: "queue.Queue[NativeDelivery]" = queue.Queue()
        self._consumer_stop = threading.Event()
        self._consumer: Optional[threading.Thread] = None

        self._registry = TargetRegistry(self._backend, self.config, self._on_native_event)
        self._classifier = ChangeClassifier(self._registry, callback, self.config)
        self._reconciler = ReconciliationLoop(
            self._registry,
            self._classifier,
            self.config.interval_ms,
            self._lock,
        )
        self._snapshots = SnapshotStore(self._registry, self._classifier)

        if dispatch_thread:
            self._consumer = threading.Thread(
                target=self._consume_native_events,
                name="NativeEventConsumer",
            )
            self._consumer.daemon = True
            self._consumer.start()

    @property
    def registry(self) -> TargetRegistry:
        return self._registry

    def _on_native_event(self, group: DirectoryWatchGroup, generation: int, event: RawEvent) -> None:
        """Entry point for deliveries from backend threads. Must not block."""
        self._native_events.put((group, generation, event))

    def _dispatch(self, group: DirectoryWatchGroup, generation: int, event: RawEvent) -> bool:
        """Classify one queued delivery unless it is stale. Caller holds the lock."""
        if self._registry.group(group.key) is not group:
            return False
        if group.handle is None or group.generation != generation:
            logger.debug(f"Dropped stale native event: {event.kind.value} {event.full_path}")
            return False
        self._classifier.classify(event)
        return True

    def _consume_native_events(self) -> None:
        logger.debug("Native event consumer started")

        while not self._consumer_stop.is_set():
            try:
                group, generation, event = self._native_events.get(timeout=0.1)
            except queue.Empty:
                continue
            try:
                with self._lock:
                    self._dispatch(group, generation, event)
            except Exception as e:
                logger.error(f"Native event dispatch failed: {e}", exc_info=True)

        logger.debug("Native event consumer stopped")

    def dispatch_pending(self) -> int:
        """
        Classify every queued native event on the calling thread.

        Returns:
            Number of events classified (stale ones are dropped, not counted)
        """
        dispatched = 0
        with self._lock:
            while True:
                try:
                    group, generation, event = self._native_events.get_nowait()
                except queue.Empty:
                    return dispatched
                if self._dispatch(group, generation, event):
                    dispatched += 1

    def _discard_pending(self) -> int:
        discarded = 0
        while True:
            try:
                self._native_events.get_nowait()
            except queue.Empty:
                return discarded
            discarded += 1

    def watch(self, path: Union[str, os.PathLike]) -> bool:
        """
        Start watching a file or directory.

        The path does not have to exist yet.

        Args:
            path: Path to watch

        Returns:
            True if the path was newly watched, False if it already was
        """
        with self._lock:
            if path in self._registry:
                return False
            self._registry.watch(path)
            return True

    def unwatch(self, path: Union[str, os.PathLike]) -> bool:
        """
        Stop watching a path.

        Returns:
            True if the path was being watched
        """
        with self._lock:
            return self._registry.unwatch(path)

    def get_stat(self, path: Union[str, os.PathLike]) -> Optional[Stat]:
        """
        Get the last observed stat of a watched path without touching disk.

        Returns:
            FileStat or Absent for watched paths, None otherwise
        """
        with self._lock:
            target = self._registry.get(path)
            return target.stat if target is not None else None

    def watched_paths(self) -> List[Path]:
        with self._lock:
            return list(self._registry.items())

    def save(self) -> Snapshot:
        """Take a detached snapshot of every watched target."""
        with self._lock:
            return self._snapshots.save()

    def restore(self, snapshot: Snapshot) -> int:
        """
        Replace all watches with a snapshot, reporting what changed since.

        Returns:
            Number of events emitted
        """
        with self._lock:
            return self._snapshots.restore(snapshot)

    def reset(self) -> int:
        """
        Stop watching everything.

        All native handles are closed and queued native events discarded
        before this returns; no callback fires afterwards until watch()
        is called again.

        Returns:
            Number of targets removed
        """
        with self._lock:
            count = self._registry.reset()
            discarded = self._discard_pending()
        logger.info(f"Reset watcher, dropped {count} target(s) and {discarded} queued event(s)")
        return count

    def reconcile(self) -> int:
        """
        Run one reconciliation pass now.

        Returns:
            Number of directories whose existence flipped
        """
        with self._lock:
            return self._reconciler.tick()

    def start(self) -> bool:
        """
        Start periodic reconciliation in the background.

        Returns:
            False when polling is disabled by configuration

        Raises:
            WatcherAlreadyRunningError: If already running
        """
        started = self._reconciler.start()
        if started:
            logger.info(f"Reconciliation started, interval={self.config.interval_ms}ms")
        return started

    def stop(self) -> None:
        """Stop periodic reconciliation. Native watches stay open."""
        self._reconciler.stop()

    @property
    def is_running(self) -> bool:
        return self._reconciler.is_running

    def close(self) -> None:
        """Stop reconciliation, drop every watch and release the backend."""
        self.stop()
        self.reset()
        self._backend.shutdown()

        self._consumer_stop.set()
        consumer, self._consumer = self._consumer, None
        if consumer is not None and consumer is not threading.current_thread():
            consumer.join(timeout=2.0)

    def __len__(self) -> int:
        return len(self._registry)

    def __contains__(self, path) -> bool:
        with self._lock:
            return path in self._registry

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
