"""Periodic sweep recovering from directories that vanish and reappear."""

import logging
import threading
from contextlib import nullcontext
from typing import Any, Optional

from .classifier import ChangeClassifier
from .exceptions import WatcherAlreadyRunningError
from .models import EventKind, RawEvent
from .registry import TargetRegistry

logger = logging.getLogger(__name__)


class ReconciliationLoop:
    """
    Timer-driven producer feeding synthetic events into the classifier.

    Each tick re-checks every directory group. When a directory's
    existence no longer matches its native handle, the handle is opened
    or closed and every watched file in that directory is re-classified
    through a synthetic rename. Synthetic renames report create/remove
    from existence and change only when the content differs.
    """

    def __init__(
        self,
        registry: TargetRegistry,
        classifier: ChangeClassifier,
        interval_ms: int = 10000,
        lock: Optional[Any] = None,
    ):
        """
        Initialize the loop.

        Args:
            registry: Registry holding targets and groups
            classifier: Classifier shared with native deliveries
            interval_ms: Tick period in milliseconds; <= 0 disables the timer
            lock: Critical section entered for every tick
        """
        self.registry = registry
        self.classifier = classifier
        self.interval_ms = interval_ms
        self._lock = lock if lock is not None else nullcontext()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def enabled(self) -> bool:
        return self.interval_ms > 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def tick(self) -> int:
        """
        Run one reconciliation pass. The caller must hold the critical section.

        Returns:
            Number of directory groups whose existence flipped
        """
        flipped = 0
        for group in self.registry.groups():
            if self.registry.group(group.key) is not group:
                continue
            if not group.sync():
                continue
            flipped += 1
            logger.info(f"Directory {group.key} is now {group.state.value}")

            for target in self.registry.file_targets_in(group.key):
                if self.registry.lookup(target.key) is not target:
                    continue
                self.classifier.classify(
                    RawEvent(group.key, EventKind.RENAME, target.key.name, synthetic=True)
                )

            if group.watch_whole_directory:
                directory_target = self.registry.lookup(group.key)
                if directory_target is not None:
                    self.classifier.refresh_directory_target(directory_target)
        return flipped

    def start(self) -> bool:
        """
        Start the background timer thread.

        Returns:
            False if polling is disabled, True once the thread is running

        Raises:
            WatcherAlreadyRunningError: If the loop is already running
        """
        if not self.enabled:
            logger.info("Reconciliation disabled, relying on native events only")
            return False
        if self.is_running:
            raise WatcherAlreadyRunningError("Reconciliation loop is already running")

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="ReconciliationLoop")
        self._thread.daemon = True
        self._thread.start()
        return True

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the timer thread. Safe to call when not running."""
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def _run(self) -> None:
        interval = self.interval_ms / 1000.0
        logger.debug(f"Reconciliation loop started, interval={interval}s")

        while not self._stop_event.wait(timeout=interval):
            try:
                with self._lock:
                    if self._stop_event.is_set():
                        break
                    self.tick()
            except Exception as e:
                logger.error(f"Reconciliation tick failed: {e}", exc_info=True)

        logger.debug("Reconciliation loop stopped")
