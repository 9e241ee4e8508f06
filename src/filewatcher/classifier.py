"""Turn raw directory events into normalized change notifications."""

import logging
from typing import Callable, Dict, Optional, Tuple

from .config import WatcherConfig
from .models import EventKind, FileStat, RawEvent, Stat, WatchTarget
from .registry import TargetRegistry

logger = logging.getLogger(__name__)

Callback = Callable[[str, str, Optional[FileStat]], None]

# (old exists, new exists) -> event
EXISTENCE_TRANSITIONS: Dict[Tuple[bool, bool], Optional[EventKind]] = {
    (False, True): EventKind.CREATE,
    (True, False): EventKind.REMOVE,
    (True, True): None,
    (False, False): None,
}


def existence_change(old: Stat, new: Stat) -> Optional[EventKind]:
    """
    Detect a create/remove transition between two stats.

    Returns:
        CREATE or REMOVE when exactly one side is absent, None otherwise
    """
    return EXISTENCE_TRANSITIONS[(old.exists, new.exists)]


def same_content(old: Stat, new: Stat) -> bool:
    """True when both stats exist with equal size and fingerprint."""
    if not old or not new:
        return False
    return old.size == new.size and old.fingerprint == new.fingerprint


def compare_stats(old: Stat, new: Stat, validate: bool) -> Optional[EventKind]:
    """
    Compare a saved stat against a fresh one.

    Existence changes win; when both exist, content is compared by
    size and fingerprint if validating, by modification time otherwise.
    """
    kind = existence_change(old, new)
    if kind is not None:
        return kind
    if not old or not new:
        return None
    if validate:
        if not same_content(old, new):
            return EventKind.CHANGE
    elif old.mtime_ns != new.mtime_ns:
        return EventKind.CHANGE
    return None


class ChangeClassifier:
    """
    Single fan-in point for native and synthesized events.

    Re-probes watched files, decides which normalized event (if any) a
    raw event stands for, stores the fresh stat and notifies the caller.
    """

    def __init__(
        self,
        registry: TargetRegistry,
        callback: Callback,
        config: Optional[WatcherConfig] = None,
    ):
        """
        Initialize the classifier.

        Args:
            registry: Registry holding the watched targets
            callback: Called as (kind, path, stat) for every emitted event
            config: Watcher configuration
        """
        self.registry = registry
        self.callback = callback
        self.config = config or registry.config

    def classify(self, event: RawEvent) -> Optional[EventKind]:
        """
        Process one raw event.

        Args:
            event: Native or synthesized raw event

        Returns:
            The emitted event kind, or None if nothing was emitted
        """
        full_path = event.full_path
        target = self.registry.lookup(full_path)

        if target is not None and target.group_key == event.directory and not target.is_directory_target:
            return self._classify_file(target, event.kind, event.synthetic)

        group = self.registry.group(event.directory)
        if group is not None and group.watch_whole_directory:
            logger.debug(f"Directory event: {event.kind.value} {full_path}")
            self.emit(event.kind, str(full_path), None)
            return event.kind

        logger.debug(f"Dropped event for unwatched path: {full_path}")
        return None

    def _classify_file(
        self,
        target: WatchTarget,
        raw_kind: EventKind,
        synthetic: bool = False,
    ) -> Optional[EventKind]:
        old = target.stat
        new = self.registry.probe(target.key)

        kind: Optional[EventKind] = raw_kind
        if raw_kind == EventKind.RENAME:
            kind = existence_change(old, new)
            if kind is None:
                # Reconciliation only reports what actually differs
                if synthetic:
                    kind = compare_stats(old, new, self.config.validate)
                else:
                    kind = EventKind.RENAME
        elif raw_kind == EventKind.CHANGE:
            if self.config.validate and same_content(old, new):
                kind = None

        self.registry.update_stat(target, new)
        self.registry.regroup(target)

        if kind is None:
            logger.debug(f"No change for {raw_kind.value} on {target.key}")
            return None
        logger.debug(f"Classified {raw_kind.value} on {target.key} as {kind.value}")
        self.emit(kind, target.display_name, new)
        return kind

    def refresh_directory_target(self, target: WatchTarget) -> Optional[EventKind]:
        """
        Re-probe a watched directory and report it appearing or vanishing.

        Returns:
            CREATE or REMOVE if existence changed, None otherwise
        """
        new = self.registry.probe(target.key)
        kind = existence_change(target.stat, new)
        self.registry.update_stat(target, new)
        self.registry.regroup(target)
        if kind is not None:
            self.emit(kind, target.display_name, new)
        return kind

    def emit(self, kind: EventKind, path: str, stat: Optional[Stat]) -> None:
        """Invoke the caller's callback, reporting absent stats as None."""
        try:
            self.callback(kind.value, path, stat if stat else None)
        except Exception:
            logger.exception(f"Callback failed for {kind.value} {path}")
