"""Save and restore watch state across restarts."""

import copy
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator

from .classifier import ChangeClassifier, compare_stats
from .exceptions import SnapshotError
from .models import EventKind, WatchTarget
from .registry import TargetRegistry

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    """
    Detached copy of the registry's targets.

    Attributes:
        targets: Canonical key -> deep-copied WatchTarget
        taken_at: Unix timestamp when the snapshot was taken
    """
    targets: Dict[Path, WatchTarget] = field(default_factory=dict)
    taken_at: float = field(default_factory=time.time)

    def __len__(self) -> int:
        return len(self.targets)

    def __iter__(self) -> Iterator[Path]:
        return iter(self.targets)

    def __contains__(self, key) -> bool:
        return Path(key) in self.targets

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        return {
            "targets": [target.to_dict() for target in self.targets.values()],
            "taken_at": self.taken_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Snapshot":
        """
        Create from dictionary.

        Raises:
            SnapshotError: If the data is not a valid snapshot
        """
        try:
            targets = [WatchTarget.from_dict(item) for item in data["targets"]]
            taken_at = float(data.get("taken_at", time.time()))
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotError(f"Invalid snapshot data: {e}") from e
        return cls(targets={target.key: target for target in targets}, taken_at=taken_at)


class SnapshotStore:
    """Takes snapshots of a registry and reconciles it against saved ones."""

    def __init__(self, registry: TargetRegistry, classifier: ChangeClassifier):
        self.registry = registry
        self.classifier = classifier

    def save(self) -> Snapshot:
        """Deep-copy the current targets; the result shares nothing with the registry."""
        return Snapshot(targets=copy.deepcopy(dict(self.registry.items())))

    def restore(self, snapshot: Snapshot) -> int:
        """
        Replace all watches with the ones in a snapshot.

        Every saved target is watched again and its fresh stat compared
        with the saved one, so whatever happened while nothing was watching
        is reported as create, remove or change.

        Args:
            snapshot: Snapshot previously returned by save()

        Returns:
            Number of events emitted
        """
        self.registry.reset()
        validate = self.classifier.config.validate
        emitted = 0

        for key, saved in snapshot.targets.items():
            target = self.registry.watch(key)
            target.display_name = saved.display_name

            kind = compare_stats(saved.stat, target.stat, validate)
            if kind is None:
                continue
            if target.is_directory_target and kind not in (EventKind.CREATE, EventKind.REMOVE):
                continue
            self.classifier.emit(kind, target.display_name, target.stat)
            emitted += 1

        logger.info(f"Restored {len(snapshot)} target(s), {emitted} change(s) since snapshot")
        return emitted
