"""Authoritative set of watched targets and their directory groups."""

import logging
import os
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from .config import WatcherConfig
from .groups import DirectoryWatchGroup, NativeWatchBackend
from .models import RawEvent, Stat, TargetKind, WatchTarget, kind_for_stat
from .probe import probe

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


class TargetRegistry:
    """
    Management of watched paths and the directory groups that back them.

    Not thread-safe on its own: the owning FileWatcher serializes every
    call through its critical section.
    """

    def __init__(
        self,
        backend: NativeWatchBackend,
        config: Optional[WatcherConfig] = None,
        sink: Optional[Callable[[DirectoryWatchGroup, int, RawEvent], None]] = None,
    ):
        """
        Initialize the registry.

        Args:
            backend: Native backend handed to every directory group
            config: Watcher configuration
            sink: Receives native deliveries from the groups
        """
        self.backend = backend
        self.config = config or WatcherConfig()
        self._sink = sink or (lambda group, generation, event: None)
        self._targets: Dict[Path, WatchTarget] = {}
        self._groups: Dict[Path, DirectoryWatchGroup] = {}

    @staticmethod
    def canonical(path: PathLike) -> Path:
        """Resolve a path to the absolute form used as a registry key."""
        return Path(path).expanduser().resolve()

    def probe(self, key: Path) -> Stat:
        """Probe a path with the configured validation settings."""
        return probe(key, self.config.validate, self.config.checksum)

    def watch(self, path: PathLike) -> WatchTarget:
        """
        Start watching a path.

        Watching an already-watched path is a no-op. Paths that do not
        exist yet are accepted and tracked as files of their parent.

        Args:
            path: File or directory to watch

        Returns:
            The (new or existing) target
        """
        key = self.canonical(path)
        existing = self._targets.get(key)
        if existing is not None:
            return existing

        stat = self.probe(key)
        kind = kind_for_stat(stat)
        group_key = key if kind == TargetKind.DIRECTORY else key.parent
        display_name = str(key) if self.config.full_name else os.fspath(path)

        target = WatchTarget(
            key=key,
            display_name=display_name,
            group_key=group_key,
            kind=kind,
            stat=stat,
        )
        self._targets[key] = target
        self._attach(target)

        logger.debug(f"Watching {kind.value} target: {key}")
        return target

    def _attach(self, target: WatchTarget) -> None:
        """Count a target in its group, creating and activating the group if needed."""
        group = self._groups.get(target.group_key)
        created = group is None
        if created:
            group = DirectoryWatchGroup(target.group_key, self.backend, self._sink)
            self._groups[target.group_key] = group

        if target.is_directory_target:
            group.watch_whole_directory = True
        else:
            group.file_ref_count += 1

        if created:
            group.activate()

    def _detach(self, target: WatchTarget) -> None:
        """Drop a target's reference on its group, destroying the group when unused."""
        group = self._groups.get(target.group_key)
        if group is None:
            return
        if target.is_directory_target:
            group.watch_whole_directory = False
        else:
            group.file_ref_count -= 1
        if not group.alive:
            group.destroy()
            del self._groups[group.key]

    def regroup(self, target: WatchTarget) -> bool:
        """
        Move a target to the group matching what it is now.

        A directory owns its own group and a file belongs to its parent's.
        Missing targets stay where they are, so a vanished directory keeps
        its group and reconciliation notices when it comes back.

        Args:
            target: Registered target whose stat was just updated

        Returns:
            True if the target changed groups
        """
        if target.kind == TargetKind.DIRECTORY:
            wanted = target.key
        elif target.kind == TargetKind.FILE:
            wanted = target.key.parent
        else:
            return False
        if wanted == target.group_key or self._targets.get(target.key) is not target:
            return False

        self._detach(target)
        target.group_key = wanted
        self._attach(target)
        logger.info(f"Target {target.key} is now a {target.kind.value}, moved to group {wanted}")
        return True

    def unwatch(self, path: PathLike) -> bool:
        """
        Stop watching a path.

        Args:
            path: Path previously passed to watch()

        Returns:
            True if the target was removed, False if it was not watched
        """
        key = self.canonical(path)
        target = self._targets.pop(key, None)
        if target is None:
            return False

        self._detach(target)

        logger.debug(f"Unwatched target: {key}")
        return True

    def reset(self) -> int:
        """
        Close every native handle and forget all targets.

        Returns:
            Number of targets removed
        """
        count = len(self._targets)
        for group in self._groups.values():
            group.destroy()
        self._groups.clear()
        self._targets.clear()
        return count

    def get(self, path: PathLike) -> Optional[WatchTarget]:
        """Find the target for a path as given by the caller."""
        return self._targets.get(self.canonical(path))

    def lookup(self, key: Path) -> Optional[WatchTarget]:
        """Find the target for an already canonical key."""
        return self._targets.get(key)

    def group(self, key: Path) -> Optional[DirectoryWatchGroup]:
        return self._groups.get(key)

    def groups(self) -> List[DirectoryWatchGroup]:
        return list(self._groups.values())

    def targets(self) -> List[WatchTarget]:
        return list(self._targets.values())

    def items(self) -> Dict[Path, WatchTarget]:
        """The live key -> target mapping. Callers must not mutate it."""
        return self._targets

    def file_targets_in(self, group_key: Path) -> List[WatchTarget]:
        """Targets watched individually inside a directory group."""
        return [
            target for target in self._targets.values()
            if target.group_key == group_key and not target.is_directory_target
        ]

    def update_stat(self, target: WatchTarget, stat: Stat) -> None:
        target.update(stat)

    def __len__(self) -> int:
        return len(self._targets)

    def __contains__(self, path: PathLike) -> bool:
        return self.get(path) is not None
