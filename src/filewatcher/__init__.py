"""
File Watcher Package

Watches a dynamic set of files and directories and reports normalized
change notifications, even when native notifications are unreliable.

Features:
- Normalized events: create, remove, change, rename
- One shared native watch per directory (watchdog, non-recursive)
- Periodic reconciliation recovering from deleted and recreated directories
- Optional content fingerprints to filter no-op writes
- Snapshot/restore of watch state across restarts
"""

from .models import (
    EventKind,
    TargetKind,
    FileStat,
    Absent,
    ABSENT,
    RawEvent,
    WatchTarget,
    crc32_checksum,
    hashlib_checksum,
)

from .config import WatcherConfig

from .exceptions import (
    WatcherError,
    NativeWatchError,
    SnapshotError,
    WatcherAlreadyRunningError,
)

from .probe import probe
from .groups import (
    GroupState,
    NativeWatchBackend,
    WatchdogBackend,
    DirectoryWatchGroup,
    DirectoryEventHandler,
)
from .registry import TargetRegistry
from .classifier import ChangeClassifier, existence_change, compare_stats
from .reconciler import ReconciliationLoop
from .snapshot import Snapshot, SnapshotStore
from .watcher import FileWatcher


__all__ = [
    # Models
    "EventKind",
    "TargetKind",
    "FileStat",
    "Absent",
    "ABSENT",
    "RawEvent",
    "WatchTarget",
    "crc32_checksum",
    "hashlib_checksum",
    # Config
    "WatcherConfig",
    # Exceptions
    "WatcherError",
    "NativeWatchError",
    "SnapshotError",
    "WatcherAlreadyRunningError",
    # Components
    "probe",
    "GroupState",
    "NativeWatchBackend",
    "WatchdogBackend",
    "DirectoryWatchGroup",
    "DirectoryEventHandler",
    "TargetRegistry",
    "ChangeClassifier",
    "existence_change",
    "compare_stats",
    "ReconciliationLoop",
    "Snapshot",
    "SnapshotStore",
    # Main entry point
    "FileWatcher",
]

__version__ = "0.1.0"
