"""Per-directory native watches using the watchdog library."""

import functools
import logging
import os
import stat as stat_mode
import threading
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Tuple

from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler

from .exceptions import NativeWatchError
from .models import EventKind, RawEvent

logger = logging.getLogger(__name__)

Deliver = Callable[[EventKind, str], None]


class GroupState(Enum):
    """Lifecycle states of a directory watch group."""
    UNWATCHED = "unwatched"
    WATCHING = "watching"
    PENDING_EXISTS = "pending_exists"


class NativeWatchBackend(ABC):
    """Abstract source of raw (kind, name) events for single directories."""

    @abstractmethod
    def open(self, directory: Path, deliver: Deliver) -> Any:
        """
        Start a shallow watch on a directory.

        Args:
            directory: Existing directory to watch
            deliver: Called with (kind, entry name) for every native event

        Returns:
            Opaque handle to pass to close()

        Raises:
            NativeWatchError: If the directory cannot be watched
        """
        pass

    @abstractmethod
    def close(self, handle: Any) -> None:
        """Stop a watch. Once this returns no further deliveries are made for it."""
        pass

    def shutdown(self) -> None:
        """Release backend-wide resources."""
        pass


class DirectoryEventHandler(FileSystemEventHandler):
    """Handler that converts watchdog events to (kind, name) deliveries."""

    def __init__(self, directory: Path, deliver: Deliver):
        super().__init__()
        self.directory = directory
        self.deliver = deliver

    def _emit(self, kind: EventKind, path) -> None:
        """Deliver an event for a direct child of the watched directory."""
        path = Path(os.fsdecode(path))
        if path == self.directory or path.parent != self.directory:
            return
        self.deliver(kind, path.name)

    def on_created(self, event):
        self._emit(EventKind.RENAME, event.src_path)

    def on_deleted(self, event):
        self._emit(EventKind.RENAME, event.src_path)

    def on_modified(self, event):
        self._emit(EventKind.CHANGE, event.src_path)

    def on_moved(self, event):
        self._emit(EventKind.RENAME, event.src_path)
        self._emit(EventKind.RENAME, event.dest_path)


class WatchdogBackend(NativeWatchBackend):
    """
    Native backend sharing one watchdog observer across all directories.

    Each directory is scheduled non-recursively; the observer is started
    on the first open so scheduling errors surface immediately.
    """

    def __init__(self, observer_factory: Callable[[], Any] = Observer, join_timeout: float = 5.0):
        """
        Initialize the backend.

        Args:
            observer_factory: Callable returning a watchdog observer
            join_timeout: Seconds to wait for the observer thread on shutdown
        """
        self.observer_factory = observer_factory
        self.join_timeout = join_timeout
        self._observer = None
        self._lock = threading.Lock()

    def _ensure_started(self):
        if self._observer is None:
            observer = self.observer_factory()
            observer.daemon = True
            observer.start()
            self._observer = observer
        return self._observer

    def open(self, directory: Path, deliver: Deliver) -> Any:
        handler = DirectoryEventHandler(directory, deliver)
        with self._lock:
            observer = self._ensure_started()
            try:
                return observer.schedule(handler, str(directory), recursive=False)
            except OSError as e:
                raise NativeWatchError(f"Cannot watch directory {directory}: {e}") from e

    def close(self, handle: Any) -> None:
        with self._lock:
            if self._observer is None:
                return
            try:
                self._observer.unschedule(handle)
            except Exception as e:
                logger.warning(f"Failed to unschedule watch {handle}: {e}")

    def shutdown(self) -> None:
        with self._lock:
            observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=self.join_timeout)

    @property
    def is_running(self) -> bool:
        return self._observer is not None


class DirectoryWatchGroup:
    """
    One native watch scope, shared by every target in a directory.

    The group exists while at least one file in the directory is watched
    individually or the directory itself is a watched target. Its handle
    is live only while the directory exists.
    """

    def __init__(
        self,
        key: Path,
        backend: NativeWatchBackend,
        sink: Callable[["DirectoryWatchGroup", int, RawEvent], None],
    ):
        """
        Initialize the group.

        Args:
            key: Directory path this group watches
            backend: Native backend used to open handles
            sink: Receives (group, generation, event) for every native delivery
        """
        self.key = key
        self.backend = backend
        self._sink = sink
        self.handle: Optional[Any] = None
        self.file_ref_count = 0
        self.watch_whole_directory = False
        self.generation = 0
        self._activated = False
        self._identity: Optional[Tuple[int, int]] = None

    @property
    def alive(self) -> bool:
        """Whether anything still needs this group."""
        return self.file_ref_count > 0 or self.watch_whole_directory

    @property
    def state(self) -> GroupState:
        if self.handle is not None:
            return GroupState.WATCHING
        if self._activated:
            return GroupState.PENDING_EXISTS
        return GroupState.UNWATCHED

    def directory_identity(self) -> Optional[Tuple[int, int]]:
        """(device, inode) of the directory, or None if it is not a directory now."""
        try:
            st = os.stat(self.key)
        except OSError:
            return None
        if not stat_mode.S_ISDIR(st.st_mode):
            return None
        return (st.st_dev, st.st_ino)

    def directory_exists(self) -> bool:
        return self.directory_identity() is not None

    def activate(self) -> GroupState:
        """Leave UNWATCHED: open a handle now if the directory exists."""
        self._activated = True
        if self.directory_exists():
            self.open()
        return self.state

    def open(self) -> bool:
        """
        Open the native handle if it is not open yet.

        Returns:
            True if a handle is live afterwards
        """
        if self.handle is not None:
            return True
        self.generation += 1
        deliver = functools.partial(self._deliver, self.generation)
        identity = self.directory_identity()
        try:
            self.handle = self.backend.open(self.key, deliver)
        except NativeWatchError as e:
            logger.warning(f"Native watch unavailable, will retry: {e}")
            return False
        self._identity = identity
        logger.info(f"Watching directory: {self.key}")
        return True

    def close(self) -> None:
        """Close the native handle if one is open."""
        handle, self.handle = self.handle, None
        self._identity = None
        if handle is None:
            return
        self.backend.close(handle)
        logger.info(f"Stopped watching directory: {self.key}")

    def sync(self) -> bool:
        """
        Reconcile the handle with the directory's current existence.

        A directory replaced since the handle was opened (same path,
        different inode) counts as a flip too.

        Returns:
            True if existence differed from the handle state (a flip)
        """
        identity = self.directory_identity()
        exists = identity is not None
        watching = self.handle is not None
        if watching and exists and identity != self._identity:
            logger.info(f"Directory replaced: {self.key}")
            self.close()
            self.open()
            return True
        if exists == watching:
            return False
        if exists:
            self.open()
        else:
            self.close()
        return True

    def destroy(self) -> None:
        """Terminal transition; the group must not be used afterwards."""
        self.close()
        self._activated = False

    def _deliver(self, generation: int, kind: EventKind, name: str) -> None:
        self._sink(self, generation, RawEvent(self.key, kind, name))

    def __repr__(self) -> str:
        return (
            f"DirectoryWatchGroup({str(self.key)!r}, state={self.state.value}, "
            f"files={self.file_ref_count}, whole={self.watch_whole_directory})"
        )
