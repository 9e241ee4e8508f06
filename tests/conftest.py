"""Shared fixtures for file watcher tests."""

import pytest
from pathlib import Path

from src.filewatcher.config import WatcherConfig
from src.filewatcher.exceptions import NativeWatchError
from src.filewatcher.groups import NativeWatchBackend
from src.filewatcher.models import EventKind
from src.filewatcher.watcher import FileWatcher


class FakeBackend(NativeWatchBackend):
    """In-memory backend; tests push native events with emit()."""

    def __init__(self):
        self.watches = {}
        self.delivers = []
        self.refuse = set()
        self.opened = []
        self.closed = []
        self._next_handle = 0
        self.shut_down = False

    def open(self, directory, deliver):
        if directory in self.refuse:
            raise NativeWatchError(f"refused: {directory}")
        self._next_handle += 1
        handle = self._next_handle
        self.watches[handle] = (directory, deliver)
        self.delivers.append((directory, deliver))
        self.opened.append(directory)
        return handle

    def close(self, handle):
        self.watches.pop(handle, None)
        self.closed.append(handle)

    def shutdown(self):
        self.shut_down = True

    def is_watching(self, directory: Path) -> bool:
        return any(d == directory for d, _ in self.watches.values())

    def emit(self, directory: Path, kind: EventKind, name: str) -> None:
        for d, deliver in list(self.watches.values()):
            if d == directory:
                deliver(kind, name)


class Recorder:
    """Callback collecting (kind, path, stat) tuples."""

    def __init__(self):
        self.events = []

    def __call__(self, kind, path, stat):
        self.events.append((kind, path, stat))

    @property
    def kinds(self):
        return [kind for kind, _, _ in self.events]

    def clear(self):
        self.events.clear()


@pytest.fixture
def root(tmp_path):
    return tmp_path.resolve()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def make_watcher(backend, recorder):
    watchers = []

    def factory(**options):
        config = WatcherConfig(**options)
        watcher = FileWatcher(recorder, config, backend=backend, dispatch_thread=False)
        watchers.append(watcher)
        return watcher

    yield factory

    for watcher in watchers:
        watcher.close()
