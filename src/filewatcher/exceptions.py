"""Custom exceptions for the file watcher package."""


class WatcherError(Exception):
    """Base exception for all watcher errors."""
    pass


class NativeWatchError(WatcherError):
    """The native backend could not open a watch on a directory."""
    pass


class SnapshotError(WatcherError):
    """A snapshot could not be decoded."""
    pass


class WatcherAlreadyRunningError(WatcherError):
    """Reconciliation loop is already running."""
    pass
