"""Data models for the file watcher package."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union
import hashlib
import struct
import zlib


class EventKind(Enum):
    """Normalized change notifications delivered to the caller."""
    CREATE = "create"
    REMOVE = "remove"
    CHANGE = "change"
    RENAME = "rename"


class TargetKind(Enum):
    """What a watched path looked like at its last stat."""
    FILE = "file"
    DIRECTORY = "directory"
    MISSING = "missing"


@dataclass(frozen=True)
class FileStat:
    """
    Snapshot of a path that existed when it was probed.

    Attributes:
        size: Size in bytes
        mtime_ns: Modification time in nanoseconds
        is_directory: Whether the path is a directory
        fingerprint: Content checksum (files only, when validation is on)
    """
    size: int
    mtime_ns: int
    is_directory: bool = False
    fingerprint: Optional[bytes] = None

    @property
    def exists(self) -> bool:
        return True

    @property
    def mtime(self) -> float:
        """Modification time in seconds."""
        return self.mtime_ns / 1_000_000_000

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "exists": True,
            "size": self.size,
            "mtime_ns": self.mtime_ns,
            "is_directory": self.is_directory,
            "fingerprint": self.fingerprint.hex() if self.fingerprint is not None else None,
        }


@dataclass(frozen=True)
class Absent:
    """
    Sentinel for a path that did not exist (or could not be read).

    Attributes:
        reason: Why the path is considered absent, if known
    """
    reason: Optional[str] = None

    @property
    def exists(self) -> bool:
        return False

    def __bool__(self) -> bool:
        return False

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {"exists": False, "reason": self.reason}


ABSENT = Absent()

Stat = Union[FileStat, Absent]


def stat_from_dict(data: dict) -> Stat:
    """Create a FileStat or Absent from its dictionary form."""
    if not data.get("exists"):
        return Absent(reason=data.get("reason"))
    fingerprint = data.get("fingerprint")
    return FileStat(
        size=int(data["size"]),
        mtime_ns=int(data["mtime_ns"]),
        is_directory=bool(data.get("is_directory", False)),
        fingerprint=bytes.fromhex(fingerprint) if fingerprint is not None else None,
    )


@dataclass(frozen=True)
class RawEvent:
    """
    Event from a native directory watch (or synthesized by reconciliation).

    Attributes:
        directory: Key of the directory group the event belongs to
        kind: RENAME when an entry appeared, vanished or moved; CHANGE on modification
        name: Entry name relative to the directory
        synthetic: True when produced by reconciliation rather than a native watch
    """
    directory: Path
    kind: EventKind
    name: str
    synthetic: bool = False

    @property
    def full_path(self) -> Path:
        return self.directory / self.name


@dataclass
class WatchTarget:
    """
    One watched path and its last observed state.

    Attributes:
        key: Canonical absolute path, unique per registry
        display_name: Path reported to the callback
        group_key: Directory group owning this target
        kind: FILE, DIRECTORY or MISSING as of the last stat
        stat: Last observed FileStat, or Absent
    """
    key: Path
    display_name: str
    group_key: Path
    kind: TargetKind = TargetKind.MISSING
    stat: Stat = field(default=ABSENT)

    @property
    def is_directory_target(self) -> bool:
        """True when the target owns its own directory group."""
        return self.key == self.group_key

    def update(self, stat: Stat) -> None:
        """Replace the stored stat and refresh the kind from it."""
        self.stat = stat
        self.kind = kind_for_stat(stat)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "key": str(self.key),
            "display_name": self.display_name,
            "group_key": str(self.group_key),
            "kind": self.kind.value,
            "stat": self.stat.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WatchTarget":
        """Create from dictionary."""
        key = Path(data["key"])
        return cls(
            key=key,
            display_name=data.get("display_name", str(key)),
            group_key=Path(data.get("group_key", str(key.parent))),
            kind=TargetKind(data.get("kind", TargetKind.MISSING.value)),
            stat=stat_from_dict(data.get("stat") or {}),
        )


def kind_for_stat(stat: Stat) -> TargetKind:
    """Classify a probed stat as FILE, DIRECTORY or MISSING."""
    if not stat:
        return TargetKind.MISSING
    if stat.is_directory:
        return TargetKind.DIRECTORY
    return TargetKind.FILE


Checksum = Callable[[bytes], bytes]


def crc32_checksum(data: bytes) -> bytes:
    """Default fingerprint: CRC-32 of the content as 4 big-endian bytes."""
    return struct.pack(">I", zlib.crc32(data) & 0xFFFFFFFF)


def hashlib_checksum(algorithm: str = "sha256") -> Checksum:
    """
    Build a fingerprint function from a hashlib algorithm.

    Args:
        algorithm: Any name accepted by hashlib.new

    Returns:
        Function mapping content bytes to the raw digest
    """
    hashlib.new(algorithm)

    def checksum(data: bytes) -> bytes:
        return hashlib.new(algorithm, data).digest()

    checksum.__name__ = f"{algorithm}_checksum"
    return checksum
