"""Stat a path without raising, optionally fingerprinting its content."""

import logging
import stat as stat_mode
from pathlib import Path
from typing import Union

from .models import Absent, Checksum, FileStat, Stat, crc32_checksum

logger = logging.getLogger(__name__)


def probe(
    path: Union[str, Path],
    validate: bool = False,
    checksum: Checksum = crc32_checksum,
) -> Stat:
    """
    Get the current stat of a path.

    Missing paths and filesystem errors (permission denied, a file
    removed between listing and stat) are reported as Absent rather
    than raised.

    Args:
        path: Path to probe
        validate: Read regular files fully and fingerprint their content
        checksum: Fingerprint function used when validating

    Returns:
        FileStat if the path exists, Absent otherwise
    """
    path = Path(path)
    try:
        st = path.stat()
    except FileNotFoundError:
        return Absent(reason="missing")
    except OSError as e:
        logger.debug(f"stat failed for {path}: {e}")
        return Absent(reason=e.strerror or type(e).__name__)

    is_directory = stat_mode.S_ISDIR(st.st_mode)
    fingerprint = None
    if validate and stat_mode.S_ISREG(st.st_mode):
        try:
            fingerprint = checksum(path.read_bytes())
        except FileNotFoundError:
            return Absent(reason="missing")
        except OSError as e:
            logger.debug(f"read failed for {path}: {e}")
            return Absent(reason=e.strerror or type(e).__name__)

    return FileStat(
        size=st.st_size,
        mtime_ns=st.st_mtime_ns,
        is_directory=is_directory,
        fingerprint=fingerprint,
    )
