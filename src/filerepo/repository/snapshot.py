"""
Resource snapshot builder.

Builds immutable ``ResourceSnapshot`` records from a concrete path. Symbolic
links are never followed: existence, kind and metadata come from ``lstat``.
"""

import logging
import os
import stat
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .data_models import ResourceSnapshot

logger = logging.getLogger(__name__)

# Windows FILE_ATTRIBUTE_HIDDEN
_FILE_ATTRIBUTE_HIDDEN = getattr(stat, "FILE_ATTRIBUTE_HIDDEN", 0x2)


def _to_datetime(timestamp: Optional[float]) -> Optional[datetime]:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def _creation_timestamp(st: os.stat_result) -> float:
    # st_birthtime is only reported on macOS/BSD and recent Windows builds
    birthtime = getattr(st, "st_birthtime", None)
    return birthtime if birthtime is not None else st.st_ctime


def is_hidden_entry(path: Path, st: os.stat_result) -> bool:
    """Whether an entry counts as hidden (dot-name, or the Windows hidden attribute)."""
    if path.name.startswith("."):
        return True
    attributes = getattr(st, "st_file_attributes", 0)
    return bool(attributes & _FILE_ATTRIBUTE_HIDDEN)


def _lexists(path: Path) -> bool:
    try:
        return os.path.lexists(path)
    except (OSError, ValueError):
        return False


def _access(path: Path, mode: int) -> bool:
    try:
        return os.access(path, mode)
    except (OSError, ValueError):
        return False


def _read_attributes(path: Path) -> os.stat_result:
    return os.lstat(path)


def build_snapshot(concrete_path: Path, repository_path: str) -> ResourceSnapshot:
    """
    Build a snapshot of the entry at ``concrete_path``.

    Never raises. For a missing path only ``exists=False`` and the repository
    path are meaningful. If attributes cannot be read after the entry was seen
    to exist (permission denied, deleted concurrently), the snapshot reports
    ``exists=True`` and ``is_hidden=True`` with default timestamps and size.

    Args:
        concrete_path: Host path of the entry
        repository_path: Repository path to record in the snapshot

    Returns:
        ResourceSnapshot for the entry
    """
    if not _lexists(concrete_path):
        return ResourceSnapshot(concrete_path=concrete_path, repository_path=repository_path)

    can_read = _access(concrete_path, os.R_OK)
    can_write = _access(concrete_path, os.W_OK)

    try:
        st = _read_attributes(concrete_path)
    except OSError as e:
        # Degraded but valid snapshot
        logger.error(f"Unable to read attributes of {concrete_path}: {e}")
        return ResourceSnapshot(
            concrete_path=concrete_path,
            repository_path=repository_path,
            exists=True,
            can_read=can_read,
            can_write=can_write,
            is_hidden=True,
        )

    is_file = stat.S_ISREG(st.st_mode)
    return ResourceSnapshot(
        concrete_path=concrete_path,
        repository_path=repository_path,
        exists=True,
        can_read=can_read,
        can_write=can_write,
        is_file=is_file,
        is_directory=stat.S_ISDIR(st.st_mode),
        is_hidden=is_hidden_entry(concrete_path, st),
        creation_time=_to_datetime(_creation_timestamp(st)),
        last_access_time=_to_datetime(st.st_atime),
        last_modified_time=_to_datetime(st.st_mtime),
        size=st.st_size if is_file else 0,
    )
