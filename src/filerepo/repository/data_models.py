"""
Data models for the repository.

This module defines the immutable resource snapshot, its JSON wire shape, and
the result types returned by the tree walks.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel


@dataclass(frozen=True, eq=False)
class ResourceSnapshot:
    """
    Point-in-time metadata of one entry in the repository.

    A snapshot reflects the filesystem only at the instant it was built and is
    never refreshed; rebuild it after any mutation. Two snapshots are equal
    when their concrete paths are equal.
    """
    concrete_path: Path  # Resolved host path
    repository_path: str  # Canonical path relative to the root ('' for the root)
    exists: bool = False
    can_read: bool = False
    can_write: bool = False
    is_file: bool = False  # Regular file (links are neither file nor directory)
    is_directory: bool = False
    is_hidden: bool = False
    creation_time: Optional[datetime] = None
    last_access_time: Optional[datetime] = None
    last_modified_time: Optional[datetime] = None
    size: int = 0  # Bytes; 0 unless a regular file

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResourceSnapshot):
            return NotImplemented
        return self.concrete_path == other.concrete_path

    def __hash__(self) -> int:
        return hash(self.concrete_path)

    def __str__(self) -> str:
        return f"ResourceSnapshot({self.short_info} {self.repository_path or '/'}, {self.size} bytes)"

    @property
    def name(self) -> str:
        """Last segment of the concrete path."""
        return self.concrete_path.name

    @property
    def parent_path(self) -> Optional[str]:
        """Repository path of the parent directory, None at the top level."""
        last = self.repository_path.rfind("/")
        if last <= 0:
            return None
        return self.repository_path[:last]

    @property
    def short_info(self) -> str:
        """Flags as four characters, e.g. 'drw-' or '-r-h'."""
        return "".join([
            "d" if self.is_directory else "-",
            "r" if self.can_read else "-",
            "w" if self.can_write else "-",
            "h" if self.is_hidden else "-",
        ])

    @property
    def absolute_uri(self) -> str:
        """file:// URI of the concrete path."""
        return self.concrete_path.absolute().as_uri()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON-ready wire representation (no concrete path)."""
        return ResourceRecord.from_snapshot(self).model_dump(by_alias=True, mode="json")


class ResourceRecord(BaseModel):
    """Wire shape of a snapshot, with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    name: str
    repository_path: str
    exists: bool
    can_read: bool
    can_write: bool
    is_file: bool
    is_directory: bool
    is_hidden: bool
    creation_time: Optional[datetime] = None
    last_access_time: Optional[datetime] = None
    last_modified_time: Optional[datetime] = None
    size: int = 0

    @field_serializer("creation_time", "last_access_time", "last_modified_time")
    def _serialize_time(self, value: Optional[datetime]) -> Optional[str]:
        if value is None:
            return None
        return value.isoformat(timespec="milliseconds")

    @classmethod
    def from_snapshot(cls, snapshot: ResourceSnapshot) -> "ResourceRecord":
        return cls(
            name=snapshot.name,
            repository_path=snapshot.repository_path,
            exists=snapshot.exists,
            can_read=snapshot.can_read,
            can_write=snapshot.can_write,
            is_file=snapshot.is_file,
            is_directory=snapshot.is_directory,
            is_hidden=snapshot.is_hidden,
            creation_time=snapshot.creation_time,
            last_access_time=snapshot.last_access_time,
            last_modified_time=snapshot.last_modified_time,
            size=snapshot.size,
        )


@dataclass(frozen=True)
class SkippedEntry:
    """An entry the copy walk could not process."""
    path: Path  # Source path of the entry
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"path": str(self.path), "reason": self.reason}


@dataclass
class CopyReport:
    """Result of a recursive directory copy."""
    source: Path
    target: Path
    copied: List[Path] = field(default_factory=list)  # Target files written
    skipped: List[SkippedEntry] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when nothing was skipped."""
        return not self.skipped

    def __bool__(self) -> bool:
        return self.ok

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "source": str(self.source),
            "target": str(self.target),
            "copied": len(self.copied),
            "skipped": [entry.to_dict() for entry in self.skipped],
        }
