"""Root-confined path resolution.

Repository paths are '/'-separated strings interpreted relative to a single
root directory on the host. Resolution is purely lexical: it never touches
the filesystem and never follows symbolic links.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import List, Optional, Union

from ..exceptions import RepositoryError


@dataclass(frozen=True)
class ResolvedPath:
    """Result of resolving a repository path to a host path.

    Attributes:
        repository_path: The canonical repository path (e.g., 'docs/a.txt', '' for the root)
        host_path: The concrete filesystem path on the host
    """

    repository_path: str
    host_path: Path

    @property
    def is_root(self) -> bool:
        return self.repository_path == ""


def normalize_parts(path: str) -> List[str]:
    """Split a '/'-separated path into canonical segments.

    Leading slashes, empty segments and '.' are dropped and '..' is collapsed
    against the preceding segment.

    Raises:
        ValueError: If a '..' segment climbs above the starting point, or the
            path contains a NUL byte
    """
    if "\x00" in path:
        raise ValueError(f"Path contains a NUL byte: {path!r}")

    if os.sep != "/":
        path = path.replace(os.sep, "/")

    normalized: List[str] = []
    for part in path.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if not normalized:
                raise ValueError(f"Path escapes repository root: {path}")
            normalized.pop()
            continue
        normalized.append(part)
    return normalized


class RootBoundary:
    """The directory under which every repository path is confined.

    Example:
        >>> root = RootBoundary(Path("/srv/repo"))
        >>> resolved = root.resolve("/docs/../docs/readme.md")
        >>> resolved.repository_path
        'docs/readme.md'
        >>> resolved.host_path
        PosixPath('/srv/repo/docs/readme.md')
    """

    def __init__(self, root: Union[str, Path], create: bool = True) -> None:
        """Initialize the boundary.

        Args:
            root: Host directory serving as the repository root
            create: Create the directory (and its parents) if it is missing
        """
        self.root = Path(os.path.abspath(Path(root).expanduser()))
        if create:
            self.root.mkdir(parents=True, exist_ok=True)

    def resolve(self, repository_path: Optional[str]) -> ResolvedPath:
        """Resolve a repository path to a host path under the root.

        Args:
            repository_path: Path relative to the root; None, '' or '/' mean the root

        Returns:
            ResolvedPath with the canonical repository path and the host path

        Raises:
            RepositoryError: (RESOURCE_NOT_ACCESSIBLE) if the path would escape the root
        """
        text = repository_path or ""
        try:
            parts = normalize_parts(text)
        except ValueError as exc:
            raise RepositoryError.not_accessible(str(exc), repository_path=text, cause=exc) from exc

        host = self.root.joinpath(*parts) if parts else self.root
        return ResolvedPath(repository_path="/".join(parts), host_path=host)

    def contains(self, host_path: Union[str, Path]) -> bool:
        """Whether a host path lies lexically at or below the root."""
        candidate = Path(os.path.abspath(host_path))
        return candidate == self.root or self.root in candidate.parents

    def to_repository_path(self, host_path: Union[str, Path]) -> str:
        """Convert a host path under the root to its canonical repository path.

        Raises:
            RepositoryError: (RESOURCE_NOT_ACCESSIBLE) if the host path is outside the root
        """
        candidate = Path(os.path.abspath(host_path))
        if not self.contains(candidate):
            raise RepositoryError.not_accessible(
                f"Host path does not belong to the repository: {candidate}"
            )
        rel = candidate.relative_to(self.root)
        return PurePosixPath(*rel.parts).as_posix() if rel.parts else ""

    def __repr__(self) -> str:
        return f"RootBoundary({str(self.root)!r})"
