"""
filerepo - a directory tree exposed as a repository of resources.

Every path is confined to a single root directory. Operations return
immutable snapshots of the resources they touch and fail with a
``RepositoryError`` carrying an ``ErrorKind``.
"""

__version__ = "0.1.0"

from .exceptions import ErrorKind, RepositoryError
from .filesystem import ResolvedPath, RootBoundary
from .repository import (
    CopyReport,
    FileRepository,
    RepositoryConfig,
    ResourceSnapshot,
    load_config,
)

__all__ = [
    "FileRepository",
    "RepositoryConfig",
    "load_config",
    "ResourceSnapshot",
    "CopyReport",
    "RootBoundary",
    "ResolvedPath",
    "ErrorKind",
    "RepositoryError",
]
