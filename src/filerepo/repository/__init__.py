"""
Repository operations over a root-confined directory tree.

Provides resource snapshots, recursive copy and delete, zip archive creation
and extraction, and the ``FileRepository`` facade combining them.

Example:
    >>> from filerepo.repository import FileRepository
    >>> repo = FileRepository.local("/srv/repo")
    >>> repo.create_directories("docs")
    >>> repo.set_content("docs/readme.md", b"# Hello")
    >>> [r.name for r in repo.list("docs")]
    ['readme.md']
"""

from .archive import COMPRESSION_METHODS, ArchiveView, create_archive, extract_archive
from .config import RepositoryConfig, load_config, normalize_uri
from .core import FileRepository
from .data_models import CopyReport, ResourceRecord, ResourceSnapshot, SkippedEntry
from .snapshot import build_snapshot
from .tree import copy_directory, copy_file, delete_tree

__all__ = [
    # Main interface
    "FileRepository",
    # Configuration
    "RepositoryConfig",
    "load_config",
    "normalize_uri",
    # Data models
    "ResourceSnapshot",
    "ResourceRecord",
    "CopyReport",
    "SkippedEntry",
    # Engines
    "build_snapshot",
    "copy_file",
    "copy_directory",
    "delete_tree",
    "ArchiveView",
    "create_archive",
    "extract_archive",
    "COMPRESSION_METHODS",
]
