"""
Main FileRepository interface.

This module composes path resolution, snapshots, tree copy/delete and the
archive engine into the full set of repository operations.
"""

import errno
import fnmatch
import logging
import os
import shutil
import stat
import tempfile
import zipfile
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Sequence, Union
from urllib.parse import quote

from ..exceptions import RepositoryError
from ..filesystem.core import ResolvedPath, RootBoundary
from .archive import COMPRESSION_METHODS, create_archive, extract_archive
from .config import RepositoryConfig
from .data_models import ResourceSnapshot
from .snapshot import build_snapshot
from .tree import copy_directory, copy_file, delete_tree

logger = logging.getLogger(__name__)

Content = Union[bytes, bytearray, memoryview, BinaryIO]

_COPY_BUFFER_SIZE = 1024 * 1024


class FileRepository:
    """
    A directory subtree exposed as a repository of resources.

    Every operation takes repository paths ('/'-separated, relative to the
    root) and returns a freshly built ``ResourceSnapshot`` where applicable.
    Failures surface as ``RepositoryError`` with one of the ``ErrorKind``
    values. Operations run synchronously and share no in-memory state.
    """

    def __init__(self, config: Optional[RepositoryConfig] = None):
        """
        Initialize the repository.

        Args:
            config: Configuration (if None, loads defaults)
        """
        self.config = config or RepositoryConfig()
        self.boundary = RootBoundary(self.config.base_directory, create=self.config.create_root)
        self._compression = COMPRESSION_METHODS[self.config.compression]
        logger.info(f"FileRepository is using root path {self.boundary.root}")

    @classmethod
    def local(cls, root: Union[str, Path], **options) -> "FileRepository":
        """Create a repository rooted at ``root`` with optional config overrides."""
        return cls(RepositoryConfig(base_directory=root, **options))

    @property
    def root(self) -> Path:
        return self.boundary.root

    # ========== Path Helpers ==========

    def resolve(self, path: Optional[str]) -> ResolvedPath:
        """Resolve a repository path (see ``RootBoundary.resolve``)."""
        try:
            return self.boundary.resolve(path)
        except RepositoryError as e:
            raise self._fail("resolve", path, e)

    def _snapshot(self, resolved: ResolvedPath) -> ResourceSnapshot:
        return build_snapshot(resolved.host_path, resolved.repository_path)

    def _fail(self, operation: str, path: Optional[str], error: BaseException) -> RepositoryError:
        """Translate a low-level error into a RepositoryError, logging it."""
        if isinstance(error, RepositoryError):
            if error.repository_path is None:
                error.repository_path = path
            logger.error(f"{operation} failed for '{path}': {error}")
            return error

        message = f"{operation} failed for '{path}': {error}"
        logger.error(message)
        if isinstance(error, FileNotFoundError):
            return RepositoryError.not_accessible(message, path, error)
        if isinstance(error, (IsADirectoryError, NotADirectoryError)):
            return RepositoryError.invalid_type(message, path, error)
        return RepositoryError.io_failure(message, path, error)

    # ========== Queries ==========

    def get_root(self) -> ResourceSnapshot:
        """Return a snapshot of the repository root."""
        return build_snapshot(self.boundary.root, "")

    def info(self, path: Optional[str]) -> ResourceSnapshot:
        """Return a snapshot of the resource at ``path`` (stat)."""
        resolved = self.resolve(path)
        logger.debug(f"Returning info for path {path} which resolved to {resolved.host_path}")
        return self._snapshot(resolved)

    def public_uri(self, path: Optional[str]) -> str:
        """
        URI under which a resource is published.

        With a configured ``uri`` the repository path is appended to it;
        otherwise this is the resource's ``file://`` URI.
        """
        resolved = self.resolve(path)
        if self.config.uri is None:
            return resolved.host_path.absolute().as_uri()
        base = self.config.uri.rstrip("/")
        return f"{base}/{quote(resolved.repository_path)}"

    def exists(self, path: Optional[str]) -> bool:
        """Whether anything (including a broken link) exists at ``path``."""
        return os.path.lexists(self.resolve(path).host_path)

    def exists_file(self, path: Optional[str]) -> bool:
        """Whether a regular file exists at ``path`` (links do not count)."""
        return self.info(path).is_file

    def exists_directory(self, path: Optional[str]) -> bool:
        """Whether a directory exists at ``path`` (links do not count)."""
        return self.info(path).is_directory

    def list(
        self,
        path: Optional[str] = "",
        show_hidden: bool = False,
        glob: Optional[str] = None,
    ) -> List[ResourceSnapshot]:
        """
        List the direct children of a directory.

        Args:
            path: Directory to list
            show_hidden: Include hidden entries
            glob: Optional shell-style pattern matched against entry names

        Returns:
            Snapshots of the matching children, sorted by name

        Raises:
            RepositoryError: RESOURCE_NOT_ACCESSIBLE if the path does not exist,
                INVALID_RESOURCE_TYPE if it is not a directory
        """
        directory = self.info(path)
        if not directory.exists:
            raise self._fail("list", path, RepositoryError.not_accessible(
                f"Path {path} does not exist"))
        if not directory.is_directory:
            raise self._fail("list", path, RepositoryError.invalid_type(
                f"Path {path} does not specify a directory"))

        logger.debug(f"Listing content for path {path} which resolved to {directory.concrete_path}")
        prefix = f"{directory.repository_path}/" if directory.repository_path else ""
        try:
            with os.scandir(directory.concrete_path) as entries:
                names = sorted(entry.name for entry in entries)
        except OSError as e:
            raise self._fail("list", path, e) from e

        result = []
        for name in names:
            if glob is not None and not fnmatch.fnmatchcase(name, glob):
                continue
            child = build_snapshot(directory.concrete_path / name, prefix + name)
            if child.is_hidden and not show_hidden:
                continue
            result.append(child)
        return result

    # ========== Content ==========

    def get_content_stream(self, path: str) -> BinaryIO:
        """
        Open a resource for reading.

        The caller owns the returned stream and must close it.

        Raises:
            RepositoryError: RESOURCE_NOT_ACCESSIBLE if missing or unreadable,
                INVALID_RESOURCE_TYPE if it is a directory
        """
        resource = self._readable_file(path)
        try:
            return open(resource.concrete_path, "rb")
        except OSError as e:
            raise self._fail("read", path, e) from e

    def get_content(self, path: str, out: BinaryIO) -> int:
        """Copy the content of a resource into ``out``; returns the number of bytes written."""
        written = 0
        with self.get_content_stream(path) as src:
            try:
                while True:
                    chunk = src.read(_COPY_BUFFER_SIZE)
                    if not chunk:
                        break
                    out.write(chunk)
                    written += len(chunk)
            except OSError as e:
                raise self._fail("read", path, e) from e
        return written

    def _readable_file(self, path: str) -> ResourceSnapshot:
        resource = self.info(path)
        if not resource.exists or not resource.can_read:
            raise self._fail("read", path, RepositoryError.not_accessible(
                f"Cannot read content of resource {path}"))
        if resource.is_directory:
            raise self._fail("read", path, RepositoryError.invalid_type(
                f"Path '{path}' qualifies a directory"))
        return resource

    def get_output_stream(self, path: str) -> BinaryIO:
        """Open a resource for writing, creating its parent directories."""
        resolved = self.resolve(path)
        try:
            resolved.host_path.parent.mkdir(parents=True, exist_ok=True)
            return open(resolved.host_path, "wb")
        except OSError as e:
            raise self._fail("write", path, e) from e

    def set_content(self, path: str, content: Content, create_parents: bool = False) -> ResourceSnapshot:
        """
        Replace the content of a resource.

        The new content is written to a temporary file next to the target and
        moved into place, so readers see either the old or the new content.

        Args:
            path: Resource to write
            content: Bytes or a readable binary stream
            create_parents: Create missing parent directories

        Returns:
            Snapshot of the written resource
        """
        resolved = self.resolve(path)
        target = resolved.host_path
        if resolved.is_root or target.is_dir():
            raise self._fail("write", path, RepositoryError.invalid_type(
                f"Path '{path}' qualifies a directory"))

        tmp_path = None
        try:
            if create_parents:
                target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".part", dir=target.parent)
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "wb") as dst:
                for chunk in _iter_content(content):
                    dst.write(chunk)
            os.chmod(tmp_path, _replacement_mode(target))
            os.replace(tmp_path, target)
            tmp_path = None
        except OSError as e:
            raise self._fail("write", path, e) from e
        finally:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()

        snapshot = self._snapshot(resolved)
        logger.info(f"Wrote {snapshot.size} bytes to {resolved.repository_path}")
        return snapshot

    # ========== Creation ==========

    def create_directories(self, path: str) -> ResourceSnapshot:
        """Create a directory and any missing parents; succeeds if it already exists."""
        resolved = self.resolve(path)
        try:
            resolved.host_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise self._fail("create directories", path, e) from e
        logger.info(f"Created directory {resolved.repository_path}")
        return self._snapshot(resolved)

    def create_file(self, path: str) -> ResourceSnapshot:
        """Create an empty file; fails if anything already exists at ``path``."""
        resolved = self.resolve(path)
        try:
            with open(resolved.host_path, "xb"):
                pass
        except OSError as e:
            raise self._fail("create file", path, e) from e
        logger.info(f"Created file {resolved.repository_path}")
        return self._snapshot(resolved)

    # ========== Tree Operations ==========

    def delete(self, path: str) -> None:
        """
        Delete a resource; directories are deleted recursively.

        Raises:
            RepositoryError: RESOURCE_NOT_ACCESSIBLE if nothing exists at ``path``
                or ``path`` is the root, IO_FAILURE if any delete fails
        """
        resolved = self.resolve(path)
        if resolved.is_root:
            raise self._fail("delete", path, RepositoryError.not_accessible(
                "The repository root cannot be deleted"))
        try:
            removed = delete_tree(resolved.host_path)
        except OSError as e:
            raise self._fail("delete", path, e) from e
        logger.info(f"Deleted {resolved.repository_path} ({removed} entries)")

    def copy(self, source_path: str, target_path: str) -> ResourceSnapshot:
        """
        Copy a file or directory tree.

        A source copied onto an existing directory lands inside it under its
        own name. A directory source onto a missing target becomes the target.
        Per-entry failures inside a directory copy are logged and skipped.

        Returns:
            Snapshot of the copied resource at its destination
        """
        source = self.info(source_path)
        target = self.resolve(target_path)
        if not source.exists:
            raise self._fail("copy", source_path, RepositoryError.not_accessible(
                f"Source path {source_path} does not exist"))

        logger.debug(f"Copy {source.concrete_path} to {target.host_path}")
        target_is_dir = target.host_path.is_dir()
        destination = self._child(target, source.name) if target_is_dir else target
        source_is_dir = source.is_directory or (
            self.config.follow_symlinks and source.concrete_path.is_dir()
        )
        try:
            if source_is_dir:
                if os.path.lexists(target.host_path) and not target_is_dir:
                    raise RepositoryError.invalid_type(
                        f"Target path {target_path} does not specify a directory")
                report = copy_directory(
                    source.concrete_path,
                    destination.host_path,
                    overwrite=self.config.overwrite_on_copy,
                    preserve_attributes=self.config.preserve_attributes,
                    follow_symlinks=self.config.follow_symlinks,
                )
                logger.info(
                    f"Copied {source.repository_path} to {destination.repository_path} "
                    f"({len(report.copied)} files, {len(report.skipped)} skipped)"
                )
            else:
                copy_file(
                    source.concrete_path,
                    destination.host_path,
                    overwrite=self.config.overwrite_on_copy,
                    preserve_attributes=self.config.preserve_attributes,
                    follow_symlinks=self.config.follow_symlinks,
                )
                logger.info(f"Copied {source.repository_path} to {destination.repository_path}")
        except RepositoryError as e:
            raise self._fail("copy", source_path, e)
        except OSError as e:
            raise self._fail("copy", source_path, e) from e
        return self._snapshot(destination)

    def move(self, source_path: str, target_path: str) -> ResourceSnapshot:
        """
        Move a resource.

        If the target is an existing directory the source is placed inside it
        under its own name; otherwise the target is the exact destination. An
        existing destination is replaced.

        Returns:
            Snapshot of the resource at its destination
        """
        source = self.resolve(source_path)
        target = self.resolve(target_path)
        if source.is_root:
            raise self._fail("move", source_path, RepositoryError.not_accessible(
                "The repository root cannot be moved"))

        destination = self._child(target, source.host_path.name) if target.host_path.is_dir() else target
        try:
            _replace(source.host_path, destination.host_path)
        except OSError as e:
            raise self._fail("move", source_path, e) from e
        logger.info(f"Moved {source.repository_path} to {destination.repository_path}")
        return self._snapshot(destination)

    # ========== Archives ==========

    def zip(self, source_path: Union[str, Sequence[str]], target_path: str) -> ResourceSnapshot:
        """
        Create or update a zip archive.

        Args:
            source_path: One repository path or several; sources are added in
                order and the first failing source aborts the rest
            target_path: Repository path of the archive

        Returns:
            Snapshot of the archive
        """
        sources = [source_path] if isinstance(source_path, str) else list(source_path)
        resolved_sources = [self.resolve(s) for s in sources]
        target = self.resolve(target_path)
        if target.is_root or target.host_path.is_dir():
            raise self._fail("zip", target_path, RepositoryError.invalid_type(
                f"Archive path '{target_path}' qualifies a directory"))

        for original, resolved in zip(sources, resolved_sources):
            if not os.path.lexists(resolved.host_path):
                raise self._fail("zip", original, RepositoryError.not_accessible(
                    f"Cannot access resource {original}"))

        logger.info(
            f"Zipping {', '.join(r.repository_path or '/' for r in resolved_sources)} "
            f"to {target.repository_path}"
        )
        try:
            create_archive(
                target.host_path,
                *(r.host_path for r in resolved_sources),
                compression=self._compression,
            )
        except RepositoryError as e:
            raise self._fail("zip", target_path, e)
        except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as e:
            raise self._fail("zip", target_path, e) from e
        return self._snapshot(target)

    def unzip(self, source_path: str, target_path: str) -> ResourceSnapshot:
        """
        Extract a zip archive into a directory (created if missing).

        Returns:
            Snapshot of the destination directory
        """
        archive = self.info(source_path)
        target = self.resolve(target_path)
        if not archive.exists:
            raise self._fail("unzip", source_path, RepositoryError.not_accessible(
                f"Cannot access archive {source_path}"))
        if archive.is_directory:
            raise self._fail("unzip", source_path, RepositoryError.invalid_type(
                f"Archive path '{source_path}' qualifies a directory"))
        if os.path.lexists(target.host_path) and not target.host_path.is_dir():
            raise self._fail("unzip", target_path, RepositoryError.invalid_type(
                f"Target path {target_path} does not specify a directory"))

        try:
            extracted = extract_archive(archive.concrete_path, target.host_path)
        except RepositoryError as e:
            raise self._fail("unzip", source_path, e)
        except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as e:
            raise self._fail("unzip", source_path, e) from e
        logger.info(f"Unzipped {archive.repository_path} to {target.repository_path} ({len(extracted)} files)")
        return self._snapshot(target)

    # ========== Utility Methods ==========

    @staticmethod
    def _child(parent: ResolvedPath, name: str) -> ResolvedPath:
        repository_path = f"{parent.repository_path}/{name}" if parent.repository_path else name
        return ResolvedPath(repository_path=repository_path, host_path=parent.host_path / name)

    def __repr__(self) -> str:
        return f"FileRepository(root={str(self.boundary.root)!r})"


def _iter_content(content: Content) -> Iterator[bytes]:
    if isinstance(content, (bytes, bytearray, memoryview)):
        yield bytes(content)
        return
    while True:
        chunk = content.read(_COPY_BUFFER_SIZE)
        if not chunk:
            break
        yield chunk


def _replacement_mode(target: Path) -> int:
    """Permission bits for content replacing ``target``: its current mode, else the umask default."""
    try:
        return stat.S_IMODE(os.stat(target).st_mode)
    except FileNotFoundError:
        pass
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def _replace(source: Path, destination: Path) -> None:
    """Move ``source`` onto ``destination``, replacing it; falls back to copy+delete across devices."""
    try:
        os.replace(source, destination)
        return
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
    if os.path.lexists(destination):
        delete_tree(destination)
    shutil.move(str(source), str(destination))
