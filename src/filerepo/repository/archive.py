"""
Zip archive creation and extraction.

An ``ArchiveView`` is a short-lived view of one zip container, scoped to a
single call. In create mode new entries are staged in a temporary container
and merged into the archive when the view closes, on every exit path.
"""

import logging
import os
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from ..exceptions import RepositoryError
from ..filesystem.core import normalize_parts

logger = logging.getLogger(__name__)

COMPRESSION_METHODS = {
    "deflated": zipfile.ZIP_DEFLATED,
    "stored": zipfile.ZIP_STORED,
}

_COPY_BUFFER_SIZE = 1024 * 1024


class ArchiveView:
    """
    Context-managed view of a zip container.

    Example:
        >>> with ArchiveView(Path("out.zip"), create=True) as view:
        ...     view.put("docs/readme.md", Path("readme.md"))
    """

    def __init__(
        self,
        archive_path: Path,
        create: bool = False,
        compression: int = zipfile.ZIP_DEFLATED,
    ):
        """
        Open the view.

        Args:
            archive_path: Zip file on the host
            create: Open for writing; the container is created if absent
            compression: zipfile compression constant for new entries

        Raises:
            FileNotFoundError: If not creating and the archive does not exist
            zipfile.BadZipFile: If an existing container is corrupt
        """
        self.archive_path = Path(archive_path)
        self.create = create
        self.compression = compression
        self._reader: Optional[zipfile.ZipFile] = None
        self._staging: Optional[zipfile.ZipFile] = None
        self._staging_path: Optional[Path] = None
        self._staged: Dict[str, Path] = {}  # entry name -> source file
        self._closed = False

        if create:
            if self.archive_path.exists():
                # Fail early on a corrupt container
                with zipfile.ZipFile(self.archive_path) as existing:
                    existing.infolist()
            fd, staging = tempfile.mkstemp(prefix="filerepo-", suffix=".zip")
            os.close(fd)
            self._staging_path = Path(staging)
            self._staging = zipfile.ZipFile(self._staging_path, "w", compression=compression)
        else:
            self._reader = zipfile.ZipFile(self.archive_path)

    def __enter__(self) -> "ArchiveView":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ========== Reading ==========

    def entries(self) -> List[zipfile.ZipInfo]:
        """Entries in their natural stored order."""
        if self._reader is None:
            raise ValueError("Archive view is not open for reading")
        return self._reader.infolist()

    def copy_out(self, info: zipfile.ZipInfo, target: Path) -> None:
        """Write one entry's content to ``target``, replacing any existing file or link."""
        if self._reader is None:
            raise ValueError("Archive view is not open for reading")
        if os.path.islink(target):
            os.unlink(target)
        with self._reader.open(info) as src, open(target, "wb") as dst:
            shutil.copyfileobj(src, dst, _COPY_BUFFER_SIZE)

    # ========== Writing ==========

    def put(self, entry_name: str, source: Path) -> None:
        """Stage ``source`` under ``entry_name``; a later put of the same name wins."""
        if self._staging is None:
            raise ValueError("Archive view is not open for writing")
        info = zipfile.ZipInfo.from_file(source, arcname=entry_name, strict_timestamps=False)
        info.compress_type = self.compression
        with open(source, "rb") as src, self._staging.open(info, "w") as dst:
            shutil.copyfileobj(src, dst, _COPY_BUFFER_SIZE)
        self._staged[entry_name] = Path(source)
        logger.debug(f"Staged {source} as {entry_name}")

    @property
    def staged_names(self) -> List[str]:
        return list(self._staged)

    # ========== Lifecycle ==========

    def close(self) -> None:
        """Release the view; in create mode, merge staged entries into the archive."""
        if self._closed:
            return
        self._closed = True

        if self._reader is not None:
            self._reader.close()
            return

        try:
            self._staging.close()
            self._flush()
        finally:
            if self._staging_path is not None and self._staging_path.exists():
                self._staging_path.unlink()

    def _flush(self) -> None:
        parent = self.archive_path.parent
        fd, merged = tempfile.mkstemp(prefix=f".{self.archive_path.name}.", suffix=".tmp", dir=parent)
        os.close(fd)
        merged_path = Path(merged)
        try:
            with zipfile.ZipFile(merged_path, "w", compression=self.compression) as out:
                if self.archive_path.exists():
                    with zipfile.ZipFile(self.archive_path) as existing:
                        for info in existing.infolist():
                            if info.filename not in self._staged:
                                _copy_member(existing, info, out)
                with zipfile.ZipFile(self._staging_path) as staging:
                    for name in self._staged:
                        _copy_member(staging, staging.getinfo(name), out)
            os.replace(merged_path, self.archive_path)
        finally:
            if merged_path.exists():
                merged_path.unlink()
        logger.debug(f"Flushed {len(self._staged)} entries to {self.archive_path}")


def _copy_member(source: zipfile.ZipFile, info: zipfile.ZipInfo, target: zipfile.ZipFile) -> None:
    copied = zipfile.ZipInfo(info.filename, date_time=info.date_time)
    copied.external_attr = info.external_attr
    copied.compress_type = target.compression
    copied.file_size = info.file_size
    with source.open(info) as src, target.open(copied, "w") as dst:
        shutil.copyfileobj(src, dst, _COPY_BUFFER_SIZE)


def _iter_files(directory: Path) -> Iterator[Path]:
    """Descendant regular files of ``directory`` in walk order.

    Directory links are not descended; links to files are archived by content;
    broken links and special files are skipped.
    """
    stack = [directory]
    while stack:
        current = stack.pop()
        with os.scandir(current) as scan:
            entries = sorted(scan, key=lambda e: e.name)
        for entry in reversed(entries):
            if entry.is_dir(follow_symlinks=False):
                stack.append(Path(entry.path))
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                continue
            if entry.is_file(follow_symlinks=True):
                yield Path(entry.path)
            else:
                logger.warning(f"Not archiving {entry.path}: not a regular file")


def create_archive(
    archive_path: Path,
    *sources: Union[str, Path],
    compression: int = zipfile.ZIP_DEFLATED,
) -> List[str]:
    """
    Create or update a zip archive.

    A file source is stored under its bare name at the top level; a directory
    source stores each descendant file under ``<dirname>/<relative path>``.
    Existing entries of the same name are replaced. Empty directories get no
    entry. The archive never includes itself.

    Sources are processed in order and the first failure aborts the remaining
    sources. Entries staged before the failure are still written.

    Args:
        archive_path: Zip file to create or update
        *sources: Files or directories to add
        compression: zipfile compression constant

    Returns:
        Entry names written

    Raises:
        RepositoryError: If a source does not exist
        OSError: If a source cannot be read or the archive cannot be written
        zipfile.BadZipFile: If the existing archive is corrupt
    """
    archive_path = Path(archive_path)
    archive_abs = os.path.abspath(archive_path)
    with ArchiveView(archive_path, create=True, compression=compression) as view:
        for source in sources:
            source = Path(source)
            if not os.path.lexists(source):
                raise RepositoryError.not_accessible(f"Archive source {source} does not exist")

            if not source.is_dir():
                if os.path.abspath(source) == archive_abs:
                    logger.warning(f"Not archiving {source}: it is the archive itself")
                    continue
                view.put(source.name, source)
                continue

            for file_path in _iter_files(source):
                if os.path.abspath(file_path) == archive_abs:
                    continue
                relative = file_path.relative_to(source).as_posix()
                view.put(f"{source.name}/{relative}", file_path)

        written = view.staged_names
    logger.info(f"Archived {len(written)} entries into {archive_path}")
    return written


def extract_archive(archive_path: Path, destination: Path) -> List[Path]:
    """
    Extract a zip archive into ``destination``.

    The destination is created if missing. Entries are processed in stored
    order; each directory (explicit entry or implicit parent) is created before
    the files inside it are written. Existing files are replaced. Timestamps
    and permissions are not restored.

    Args:
        archive_path: Zip file to read
        destination: Directory to extract into

    Returns:
        Paths of the extracted files

    Raises:
        RepositoryError: If an entry name would escape the destination
        OSError: If the archive cannot be read or a file cannot be written
        zipfile.BadZipFile: If the archive is corrupt
    """
    destination = Path(destination)
    if not destination.exists():
        logger.debug(f"{destination} does not exist. Creating...")
        destination.mkdir(parents=True)

    extracted: List[Path] = []
    with ArchiveView(Path(archive_path)) as view:
        for info in view.entries():
            try:
                parts = normalize_parts(info.filename)
            except ValueError as e:
                raise RepositoryError.not_accessible(
                    f"Archive entry escapes destination: {info.filename}", cause=e
                ) from e
            if not parts:
                continue

            target = destination.joinpath(*parts)
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Extracting {info.filename} to {target}")
            view.copy_out(info, target)
            extracted.append(target)

    logger.info(f"Extracted {len(extracted)} files from {archive_path} to {destination}")
    return extracted
