"""
Recursive tree copy and delete.

Both walks use an explicit stack instead of recursion. The copy walk is
best-effort: per-entry failures are logged, recorded in the returned
``CopyReport`` and skipped. The delete walk stops at the first failure.
"""

import logging
import os
import shutil
import stat
from pathlib import Path
from typing import FrozenSet, List, Optional, Tuple

from ..exceptions import RepositoryError
from .data_models import CopyReport, SkippedEntry

logger = logging.getLogger(__name__)

# (st_dev, st_ino) of a directory, used to detect link cycles
_DirIdentity = Tuple[int, int]


def _is_directory(path: Path, follow_symlinks: bool) -> bool:
    try:
        st = os.stat(path) if follow_symlinks else os.lstat(path)
    except OSError:
        return False
    return stat.S_ISDIR(st.st_mode)


def _is_within(path: Path, ancestor: Path) -> bool:
    path = Path(os.path.abspath(path))
    ancestor = Path(os.path.abspath(ancestor))
    return path == ancestor or ancestor in path.parents


def copy_file(
    source: Path,
    target: Path,
    overwrite: bool = False,
    preserve_attributes: bool = False,
    follow_symlinks: bool = False,
) -> bool:
    """
    Copy a single file.

    An existing target is left alone unless ``overwrite`` is set; that case is
    a silent skip, not an error. With ``follow_symlinks=False`` a link source
    is recreated as a link.

    Args:
        source: File to copy
        target: Destination path (not a directory to copy into)
        overwrite: Replace an existing target
        preserve_attributes: Copy permission bits and timestamps as well
        follow_symlinks: Copy the content a link points to instead of the link

    Returns:
        True if the file was copied, False if it was skipped

    Raises:
        RepositoryError: If the source is missing or is a directory
        OSError: If the copy itself fails
    """
    if not os.path.lexists(source):
        raise RepositoryError.not_accessible(f"Source file {source} does not exist")
    if _is_directory(source, follow_symlinks):
        raise RepositoryError.invalid_type(f"Source path {source} is a directory")

    if os.path.lexists(target):
        if not overwrite:
            logger.debug(f"Skipping existing target {target}")
            return False
        if os.path.islink(target):
            # Replace the link itself, never write through it
            os.unlink(target)

    if preserve_attributes:
        shutil.copy2(source, target, follow_symlinks=follow_symlinks)
    else:
        shutil.copyfile(source, target, follow_symlinks=follow_symlinks)
    logger.debug(f"Copied {source} to {target}")
    return True


def copy_directory(
    source: Path,
    target: Path,
    overwrite: bool = False,
    preserve_attributes: bool = False,
    follow_symlinks: bool = False,
) -> CopyReport:
    """
    Recursively copy a directory tree.

    Directories are created before their children are visited. When
    ``preserve_attributes`` is set, each directory's timestamps are fixed up
    after all of its children have been processed. A directory that cannot be
    created is skipped with its whole subtree; a file that cannot be copied is
    skipped alone; the walk always continues. With ``follow_symlinks`` links
    to directories are descended and a link cycle abandons that branch.

    Args:
        source: Directory to copy
        target: Directory to copy into (created if missing)
        overwrite: Replace existing files in the target
        preserve_attributes: Copy permission bits and timestamps as well
        follow_symlinks: Descend into links instead of copying them as links

    Returns:
        CopyReport listing copied files and skipped entries

    Raises:
        RepositoryError: If the source is not a directory, the target exists and is
            not a directory, or the target lies inside the source
        OSError: If the target directory cannot be created (e.g. its parent is missing)
    """
    if not _is_directory(source, follow_symlinks=True):
        raise RepositoryError.invalid_type(f"Source path {source} is not a directory")
    if os.path.lexists(target) and not _is_directory(target, follow_symlinks=True):
        raise RepositoryError.invalid_type(f"Target path {target} is not a directory")
    if _is_within(target, source):
        raise RepositoryError.invalid_type(f"Cannot copy directory {source} into itself ({target})")

    # A target that cannot be created fails the whole copy
    try:
        target.mkdir()
    except FileExistsError:
        pass

    report = CopyReport(source=source, target=target)
    # ("enter" | "file" | "leave", source, target, ancestor identities)
    stack: List[Tuple[str, Path, Path, FrozenSet[_DirIdentity]]] = [
        ("enter", source, target, frozenset())
    ]

    while stack:
        action, src, dst, ancestors = stack.pop()

        if action == "file":
            report = _copy_entry(src, dst, report, overwrite, preserve_attributes, follow_symlinks)
        elif action == "leave":
            report = _fix_directory_times(src, dst, report)
        else:
            identity = _directory_identity(src, follow_symlinks)
            if identity is not None and identity in ancestors:
                logger.error(f"Cycle detected: {src}")
                report.skipped.append(SkippedEntry(src, "cycle detected"))
                continue

            children = _enter_directory(src, dst, report, preserve_attributes, follow_symlinks)
            if children is None:
                continue

            if preserve_attributes:
                stack.append(("leave", src, dst, ancestors))
            if identity is not None:
                ancestors = ancestors | {identity}
            for child in reversed(children):
                child_action = "enter" if _is_directory(child, follow_symlinks) else "file"
                stack.append((child_action, child, dst / child.name, ancestors))

    if report.skipped:
        logger.warning(
            f"Copied {len(report.copied)} files from {source} to {target}, "
            f"skipped {len(report.skipped)} entries"
        )
    return report


def _directory_identity(path: Path, follow_symlinks: bool) -> Optional[_DirIdentity]:
    try:
        st = os.stat(path) if follow_symlinks else os.lstat(path)
    except OSError:
        return None
    return (st.st_dev, st.st_ino)


def _enter_directory(
    src: Path,
    dst: Path,
    report: CopyReport,
    preserve_attributes: bool,
    follow_symlinks: bool,
) -> Optional[List[Path]]:
    """Create ``dst`` and list the children of ``src``; None means skip the subtree."""
    try:
        dst.mkdir()
    except FileExistsError:
        if not dst.is_dir():
            logger.info(f"Unable to create {dst}: a file is in the way")
            report.skipped.append(SkippedEntry(src, f"cannot create {dst}: not a directory"))
            return None
    except OSError as e:
        logger.info(f"Unable to create {dst}: {e}")
        report.skipped.append(SkippedEntry(src, f"cannot create {dst}: {e}"))
        return None

    if preserve_attributes:
        try:
            shutil.copystat(src, dst, follow_symlinks=follow_symlinks)
        except OSError as e:
            logger.info(f"Unable to copy all attributes to {dst}: {e}")

    try:
        with os.scandir(src) as entries:
            return sorted((Path(entry.path) for entry in entries), key=lambda p: p.name)
    except OSError as e:
        logger.warning(f"Unable to read directory {src}: {e}")
        report.skipped.append(SkippedEntry(src, f"cannot list directory: {e}"))
        return None


def _copy_entry(
    src: Path,
    dst: Path,
    report: CopyReport,
    overwrite: bool,
    preserve_attributes: bool,
    follow_symlinks: bool,
) -> CopyReport:
    try:
        if copy_file(src, dst, overwrite, preserve_attributes, follow_symlinks):
            report.copied.append(dst)
    except (OSError, RepositoryError) as e:
        logger.warning(f"Unable to copy {src}: {e}")
        report.skipped.append(SkippedEntry(src, str(e)))
    return report


def _fix_directory_times(src: Path, dst: Path, report: CopyReport) -> CopyReport:
    try:
        st = os.stat(src)
        os.utime(dst, ns=(st.st_atime_ns, st.st_mtime_ns))
    except OSError as e:
        logger.info(f"Unable to copy all attributes to {dst}: {e}")
    return report


def delete_tree(path: Path) -> int:
    """
    Delete a file, link or directory tree.

    Files and links are deleted when reached; each directory is deleted only
    after all of its children are gone. Links are removed, never traversed.
    The first failing delete call propagates.

    Args:
        path: Entry to delete

    Returns:
        Number of entries deleted

    Raises:
        FileNotFoundError: If ``path`` does not exist
        OSError: If any individual delete fails
    """
    if not _is_directory(path, follow_symlinks=False):
        os.unlink(path)
        logger.debug(f"Deleted file {path}")
        return 1

    deleted = 0
    # (directory, children already pushed)
    stack: List[Tuple[Path, bool]] = [(path, False)]
    while stack:
        directory, expanded = stack.pop()
        if expanded:
            os.rmdir(directory)
            logger.debug(f"Deleted directory {directory}")
            deleted += 1
            continue

        stack.append((directory, True))
        with os.scandir(directory) as entries:
            children = list(entries)
        for entry in children:
            if entry.is_dir(follow_symlinks=False):
                stack.append((Path(entry.path), False))
            else:
                os.unlink(entry.path)
                logger.debug(f"Deleted file {entry.path}")
                deleted += 1
    return deleted
