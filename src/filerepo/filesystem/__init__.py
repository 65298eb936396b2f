"""Root-confined path resolution for the repository.

Example:
    >>> from filerepo.filesystem import RootBoundary
    >>> root = RootBoundary(Path.cwd())
    >>> resolved = root.resolve("downloads/file.txt")
    >>> print(resolved.repository_path)
    downloads/file.txt
"""

from .core import ResolvedPath, RootBoundary, normalize_parts

__all__ = ["RootBoundary", "ResolvedPath", "normalize_parts"]
