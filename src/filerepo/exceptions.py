"""
Repository error kinds.

Every failure surfaced by the repository is a ``RepositoryError`` carrying one
of a closed set of ``ErrorKind`` values. Callers dispatch on ``error.kind``
rather than on exception subclasses.
"""

import time
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """What went wrong, from the caller's point of view."""

    # Path does not exist, is not readable, or lies outside the root
    RESOURCE_NOT_ACCESSIBLE = "resource_not_accessible"

    # A file was expected but a directory was given, or the reverse
    INVALID_RESOURCE_TYPE = "invalid_resource_type"

    # Underlying filesystem or archive I/O error
    IO_FAILURE = "io_failure"


class RepositoryError(Exception):
    """
    Error raised by repository operations.

    Attributes:
        kind: The error kind (see ``ErrorKind``)
        message: Human readable description
        repository_path: Repository path the operation was working on, if known
        cause: The originating exception, if this error wraps one
        timestamp: When the error was created
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        repository_path: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.repository_path = repository_path
        self.cause = cause
        self.timestamp = time.time()

    @classmethod
    def not_accessible(
        cls, message: str, repository_path: Optional[str] = None, cause: Optional[BaseException] = None
    ) -> "RepositoryError":
        return cls(ErrorKind.RESOURCE_NOT_ACCESSIBLE, message, repository_path, cause)

    @classmethod
    def invalid_type(
        cls, message: str, repository_path: Optional[str] = None, cause: Optional[BaseException] = None
    ) -> "RepositoryError":
        return cls(ErrorKind.INVALID_RESOURCE_TYPE, message, repository_path, cause)

    @classmethod
    def io_failure(
        cls, message: str, repository_path: Optional[str] = None, cause: Optional[BaseException] = None
    ) -> "RepositoryError":
        return cls(ErrorKind.IO_FAILURE, message, repository_path, cause)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "kind": self.kind.value,
            "message": self.message,
            "repository_path": self.repository_path,
            "cause": repr(self.cause) if self.cause is not None else None,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        parts = [f"[{self.kind.name}]", self.message]
        if self.cause is not None:
            parts.append(f"({type(self.cause).__name__}: {self.cause})")
        return " ".join(parts)
