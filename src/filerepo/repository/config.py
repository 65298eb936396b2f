"""
Configuration for the file repository.

This module defines the configuration class holding the root directory and
the copy/archive policies, and a loader reading it from a YAML file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "FILEREPO_CONFIG"
BASEDIR_ENV_VAR = "FILEREPO_BASEDIR"

DEFAULT_BASE_DIRECTORY = "~/filerepo"

COMPRESSION_CHOICES = ("deflated", "stored")


@dataclass
class RepositoryConfig:
    """
    Configuration for a file repository.

    The root directory is fixed for the lifetime of a repository instance;
    everything else tunes how the tree walks behave.
    """

    # === Root Boundary ===

    base_directory: Optional[Union[str, Path]] = None
    """Root directory of the repository. Empty or None means ~/filerepo."""

    create_root: bool = True
    """Create the root directory if it does not exist."""

    uri: Optional[str] = None
    """Optional public base URI under which the repository is published (see ``FileRepository.public_uri``)."""

    # === Tree Walk Policies ===

    follow_symlinks: bool = False
    """Whether recursive copies descend into symbolic links. False by default."""

    preserve_attributes: bool = False
    """Whether copies keep permission bits and timestamps."""

    overwrite_on_copy: bool = True
    """Whether copies replace existing files in the target."""

    # === Archives ===

    compression: str = "deflated"
    """Compression for new zip entries: 'deflated' or 'stored'."""

    def __post_init__(self):
        """Validate and normalize configuration after initialization."""
        base = str(self.base_directory) if self.base_directory is not None else ""
        if not base.strip():
            base = DEFAULT_BASE_DIRECTORY
        self.base_directory = Path(os.path.abspath(os.path.expanduser(base)))

        if self.uri is not None:
            self.uri = normalize_uri(self.uri)

        self.compression = self.compression.lower()
        if self.compression not in COMPRESSION_CHOICES:
            raise ValueError(
                f"compression must be one of {', '.join(COMPRESSION_CHOICES)}, got '{self.compression}'"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RepositoryConfig":
        """
        Build a configuration from a mapping.

        Raises:
            ValueError: If the mapping contains unknown keys
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown repository configuration keys: {', '.join(unknown)}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_directory": str(self.base_directory),
            "create_root": self.create_root,
            "uri": self.uri,
            "follow_symlinks": self.follow_symlinks,
            "preserve_attributes": self.preserve_attributes,
            "overwrite_on_copy": self.overwrite_on_copy,
            "compression": self.compression,
        }


def normalize_uri(uri: str) -> str:
    """
    Normalize a public base URI.

    Trailing slashes are stripped, 'file://~' is expanded to the home
    directory, and a URI without a path gets a trailing '/'.
    """
    uri = uri.rstrip("/")
    uri = uri.replace("file://~", "file://" + str(Path.home()))
    index = uri.find("://")
    if index > 0 and "/" not in uri[index + len("://"):]:
        uri = uri + "/"
    return uri


def load_config(path: Optional[Union[str, Path]] = None) -> RepositoryConfig:
    """
    Load the repository configuration.

    The YAML file holds a top-level ``repository`` mapping. Without ``path``
    the file named by ``FILEREPO_CONFIG`` is used, if set; without either the
    defaults apply. ``FILEREPO_BASEDIR`` overrides ``base_directory``.

    Args:
        path: Optional YAML file to read

    Returns:
        RepositoryConfig

    Raises:
        ValueError: If the file is malformed or holds unknown keys
        OSError: If the file cannot be read
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR) or None

    data: Dict[str, Any] = {}
    if path is not None:
        with open(path, "r", encoding="utf-8") as f:
            try:
                document = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(document, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        section = document.get("repository", {}) or {}
        if not isinstance(section, dict):
            raise ValueError(f"'repository' section in {path} must be a mapping")
        data.update(section)
        logger.debug(f"Loaded repository configuration from {path}")

    basedir = os.environ.get(BASEDIR_ENV_VAR)
    if basedir:
        data["base_directory"] = basedir

    return RepositoryConfig.from_dict(data)
