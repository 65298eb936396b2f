"""
filerepo CLI - command line access to a file repository.

Usage:
    filerepo --help
    filerepo --root /srv/repo ls docs
    filerepo --root /srv/repo put docs/readme.md README.md
    filerepo --root /srv/repo zip docs
"""

import dataclasses
import logging
import sys
from typing import Optional

import click

from filerepo.exceptions import RepositoryError
from filerepo.repository import FileRepository, load_config

from .resources import RESOURCE_COMMANDS

_LOG_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]


@click.group()
@click.version_option(package_name="filerepo")
@click.option(
    "--root",
    type=click.Path(file_okay=False),
    default=None,
    help="Repository root directory (overrides the configuration file)"
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="YAML configuration file with a 'repository' section"
)
@click.option(
    "-v", "--verbose",
    count=True,
    help="Increase log output (-v info, -vv debug)"
)
@click.pass_context
def main(ctx: click.Context, root: Optional[str], config_path: Optional[str], verbose: int):
    """filerepo - browse and manage a directory tree as a repository.

    All paths are relative to the repository root; '..' may not climb
    above it. Resource metadata is printed as JSON.

    \b
    Examples:
        filerepo --root ./data mkdir docs/drafts
        filerepo --root ./data cp docs backup
        filerepo --root ./data unzip backup.zip restored
    """
    logging.basicConfig(
        level=_LOG_LEVELS[min(verbose, len(_LOG_LEVELS) - 1)],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(config_path)
        if root:
            config = dataclasses.replace(config, base_directory=root)
        ctx.obj = FileRepository(config)
    except (ValueError, OSError, RepositoryError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


# Register resource commands
for command in RESOURCE_COMMANDS:
    main.add_command(command)


if __name__ == "__main__":
    main()
