"""
Resource commands for the filerepo CLI.

Provides one command per repository operation:
- info / ls: Show resource metadata
- mkdir / touch / put: Create directories, empty files and content
- cat: Write a resource's content to stdout
- rm / cp / mv: Delete, copy and move resources
- zip / unzip: Create and extract zip archives
"""

import functools
import json
import sys
from typing import BinaryIO, Optional, Tuple

import click

from filerepo.exceptions import ErrorKind, RepositoryError
from filerepo.repository import FileRepository, ResourceSnapshot

# Exit status per error kind; 1 is left for usage and configuration errors
EXIT_CODES = {
    ErrorKind.RESOURCE_NOT_ACCESSIBLE: 2,
    ErrorKind.INVALID_RESOURCE_TYPE: 3,
    ErrorKind.IO_FAILURE: 4,
}


def _echo_json(payload) -> None:
    click.echo(json.dumps(payload, indent=2))


def _echo_snapshot(snapshot: ResourceSnapshot) -> None:
    _echo_json(snapshot.to_dict())


def handle_repository_errors(func):
    """Report a RepositoryError on stderr and exit with the status for its kind."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except RepositoryError as e:
            click.echo(f"Error: {e.message}", err=True)
            sys.exit(EXIT_CODES[e.kind])

    return wrapper


def default_archive_path(resource: ResourceSnapshot) -> str:
    """Archive path used by ``zip`` when no target is given.

    A file 'docs/a.txt' becomes 'docs/a.txt.zip'; a directory 'docs/img'
    becomes 'docs/img.zip'; a top-level directory becomes 'Archive.zip'.
    """
    if not resource.is_directory:
        return f"{resource.repository_path}.zip"
    parent = resource.parent_path
    if parent is None:
        return "Archive.zip"
    return f"{parent}/{resource.name}.zip"


@click.command()
@click.argument("path", default="")
@click.pass_obj
@handle_repository_errors
def info(repo: FileRepository, path: str):
    """Show metadata of a resource (the root by default)."""
    _echo_snapshot(repo.info(path))


@click.command(name="ls")
@click.argument("path", default="")
@click.option("-a", "--all", "show_hidden", is_flag=True, help="Include hidden entries")
@click.option("--glob", "pattern", default=None, help="Only list names matching this pattern")
@click.pass_obj
@handle_repository_errors
def list_directory(repo: FileRepository, path: str, show_hidden: bool, pattern: Optional[str]):
    """List the contents of a directory.

    \b
    Examples:
        filerepo ls docs
        filerepo ls docs --all --glob '*.md'
    """
    _echo_json([r.to_dict() for r in repo.list(path, show_hidden=show_hidden, glob=pattern)])


@click.command()
@click.argument("path")
@click.pass_obj
@handle_repository_errors
def mkdir(repo: FileRepository, path: str):
    """Create a directory and any missing parents."""
    _echo_snapshot(repo.create_directories(path))


@click.command()
@click.argument("path")
@click.pass_obj
@handle_repository_errors
def touch(repo: FileRepository, path: str):
    """Create an empty file (fails if it already exists)."""
    _echo_snapshot(repo.create_file(path))


@click.command()
@click.argument("path")
@click.argument("source", type=click.File("rb"), default="-")
@click.option("-p", "--parents", is_flag=True, help="Create missing parent directories")
@click.pass_obj
@handle_repository_errors
def put(repo: FileRepository, path: str, source: BinaryIO, parents: bool):
    """Write content to a resource from SOURCE (stdin by default).

    \b
    Examples:
        filerepo put docs/readme.md README.md
        echo hello | filerepo put --parents notes/hello.txt
    """
    _echo_snapshot(repo.set_content(path, source, create_parents=parents))


@click.command()
@click.argument("path")
@click.pass_obj
@handle_repository_errors
def cat(repo: FileRepository, path: str):
    """Write the content of a resource to stdout."""
    out = click.get_binary_stream("stdout")
    repo.get_content(path, out)
    out.flush()


@click.command()
@click.argument("path")
@click.option("--missing-ok", is_flag=True, help="Succeed if nothing exists at PATH")
@click.pass_obj
@handle_repository_errors
def rm(repo: FileRepository, path: str, missing_ok: bool):
    """Delete a resource; directories are deleted recursively."""
    if missing_ok and not repo.exists(path):
        return
    repo.delete(path)
    click.echo(f"Deleted {path}")


@click.command()
@click.argument("source")
@click.argument("target")
@click.pass_obj
@handle_repository_errors
def cp(repo: FileRepository, source: str, target: str):
    """Copy SOURCE to TARGET (into TARGET if it is a directory)."""
    _echo_snapshot(repo.copy(source, target))


@click.command()
@click.argument("source")
@click.argument("target")
@click.pass_obj
@handle_repository_errors
def mv(repo: FileRepository, source: str, target: str):
    """Move SOURCE to TARGET (into TARGET if it is a directory)."""
    _echo_snapshot(repo.move(source, target))


@click.command(name="zip")
@click.argument("sources", nargs=-1, required=True)
@click.option("-o", "--output", default=None, help="Archive path (derived from the first source if omitted)")
@click.pass_obj
@handle_repository_errors
def zip_resources(repo: FileRepository, sources: Tuple[str, ...], output: Optional[str]):
    """Add one or more resources to a zip archive.

    \b
    Examples:
        filerepo zip docs                  # creates Archive.zip
        filerepo zip docs/img              # creates docs/img.zip
        filerepo zip a.txt b.txt -o both.zip
    """
    if output is None:
        first = repo.info(sources[0])
        if not first.exists or not first.can_read:
            raise RepositoryError.not_accessible(f"Cannot access resource {sources[0]}")
        output = default_archive_path(first)
    _echo_snapshot(repo.zip(list(sources), output))


@click.command()
@click.argument("source")
@click.argument("target")
@click.pass_obj
@handle_repository_errors
def unzip(repo: FileRepository, source: str, target: str):
    """Extract the archive SOURCE into the directory TARGET."""
    _echo_snapshot(repo.unzip(source, target))


RESOURCE_COMMANDS = [
    info,
    list_directory,
    mkdir,
    touch,
    put,
    cat,
    rm,
    cp,
    mv,
    zip_resources,
    unzip,
]
