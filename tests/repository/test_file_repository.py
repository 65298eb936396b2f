"""
Tests for the FileRepository facade.

This module tests:
- Queries (info, exists, list)
- Content reading and writing
- Creation, delete, copy and move
- Zip and unzip
- Error translation and logging
"""

import errno
import io
import logging
import os
import stat
import zipfile

import pytest

from filerepo.exceptions import ErrorKind, RepositoryError
from filerepo.repository import FileRepository, RepositoryConfig


@pytest.fixture
def repo(tmp_path):
    return FileRepository.local(tmp_path / "repo")


@pytest.fixture
def populated(repo):
    """Repository with docs/{a.txt, b.md, .hidden, img/logo.png} and top.txt."""
    repo.set_content("docs/a.txt", b"alpha", create_parents=True)
    repo.set_content("docs/b.md", b"# beta")
    repo.set_content("docs/.hidden", b"secret")
    repo.set_content("docs/img/logo.png", b"\x89PNG", create_parents=True)
    repo.set_content("top.txt", b"top")
    return repo


def assert_kind(exc_info, kind):
    assert exc_info.value.kind is kind, str(exc_info.value)


# =============================================================================
# Construction
# =============================================================================

class TestConstruction:
    """Test creating repositories."""

    def test_local_creates_root(self, tmp_path):
        """Test that the root directory is created."""
        repo = FileRepository.local(tmp_path / "new" / "root")

        assert (tmp_path / "new" / "root").is_dir()
        assert repo.root == tmp_path / "new" / "root"

    def test_local_passes_options(self, tmp_path):
        """Test that keyword options reach the configuration."""
        repo = FileRepository.local(tmp_path, preserve_attributes=True, compression="stored")

        assert repo.config.preserve_attributes is True
        assert repo.config.compression == "stored"

    def test_from_config(self, tmp_path):
        """Test construction from an explicit configuration."""
        repo = FileRepository(RepositoryConfig(base_directory=tmp_path / "cfg"))

        assert repo.get_root().is_directory
        assert repo.get_root().repository_path == ""


# =============================================================================
# Queries
# =============================================================================

class TestQueries:
    """Test info, exists and list."""

    def test_info_of_file(self, populated):
        """Test info on an existing file."""
        snapshot = populated.info("docs/a.txt")

        assert snapshot.exists
        assert snapshot.is_file
        assert snapshot.size == 5
        assert snapshot.repository_path == "docs/a.txt"
        assert snapshot.parent_path == "docs"

    def test_info_of_missing_path(self, repo):
        """Test that info never raises for a missing path."""
        snapshot = repo.info("no/such/thing")

        assert not snapshot.exists
        assert not (snapshot.can_read or snapshot.can_write or snapshot.is_file
                    or snapshot.is_directory or snapshot.is_hidden)

    def test_info_normalizes_path(self, populated):
        """Test that redundant separators and '..' are canonicalized."""
        assert populated.info("/docs//img/../a.txt").repository_path == "docs/a.txt"

    def test_escape_is_not_accessible(self, repo):
        """Test that paths above the root are refused."""
        with pytest.raises(RepositoryError) as exc_info:
            repo.info("../outside")

        assert_kind(exc_info, ErrorKind.RESOURCE_NOT_ACCESSIBLE)

    def test_public_uri_without_base(self, populated):
        """Test that without a configured base the file URI is used."""
        assert populated.public_uri("docs/a.txt") == (populated.root / "docs" / "a.txt").as_uri()

    def test_public_uri_with_base(self, tmp_path):
        """Test that the configured base URI prefixes the repository path."""
        repo = FileRepository.local(tmp_path / "repo", uri="https://files.example.com/repo/")

        assert repo.public_uri("/docs//my file.txt") == "https://files.example.com/repo/docs/my%20file.txt"
        assert repo.public_uri("") == "https://files.example.com/repo/"

    def test_exists_variants(self, populated):
        """Test exists, exists_file and exists_directory."""
        assert populated.exists("docs")
        assert populated.exists_directory("docs")
        assert not populated.exists_file("docs")
        assert populated.exists_file("docs/a.txt")
        assert not populated.exists("missing")
        assert not populated.exists_file("missing")

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
    def test_exists_does_not_follow_links(self, repo):
        """Test that a link is neither a file nor a directory."""
        (repo.root / "target.txt").write_text("x")
        (repo.root / "link").symlink_to(repo.root / "target.txt")

        assert repo.exists("link")
        assert not repo.exists_file("link")
        assert not repo.exists_directory("link")

    def test_list_excludes_hidden(self, populated):
        """Test that hidden entries are excluded by default."""
        names = [r.name for r in populated.list("docs")]

        assert names == ["a.txt", "b.md", "img"]

    def test_list_show_hidden(self, populated):
        """Test that show_hidden includes hidden entries."""
        names = [r.name for r in populated.list("docs", show_hidden=True)]

        assert names == [".hidden", "a.txt", "b.md", "img"]

    def test_list_glob(self, populated):
        """Test filtering by glob pattern."""
        listed = populated.list("docs", glob="*.txt")

        assert [r.repository_path for r in listed] == ["docs/a.txt"]

    def test_list_root(self, populated):
        """Test listing the root produces top-level repository paths."""
        assert [r.repository_path for r in populated.list("")] == ["docs", "top.txt"]

    def test_list_is_not_recursive(self, populated):
        """Test that only direct children are listed."""
        assert "docs/img/logo.png" not in [r.repository_path for r in populated.list("docs")]

    def test_list_file_is_invalid_type(self, populated):
        """Test listing a file."""
        with pytest.raises(RepositoryError) as exc_info:
            populated.list("top.txt")

        assert_kind(exc_info, ErrorKind.INVALID_RESOURCE_TYPE)

    def test_list_missing_is_not_accessible(self, repo):
        """Test listing a missing path."""
        with pytest.raises(RepositoryError) as exc_info:
            repo.list("missing")

        assert_kind(exc_info, ErrorKind.RESOURCE_NOT_ACCESSIBLE)


# =============================================================================
# Content
# =============================================================================

class TestContent:
    """Test reading and writing content."""

    def test_round_trip(self, repo):
        """Test that written bytes are read back identically."""
        content = bytes(range(256)) * 10

        snapshot = repo.set_content("data.bin", content)

        assert snapshot.size == len(content)
        with repo.get_content_stream("data.bin") as stream:
            assert stream.read() == content

    def test_set_content_from_stream(self, repo):
        """Test writing from a binary stream."""
        repo.set_content("s.txt", io.BytesIO(b"streamed"))

        assert (repo.root / "s.txt").read_bytes() == b"streamed"

    def test_set_content_replaces(self, repo):
        """Test that existing content is replaced, not appended."""
        repo.set_content("f.txt", b"a much longer first version")
        snapshot = repo.set_content("f.txt", b"short")

        assert snapshot.size == 5
        assert (repo.root / "f.txt").read_bytes() == b"short"

    def test_set_content_leaves_no_temporary_files(self, repo):
        """Test that the atomic write cleans up after itself."""
        repo.set_content("f.txt", b"x")

        assert [p.name for p in repo.root.iterdir()] == ["f.txt"]

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permission bits")
    def test_set_content_keeps_existing_mode(self, repo):
        """Test that replacing content keeps the permission bits of the file."""
        existing = repo.root / "f.txt"
        existing.write_bytes(b"old")
        existing.chmod(0o644)

        repo.set_content("f.txt", b"new")

        assert stat.S_IMODE(existing.stat().st_mode) == 0o644

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permission bits")
    def test_set_content_new_file_follows_umask(self, repo):
        """Test that a new file gets the default mode for the current umask."""
        previous = os.umask(0o022)
        try:
            repo.set_content("g.txt", b"new")
        finally:
            os.umask(previous)

        assert stat.S_IMODE((repo.root / "g.txt").stat().st_mode) == 0o644

    def test_set_content_missing_parent(self, repo):
        """Test that a missing parent is not accessible without create_parents."""
        with pytest.raises(RepositoryError) as exc_info:
            repo.set_content("no/parent/f.txt", b"x")

        assert_kind(exc_info, ErrorKind.RESOURCE_NOT_ACCESSIBLE)

    def test_set_content_on_directory(self, populated):
        """Test that a directory cannot receive content."""
        with pytest.raises(RepositoryError) as exc_info:
            populated.set_content("docs", b"x")

        assert_kind(exc_info, ErrorKind.INVALID_RESOURCE_TYPE)

    def test_get_content(self, populated):
        """Test copying content into a caller stream."""
        out = io.BytesIO()

        written = populated.get_content("docs/a.txt", out)

        assert written == 5
        assert out.getvalue() == b"alpha"

    def test_get_content_stream_missing(self, repo):
        """Test reading a missing resource."""
        with pytest.raises(RepositoryError) as exc_info:
            repo.get_content_stream("missing.txt")

        assert_kind(exc_info, ErrorKind.RESOURCE_NOT_ACCESSIBLE)

    def test_get_content_stream_directory(self, populated):
        """Test reading a directory."""
        with pytest.raises(RepositoryError) as exc_info:
            populated.get_content_stream("docs")

        assert_kind(exc_info, ErrorKind.INVALID_RESOURCE_TYPE)

    def test_get_output_stream_creates_parents(self, repo):
        """Test that the output stream creates missing parents."""
        with repo.get_output_stream("deep/er/out.txt") as stream:
            stream.write(b"out")

        assert (repo.root / "deep" / "er" / "out.txt").read_bytes() == b"out"


# =============================================================================
# Creation and Delete
# =============================================================================

class TestCreateAndDelete:
    """Test create_directories, create_file and delete."""

    def test_create_directories_is_idempotent(self, repo):
        """Test that creating the same directories twice succeeds."""
        first = repo.create_directories("a/b/c")
        second = repo.create_directories("a/b/c")

        assert first.is_directory and second.is_directory
        assert first.repository_path == second.repository_path == "a/b/c"

    def test_create_directories_over_file(self, populated):
        """Test that a file in the way fails."""
        with pytest.raises(RepositoryError):
            populated.create_directories("top.txt/sub")

    def test_create_file(self, repo):
        """Test creating an empty file."""
        snapshot = repo.create_file("empty.txt")

        assert snapshot.is_file
        assert snapshot.size == 0

    def test_create_file_existing_fails(self, populated):
        """Test that create_file refuses to overwrite."""
        with pytest.raises(RepositoryError) as exc_info:
            populated.create_file("top.txt")

        assert_kind(exc_info, ErrorKind.IO_FAILURE)
        assert (populated.root / "top.txt").read_bytes() == b"top"

    def test_delete_file(self, populated):
        """Test deleting a single file."""
        populated.delete("top.txt")

        assert not populated.exists("top.txt")

    def test_delete_tree(self, populated):
        """Test that every descendant is removed."""
        descendants = ["docs/a.txt", "docs/.hidden", "docs/img", "docs/img/logo.png"]

        populated.delete("docs")

        assert not populated.exists("docs")
        for path in descendants:
            assert not populated.exists(path)
        assert populated.exists("top.txt")

    def test_delete_missing(self, repo):
        """Test deleting a missing path."""
        with pytest.raises(RepositoryError) as exc_info:
            repo.delete("missing")

        assert_kind(exc_info, ErrorKind.RESOURCE_NOT_ACCESSIBLE)

    @pytest.mark.parametrize("path", ["", "/", "docs/.."])
    def test_delete_root_refused(self, populated, path):
        """Test that the root cannot be deleted."""
        with pytest.raises(RepositoryError) as exc_info:
            populated.delete(path)

        assert_kind(exc_info, ErrorKind.RESOURCE_NOT_ACCESSIBLE)
        assert populated.root.is_dir()


# =============================================================================
# Copy and Move
# =============================================================================

class TestCopy:
    """Test copy."""

    def test_copy_file_to_new_path(self, populated):
        """Test copying a file to an exact destination."""
        snapshot = populated.copy("top.txt", "copy.txt")

        assert snapshot.repository_path == "copy.txt"
        assert (populated.root / "copy.txt").read_bytes() == b"top"

    def test_copy_file_into_directory(self, populated):
        """Test copying a file into an existing directory."""
        snapshot = populated.copy("top.txt", "docs")

        assert snapshot.repository_path == "docs/top.txt"
        assert snapshot.is_file

    def test_copy_file_overwrites(self, populated):
        """Test that copies replace existing files."""
        populated.copy("top.txt", "docs/a.txt")

        assert (populated.root / "docs" / "a.txt").read_bytes() == b"top"

    def test_copy_directory_into_existing_directory(self, populated):
        """Test that a directory lands under its own name."""
        populated.create_directories("backup")

        snapshot = populated.copy("docs", "backup")

        assert snapshot.repository_path == "backup/docs"
        assert (populated.root / "backup" / "docs" / "img" / "logo.png").read_bytes() == b"\x89PNG"

    def test_copy_directory_to_new_target(self, populated):
        """Test that a directory copied to a missing target becomes the target."""
        snapshot = populated.copy("docs", "docs-copy")

        assert snapshot.repository_path == "docs-copy"
        assert (populated.root / "docs-copy" / "a.txt").read_bytes() == b"alpha"

    def test_copy_preserves_file_count_and_source(self, populated):
        """Test that a recursive copy reproduces every file and leaves the source alone."""
        source = populated.root / "docs"
        before = {p.relative_to(source): p.read_bytes() for p in source.rglob("*") if p.is_file()}

        populated.copy("docs", "fresh")

        target = populated.root / "fresh"
        after = {p.relative_to(target): p.read_bytes() for p in target.rglob("*") if p.is_file()}
        assert after == before
        assert {p.relative_to(source): p.read_bytes() for p in source.rglob("*") if p.is_file()} == before

    def test_copy_directory_target_parent_missing(self, populated):
        """Test that a target that cannot be created fails instead of copying nothing."""
        with pytest.raises(RepositoryError) as exc_info:
            populated.copy("docs", "missing/parent/x")

        assert_kind(exc_info, ErrorKind.RESOURCE_NOT_ACCESSIBLE)
        assert not populated.exists("missing")

    def test_copy_directory_onto_file(self, populated):
        """Test copying a directory onto a file target."""
        with pytest.raises(RepositoryError) as exc_info:
            populated.copy("docs", "top.txt")

        assert_kind(exc_info, ErrorKind.INVALID_RESOURCE_TYPE)

    def test_copy_directory_into_itself(self, populated):
        """Test that copying a directory into its own subtree is refused."""
        with pytest.raises(RepositoryError) as exc_info:
            populated.copy("docs", "docs/img")

        assert_kind(exc_info, ErrorKind.INVALID_RESOURCE_TYPE)

    def test_copy_missing_source(self, repo):
        """Test copying a missing source."""
        with pytest.raises(RepositoryError) as exc_info:
            repo.copy("missing", "target")

        assert_kind(exc_info, ErrorKind.RESOURCE_NOT_ACCESSIBLE)


class TestMove:
    """Test move."""

    def test_rename(self, populated):
        """Test moving to an exact destination."""
        snapshot = populated.move("top.txt", "renamed.txt")

        assert snapshot.repository_path == "renamed.txt"
        assert not populated.exists("top.txt")
        assert (populated.root / "renamed.txt").read_bytes() == b"top"

    def test_move_into_directory(self, populated):
        """Test moving into an existing directory."""
        snapshot = populated.move("top.txt", "docs")

        assert snapshot.repository_path == "docs/top.txt"
        assert not populated.exists("top.txt")

    def test_move_replaces_existing_file(self, populated):
        """Test that an existing destination file is replaced."""
        populated.move("top.txt", "docs/a.txt")

        assert (populated.root / "docs" / "a.txt").read_bytes() == b"top"

    def test_move_directory(self, populated):
        """Test moving a whole directory."""
        populated.move("docs", "archive")

        assert populated.exists_file("archive/img/logo.png")
        assert not populated.exists("docs")

    def test_move_missing_source(self, repo):
        """Test moving a missing source."""
        with pytest.raises(RepositoryError) as exc_info:
            repo.move("missing", "target")

        assert_kind(exc_info, ErrorKind.RESOURCE_NOT_ACCESSIBLE)

    def test_move_root_refused(self, populated):
        """Test that the root cannot be moved."""
        with pytest.raises(RepositoryError) as exc_info:
            populated.move("", "elsewhere")

        assert_kind(exc_info, ErrorKind.RESOURCE_NOT_ACCESSIBLE)

    def test_cross_device_fallback(self, populated, monkeypatch):
        """Test that EXDEV falls back to copy and delete."""
        def cross_device(src, dst):
            raise OSError(errno.EXDEV, "Invalid cross-device link")

        monkeypatch.setattr("filerepo.repository.core.os.replace", cross_device)

        populated.move("docs", "moved")

        assert populated.exists_file("moved/a.txt")
        assert not populated.exists("docs")


# =============================================================================
# Archives
# =============================================================================

class TestArchives:
    """Test zip and unzip."""

    def test_zip_and_unzip_round_trip(self, populated):
        """Test that extracting an archive reproduces every file."""
        populated.zip("docs", "docs.zip")

        snapshot = populated.unzip("docs.zip", "out")

        assert snapshot.repository_path == "out"
        assert snapshot.is_directory
        source = populated.root / "docs"
        extracted = populated.root / "out" / "docs"
        for path in source.rglob("*"):
            if path.is_file():
                assert (extracted / path.relative_to(source)).read_bytes() == path.read_bytes()

    def test_zip_multiple_sources(self, populated):
        """Test zipping several sources into one archive."""
        snapshot = populated.zip(["docs/a.txt", "top.txt"], "pair.zip")

        assert snapshot.is_file
        with zipfile.ZipFile(populated.root / "pair.zip") as zf:
            assert sorted(zf.namelist()) == ["a.txt", "top.txt"]

    def test_zip_missing_source(self, populated):
        """Test that a missing source is not accessible and nothing is written."""
        with pytest.raises(RepositoryError) as exc_info:
            populated.zip(["top.txt", "missing"], "out.zip")

        assert_kind(exc_info, ErrorKind.RESOURCE_NOT_ACCESSIBLE)
        assert not populated.exists("out.zip")

    def test_zip_onto_directory(self, populated):
        """Test that the archive path cannot be a directory."""
        with pytest.raises(RepositoryError) as exc_info:
            populated.zip("top.txt", "docs")

        assert_kind(exc_info, ErrorKind.INVALID_RESOURCE_TYPE)

    def test_unzip_corrupt_archive(self, populated):
        """Test that a corrupt archive is an I/O failure."""
        with pytest.raises(RepositoryError) as exc_info:
            populated.unzip("top.txt", "out")

        assert_kind(exc_info, ErrorKind.IO_FAILURE)
        assert isinstance(exc_info.value.cause, zipfile.BadZipFile)

    def test_unzip_missing_archive(self, repo):
        """Test extracting a missing archive."""
        with pytest.raises(RepositoryError) as exc_info:
            repo.unzip("missing.zip", "out")

        assert_kind(exc_info, ErrorKind.RESOURCE_NOT_ACCESSIBLE)

    def test_unzip_onto_file(self, populated):
        """Test that the destination must be a directory."""
        populated.zip("docs", "docs.zip")

        with pytest.raises(RepositoryError) as exc_info:
            populated.unzip("docs.zip", "top.txt")

        assert_kind(exc_info, ErrorKind.INVALID_RESOURCE_TYPE)


# =============================================================================
# End-to-end
# =============================================================================

class TestScenario:
    """Walk through a typical session."""

    def test_session(self, tmp_path):
        """Test directories, content, zip, list and delete together."""
        repo = FileRepository.local(tmp_path / "repo")

        created = repo.create_directories("a/b")
        assert created.repository_path == "a/b"
        assert created.is_directory

        written = repo.set_content("a/b/f.txt", b"hello")
        assert written.size == 5

        repo.zip("a", "a.zip")
        assert "a.zip" in [r.name for r in repo.list("", show_hidden=False)]

        repo.delete("a")
        assert not repo.exists("a")
        assert repo.exists("a.zip")


# =============================================================================
# Logging
# =============================================================================

class TestLogging:
    """Test log output of the facade."""

    def test_mutations_logged_at_info(self, repo, caplog):
        """Test that mutating operations log at info level."""
        with caplog.at_level(logging.INFO, logger="filerepo"):
            repo.create_directories("logged")

        assert any(
            record.levelno == logging.INFO and "logged" in record.getMessage()
            for record in caplog.records
        )

    def test_failures_logged_at_error(self, repo, caplog):
        """Test that failures are logged before being raised."""
        with caplog.at_level(logging.ERROR, logger="filerepo"):
            with pytest.raises(RepositoryError):
                repo.delete("missing")

        assert any(record.levelno == logging.ERROR for record in caplog.records)
