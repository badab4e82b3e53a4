"""Tests for agency.json metadata storage."""
# pylint: disable=redefined-outer-name

import json
import os
import subprocess

import pytest

from agency.emit.errors import MetadataError
from agency.emit.models import BranchMetadata
from agency.emit.storage import MetadataStorage, directory_prefix, is_glob_pattern
from fixtures.git_fixtures import git, write_metadata


@pytest.fixture
def storage(tmp_path):
    """Create a storage instance over a plain directory."""
    return MetadataStorage(tmp_path)


class TestGlobHelpers:
    """Tests for glob helper functions."""

    @pytest.mark.parametrize(
        "pattern,expected",
        [("AGENTS.md", False), ("*.md", True), ("plans/**", True), ("file[12].md", True)],
    )
    def test_is_glob_pattern(self, pattern, expected):
        """Test glob character detection."""
        assert is_glob_pattern(pattern) is expected

    @pytest.mark.parametrize(
        "pattern,expected",
        [
            ("plans/**", "plans/"),
            ("plans/**/", "plans/"),
            ("docs/agent/**", "docs/agent/"),
            ("plans/*.md", None),
            ("*/**", None),
            ("AGENTS.md", None),
        ],
    )
    def test_directory_prefix(self, pattern, expected):
        """Test whole-directory glob detection."""
        assert directory_prefix(pattern) == expected


class TestMetadataStorage:
    """Tests for MetadataStorage class."""

    def test_read_missing_returns_none(self, storage):
        """Test reading when agency.json does not exist."""
        assert storage.read() is None

    def test_write_and_read(self, storage, tmp_path):
        """Test that written metadata is read back."""
        metadata = BranchMetadata(managed_files=["AGENTS.md"], base_branch="main")

        storage.write(metadata)

        assert (tmp_path / "agency.json").read_text().endswith("}\n")
        assert storage.read() == metadata

    def test_write_to_explicit_path(self, storage, tmp_path):
        """Test writing metadata somewhere other than the repository root."""
        target = tmp_path / "elsewhere.json"

        storage.write(BranchMetadata(), target)

        assert json.loads(target.read_text())["version"] == 1
        assert storage.read() is None

    @pytest.mark.parametrize(
        "content",
        ["not json", "[]", '{"version": 99, "managedFiles": []}', '{"version": 1, "managedFiles": 3}'],
    )
    def test_corrupt_metadata_reads_as_absent(self, storage, tmp_path, content):
        """Test that invalid agency.json is treated as missing."""
        (tmp_path / "agency.json").write_text(content)

        assert storage.read() is None

    def test_set_base_branch(self, storage):
        """Test updating the base branch."""
        storage.write(BranchMetadata(managed_files=["AGENTS.md"]))

        storage.set_base_branch("origin/main")

        assert storage.get_base_branch() == "origin/main"
        assert storage.read().managed_files == ["AGENTS.md"]

    def test_set_base_branch_without_metadata(self, storage):
        """Test set_base_branch fails when agency.json is missing."""
        with pytest.raises(MetadataError, match="not found"):
            storage.set_base_branch("main")

    def test_set_base_branch_with_invalid_metadata(self, storage, tmp_path):
        """Test set_base_branch fails when agency.json is corrupt."""
        (tmp_path / "agency.json").write_text("{")

        with pytest.raises(MetadataError, match="invalid"):
            storage.set_base_branch("main")

    def test_get_base_branch_missing(self, storage):
        """Test get_base_branch without metadata."""
        assert storage.get_base_branch() is None


class TestFilesToFilter:
    """Tests for MetadataStorage.get_files_to_filter."""

    def test_defaults_without_metadata(self, storage):
        """Test that tool-owned files are filtered even without metadata."""
        assert storage.get_files_to_filter() == ["TASK.md", "AGENCY.md", "agency.json"]

    def test_includes_managed_files(self, storage):
        """Test managed files follow the tool-owned files."""
        storage.write(BranchMetadata(managed_files=["AGENTS.md", "CLAUDE.md"]))

        assert storage.get_files_to_filter() == [
            "TASK.md",
            "AGENCY.md",
            "agency.json",
            "AGENTS.md",
            "CLAUDE.md",
        ]

    def test_uses_given_metadata(self, storage):
        """Test passing metadata avoids reading from disk."""
        files = storage.get_files_to_filter(BranchMetadata(managed_files=["NOTES.md"]))

        assert files[-1] == "NOTES.md"

    def test_directory_glob_kept_as_prefix(self, storage, tmp_path):
        """Test whole-directory globs are passed as directory prefixes."""
        (tmp_path / "plans").mkdir()
        (tmp_path / "plans" / "a.md").write_text("a")

        files = storage.get_files_to_filter(BranchMetadata(managed_files=["plans/**"]))

        assert "plans/" in files
        assert "plans/a.md" not in files

    def test_other_globs_expanded(self, storage, tmp_path):
        """Test file globs are expanded against the working tree."""
        (tmp_path / "notes").mkdir()
        (tmp_path / "notes" / "b.md").write_text("b")
        (tmp_path / "notes" / "a.md").write_text("a")
        (tmp_path / "notes" / "keep.txt").write_text("c")

        files = storage.get_files_to_filter(BranchMetadata(managed_files=["notes/*.md"]))

        assert files[3:] == ["notes/a.md", "notes/b.md"]

    def test_unmatched_glob_adds_nothing(self, storage):
        """Test a glob matching nothing contributes no paths."""
        files = storage.get_files_to_filter(BranchMetadata(managed_files=["missing/*.md"]))

        assert files == ["TASK.md", "AGENCY.md", "agency.json"]

    @pytest.mark.skipif(os.name == "nt", reason="symlinks need privileges on Windows")
    def test_symlink_target_added(self, storage, tmp_path):
        """Test the target of a managed symlink is filtered too."""
        (tmp_path / "AGENTS.md").write_text("# Agents\n")
        os.symlink("AGENTS.md", tmp_path / "CLAUDE.md")

        files = storage.get_files_to_filter(BranchMetadata(managed_files=["CLAUDE.md"]))

        assert files[-2:] == ["CLAUDE.md", "AGENTS.md"]

    @pytest.mark.skipif(os.name == "nt", reason="symlinks need privileges on Windows")
    def test_symlink_outside_repo_ignored(self, tmp_path):
        """Test a symlink pointing outside the repository adds nothing."""
        repo = tmp_path / "repo"
        repo.mkdir()
        (tmp_path / "outside.md").write_text("outside\n")
        os.symlink(tmp_path / "outside.md", repo / "CLAUDE.md")
        storage = MetadataStorage(repo)

        files = storage.get_files_to_filter(BranchMetadata(managed_files=["CLAUDE.md"]))

        assert files[-1] == "CLAUDE.md"


class TestReadFromBranch:
    """Tests for reading metadata committed on other branches."""

    def test_read_from_branch(self, git_repo):
        """Test reading agency.json from a branch that is not checked out."""
        git(git_repo, "checkout", "-b", "agency--feature")
        write_metadata(git_repo, ["AGENTS.md"], emit_branch_name="feature")
        git(git_repo, "checkout", "main")
        storage = MetadataStorage(git_repo)

        metadata = storage.read("agency--feature")

        assert metadata is not None
        assert metadata.managed_files == ["AGENTS.md"]
        assert metadata.emit_branch_name == "feature"
        assert storage.read() is None

    def test_read_from_branch_without_metadata(self, git_repo):
        """Test reading from a branch without agency.json."""
        assert MetadataStorage(git_repo).read_from_branch("main") is None

    def test_read_from_branch_with_corrupt_metadata(self, git_repo):
        """Test corrupt committed metadata reads as absent."""
        (git_repo / "agency.json").write_text("{broken")
        subprocess.run(["git", "add", "agency.json"], cwd=git_repo, check=True)
        subprocess.run(["git", "commit", "-m", "broken"], cwd=git_repo, check=True, capture_output=True)

        assert MetadataStorage(git_repo).read_from_branch("main") is None
