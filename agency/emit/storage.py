"""Storage utilities for agency.json branch metadata."""

import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from .branch_manager import BranchManager
from .constants import METADATA_FILE, TOOL_OWNED_FILES
from .errors import MetadataError
from .models import BranchMetadata

logger = logging.getLogger(__name__)

GLOB_CHARS = set("*?[]")


def is_glob_pattern(pattern: str) -> bool:
    """Check if a path contains glob wildcards."""
    return any(ch in GLOB_CHARS for ch in pattern)


def directory_prefix(pattern: str) -> Optional[str]:
    """Return "dir/" for a whole-directory glob like "dir/**", else None."""
    normalized = pattern.rstrip("/")
    if normalized.endswith("/**"):
        base = normalized[: -len("/**")]
        if base and not is_glob_pattern(base):
            return base + "/"
    return None


def parse_metadata(content: str) -> Optional[BranchMetadata]:
    """Parse agency.json content, treating anything invalid as absent."""
    try:
        return BranchMetadata.from_dict(json.loads(content))
    except (json.JSONDecodeError, ValueError, TypeError) as e:
        logger.warning(f"Ignoring invalid {METADATA_FILE}: {e}")
        return None


class MetadataStorage:
    """Reads and writes the agency.json record of a repository."""

    def __init__(self, repo_root: Path, branch_manager: Optional[BranchManager] = None):
        """Initialize metadata storage."""
        self.repo_root = Path(repo_root)
        self.branch_manager = branch_manager or BranchManager()

    @property
    def metadata_path(self) -> Path:
        return self.repo_root / METADATA_FILE

    def read(self, ref: Optional[str] = None) -> Optional[BranchMetadata]:
        """Read metadata from the working tree, or from a branch if ref is given."""
        if ref is not None:
            return self.read_from_branch(ref)

        if not self.metadata_path.exists():
            return None
        try:
            content = self.metadata_path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to read {self.metadata_path}: {e}")
            return None
        return parse_metadata(content)

    def read_from_branch(self, branch: str) -> Optional[BranchMetadata]:
        """Read metadata committed on a branch without checking it out."""
        content = self.branch_manager.show_file(self.repo_root, branch, METADATA_FILE)
        if content is None:
            return None
        return parse_metadata(content)

    def write(self, metadata: BranchMetadata, path: Optional[Path] = None) -> None:
        """Write metadata to disk."""
        target = path or self.metadata_path
        try:
            with open(target, "w", encoding="utf-8") as f:
                json.dump(metadata.to_dict(), f, indent=2)
                f.write("\n")
        except OSError as e:
            raise MetadataError(f"Failed to write {target}: {e}") from e

    def set_base_branch(self, base_branch: str) -> BranchMetadata:
        """Record the base branch in the existing metadata."""
        if not self.metadata_path.exists():
            raise MetadataError(
                f"{METADATA_FILE} not found.",
                "Run 'agency task' first to initialize backpack files.",
            )
        metadata = self.read()
        if metadata is None:
            raise MetadataError(
                f"{METADATA_FILE} is invalid.",
                "Run 'agency task' first to initialize backpack files.",
            )
        metadata.base_branch = base_branch
        self.write(metadata)
        return metadata

    def get_base_branch(self) -> Optional[str]:
        """Get the base branch recorded in metadata, if any."""
        metadata = self.read()
        return metadata.base_branch if metadata else None

    def get_files_to_filter(self, metadata: Optional[BranchMetadata] = None) -> List[str]:
        """Get the paths to strip on emit.

        Tool-owned files are always included. Managed glob patterns are
        expanded against the working tree, except whole-directory globs
        ("plans/**") which are kept as a directory prefix ("plans/") so files
        that only existed earlier in history are stripped too. Symlink targets
        inside the repository are added alongside their links.
        """
        if metadata is None:
            metadata = self.read()
        patterns = metadata.all_managed_files() if metadata else list(TOOL_OWNED_FILES)

        files: List[str] = []
        for pattern in patterns:
            prefix = directory_prefix(pattern)
            if prefix:
                expanded = [prefix]
            elif is_glob_pattern(pattern):
                expanded = sorted(
                    p.relative_to(self.repo_root).as_posix()
                    for p in self.repo_root.glob(pattern)
                    if p.is_file() and ".git" not in p.relative_to(self.repo_root).parts
                )
            else:
                expanded = [pattern]
            for path in expanded:
                if path not in files:
                    files.append(path)

        return self._with_symlink_targets(files)

    def _with_symlink_targets(self, files: List[str]) -> List[str]:
        """Add the in-repository target of every symlink in files."""
        result = list(files)
        for file in files:
            full_path = self.repo_root / file
            if not full_path.is_symlink():
                continue
            target = os.readlink(full_path)
            if os.path.isabs(target):
                relative = os.path.relpath(target, os.path.realpath(self.repo_root))
            else:
                target = os.path.normpath(os.path.join(os.path.dirname(full_path), target))
                relative = os.path.relpath(target, self.repo_root)
            if relative.startswith(".."):
                logger.debug(f"Symlink {file} points outside the repository, not filtering target")
                continue
            relative = Path(relative).as_posix()
            if relative not in result:
                result.append(relative)
        return result
