"""Source and emit branch naming.

A source branch name is built from a clean branch name with the source
pattern (default ``agency--%branch%``); the emit branch name with the emit
pattern (default ``%branch%``, i.e. the clean name itself). A source pattern
without ``%branch%`` is a prefix; an emit pattern without it is a suffix.

``BranchResolver`` works out which of the pair the current branch is. The
agency.json metadata is consulted before falling back to pattern matching:

1. The current branch's metadata names a different emit branch: we are on
   the source branch.
2. Another local branch's metadata names the current branch as its emit
   branch: we are on that branch's emit branch.
3. The emit pattern is the bare ``%branch%`` and the patterned source
   branch exists: we are on the emit branch.
4. Otherwise resolve from the patterns alone.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple

from .branch_manager import BranchManager
from .constants import BRANCH_PLACEHOLDER
from .models import BranchPair
from .storage import MetadataStorage

logger = logging.getLogger(__name__)


def _split_pattern(pattern: str) -> Optional[Tuple[str, str]]:
    parts = pattern.split(BRANCH_PLACEHOLDER)
    if len(parts) != 2:
        return None
    return parts[0], parts[1]


def _strip_affixes(name: str, prefix: str, suffix: str) -> Optional[str]:
    if len(name) <= len(prefix) + len(suffix):
        return None
    if not name.startswith(prefix) or not name.endswith(suffix):
        return None
    return name[len(prefix) : len(name) - len(suffix)]


def make_source_branch_name(clean_branch: str, pattern: str) -> str:
    """Apply the source pattern; a pattern without %branch% is a prefix."""
    if BRANCH_PLACEHOLDER in pattern:
        return pattern.replace(BRANCH_PLACEHOLDER, clean_branch, 1)
    return pattern + clean_branch


def extract_clean_branch(source_branch: str, pattern: str) -> Optional[str]:
    """Recover the clean name from a source branch, or None if it does not match."""
    if BRANCH_PLACEHOLDER in pattern:
        affixes = _split_pattern(pattern)
        if affixes is None:
            return None
        return _strip_affixes(source_branch, *affixes)
    return _strip_affixes(source_branch, pattern, "")


def make_emit_branch_name(clean_branch: str, pattern: str) -> str:
    """Apply the emit pattern; a pattern without %branch% is a suffix."""
    if pattern == BRANCH_PLACEHOLDER:
        return clean_branch
    if BRANCH_PLACEHOLDER in pattern:
        return pattern.replace(BRANCH_PLACEHOLDER, clean_branch, 1)
    return clean_branch + pattern


def extract_clean_from_emit(emit_branch: str, pattern: str) -> Optional[str]:
    """Recover the clean name from an emit branch, or None if it does not match."""
    if pattern == BRANCH_PLACEHOLDER:
        return emit_branch
    if BRANCH_PLACEHOLDER in pattern:
        affixes = _split_pattern(pattern)
        if affixes is None:
            return None
        return _strip_affixes(emit_branch, *affixes)
    return _strip_affixes(emit_branch, "", pattern)


def resolve_branch_pair(current_branch: str, source_pattern: str, emit_pattern: str) -> BranchPair:
    """Resolve the branch pair from naming patterns alone."""
    clean = extract_clean_branch(current_branch, source_pattern)
    if clean:
        return BranchPair(
            source_branch=current_branch,
            emit_branch=make_emit_branch_name(clean, emit_pattern),
        )

    # A bare %branch% emit pattern matches every name, so it cannot identify an emit branch
    if emit_pattern != BRANCH_PLACEHOLDER:
        clean = extract_clean_from_emit(current_branch, emit_pattern)
        if clean:
            return BranchPair(
                source_branch=make_source_branch_name(clean, source_pattern),
                emit_branch=current_branch,
                is_on_emit_branch=True,
            )

    # Branch predates the naming convention: treat its own name as the clean name
    return BranchPair(
        source_branch=current_branch,
        emit_branch=make_emit_branch_name(current_branch, emit_pattern),
    )


class BranchResolver:
    """Resolves source/emit branch pairs using agency.json first, patterns second."""

    def __init__(
        self,
        repo_root: Path,
        source_pattern: str,
        emit_pattern: str,
        branch_manager: Optional[BranchManager] = None,
        storage: Optional[MetadataStorage] = None,
    ):
        """Initialize branch resolver."""
        self.repo_root = repo_root
        self.source_pattern = source_pattern
        self.emit_pattern = emit_pattern
        self.branch_manager = branch_manager or BranchManager()
        self.storage = storage or MetadataStorage(repo_root, self.branch_manager)

    def resolve(self, current_branch: str) -> BranchPair:
        """Resolve the pair the current branch belongs to."""
        for strategy in (
            self._from_current_metadata,
            self._from_other_branch_metadata,
            self._from_patterned_source_branch,
        ):
            pair = strategy(current_branch)
            if pair:
                logger.debug(f"Resolved {current_branch} via {strategy.__name__}: {pair}")
                return pair
        return resolve_branch_pair(current_branch, self.source_pattern, self.emit_pattern)

    def _from_current_metadata(self, current_branch: str) -> Optional[BranchPair]:
        metadata = self.storage.read()
        if not metadata or not metadata.emit_branch_name:
            return None
        # Metadata naming the current branch means it was copied onto the emit branch
        if metadata.emit_branch_name == current_branch:
            return None
        return BranchPair(source_branch=current_branch, emit_branch=metadata.emit_branch_name)

    def _from_other_branch_metadata(self, current_branch: str) -> Optional[BranchPair]:
        for branch in self.branch_manager.list_local_branches(self.repo_root):
            if branch == current_branch:
                continue
            metadata = self.storage.read_from_branch(branch)
            if metadata and metadata.emit_branch_name == current_branch:
                return BranchPair(
                    source_branch=branch, emit_branch=current_branch, is_on_emit_branch=True
                )
        return None

    def _from_patterned_source_branch(self, current_branch: str) -> Optional[BranchPair]:
        if self.emit_pattern != BRANCH_PLACEHOLDER:
            return None
        # The current branch may itself be a source branch
        if extract_clean_branch(current_branch, self.source_pattern):
            return None
        source = make_source_branch_name(current_branch, self.source_pattern)
        if self.branch_manager.local_branch_exists(self.repo_root, source):
            return BranchPair(source_branch=source, emit_branch=current_branch, is_on_emit_branch=True)
        return None
