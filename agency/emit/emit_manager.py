"""Emit manager: publishes a clean copy of a source branch.

Emit Run
--------
Each run goes through the same steps, in order:

1. Preflight: resolve the repository root and make sure git-filter-repo
   is installed. Nothing has been touched yet.
2. Source resolution: if the current branch is an emit branch whose
   source branch exists, switch to the source branch.
3. Metadata backfill: if agency.json lacks emitBranchName, record it and
   commit the change on the source branch.
4. Base resolution: explicit argument, then agency.json baseBranch, then
   the repository's agency.baseBranch config, then origin/HEAD, then the
   configured candidate names.
5. Merge-base: recomputed every run, because the source branch may have
   been rebased since the last emit.
6. Branch recreation: the emit branch is deleted and recreated from the
   source tip. An already rewritten branch is never rewritten again.
7. State reset: git-filter-repo's control directory is removed.
8. Rewrite: managed paths are stripped and markered commits dropped over
   merge-base..emit-branch.
9. Restore: the source branch is checked out again.

Any failure after step 3 restores the source branch before the error
propagates. The emit branch is disposable; the next run rebuilds it.
"""

import logging
from pathlib import Path
from typing import Optional

from .branch_manager import BranchManager
from .branch_names import BranchResolver
from .config import EmitConfig, get_emit_config
from .constants import BASE_BRANCH_CONFIG_KEY, METADATA_FILE
from .errors import BaseBranchError, BaseBranchNotFoundError, InvalidEmitBranchError
from .filter_repo import HistoryRewriter
from .models import BranchMetadata, BranchPair, CommitRange, EmitResult
from .storage import MetadataStorage

logger = logging.getLogger(__name__)

BACKFILL_COMMIT_MESSAGE = "chore: agency emit"


class EmitManager:
    """Creates emit branches with backpack files stripped."""

    def __init__(
        self,
        path: Path,
        config: Optional[EmitConfig] = None,
        branch_manager: Optional[BranchManager] = None,
        storage: Optional[MetadataStorage] = None,
        rewriter: Optional[HistoryRewriter] = None,
    ):
        """Initialize emit manager for the repository containing path."""
        self.branch_manager = branch_manager or BranchManager()
        self.repo_root = self.branch_manager.get_repo_root(Path(path))
        self.config = config or get_emit_config()
        self.storage = storage or MetadataStorage(self.repo_root, self.branch_manager)
        self.rewriter = rewriter or HistoryRewriter(
            self.branch_manager, self.config.filter_repo_command
        )

    def _resolver(self) -> BranchResolver:
        return BranchResolver(
            self.repo_root,
            self.config.source_branch_pattern,
            self.config.emit_branch_pattern,
            branch_manager=self.branch_manager,
            storage=self.storage,
        )

    def resolve_branch_pair(self, current_branch: Optional[str] = None) -> BranchPair:
        """Resolve the source/emit pair for the current (or given) branch."""
        if current_branch is None:
            current_branch = self.branch_manager.get_current_branch(self.repo_root)
        return self._resolver().resolve(current_branch)

    def get_emit_branch_name(self, current_branch: Optional[str] = None) -> str:
        """Get the emit branch name for the current branch without changing anything."""
        return self.resolve_branch_pair(current_branch).emit_branch

    def set_default_base_branch(self, base_branch: str) -> None:
        """Set the repository-wide fallback base branch."""
        if not self.branch_manager.branch_exists(self.repo_root, base_branch):
            raise BaseBranchNotFoundError(base_branch)
        self.branch_manager.set_config(self.repo_root, BASE_BRANCH_CONFIG_KEY, base_branch)
        logger.info(f"Default base branch set to {base_branch}")

    def resolve_base_branch(
        self,
        override: Optional[str] = None,
        metadata: Optional[BranchMetadata] = None,
    ) -> str:
        """Resolve the base branch the source branch diverged from."""
        if override:
            if not self.branch_manager.branch_exists(self.repo_root, override):
                raise BaseBranchNotFoundError(override)
            return override

        if metadata is None:
            metadata = self.storage.read()

        candidates = [
            ("agency.json", metadata.base_branch if metadata else None),
            (
                "repository config",
                self.branch_manager.get_config(self.repo_root, BASE_BRANCH_CONFIG_KEY),
            ),
            ("origin/HEAD", self.branch_manager.get_default_remote_branch(self.repo_root)),
        ]
        candidates.extend(("common names", name) for name in self.config.base_branch_candidates)

        for source, branch in candidates:
            if not branch:
                continue
            if self.branch_manager.branch_exists(self.repo_root, branch):
                logger.debug(f"Base branch {branch} resolved from {source}")
                return branch
            logger.debug(f"Ignoring base branch {branch} from {source}: it does not exist")

        raise BaseBranchError(
            "Could not auto-detect base branch.",
            "Pass a base branch explicitly or set a repository default with "
            f"'git config {BASE_BRANCH_CONFIG_KEY} <branch>'.",
        )

    def emit(self, base_branch: Optional[str] = None, branch: Optional[str] = None) -> EmitResult:
        """Create (or recreate) the emit branch for the current source branch.

        Args:
            base_branch: Base branch to compare against; resolved automatically if None.
            branch: Emit branch name; derived from metadata or naming patterns if None.

        Returns:
            Description of the emitted branch.
        """
        self.rewriter.ensure_installed()

        current_branch = self.branch_manager.get_current_branch(self.repo_root)
        pair = self.resolve_branch_pair(current_branch)
        if pair.is_on_emit_branch and self.branch_manager.local_branch_exists(
            self.repo_root, pair.source_branch
        ):
            logger.info(
                f"Currently on emit branch {current_branch}, "
                f"switching to source branch {pair.source_branch}"
            )
            self.branch_manager.checkout_branch(self.repo_root, pair.source_branch)
            source_branch = pair.source_branch
        else:
            source_branch = current_branch

        metadata = self._ensure_emit_branch_in_metadata(source_branch, pair)
        emit_branch = branch or (metadata.emit_branch_name if metadata else None) or pair.emit_branch
        if emit_branch == source_branch:
            raise InvalidEmitBranchError(
                f"Emit branch name {emit_branch} is the same as the source branch.",
                "Use a source branch that follows the source naming pattern or pass an emit branch name.",
            )

        try:
            result = self._emit_from(source_branch, emit_branch, base_branch, metadata)
        except Exception:
            self._restore_branch(source_branch, strict=False)
            raise

        self._restore_branch(source_branch)
        logger.info(
            f"Created {emit_branch} from {source_branch} (stayed on {source_branch})"
        )
        return result

    def _emit_from(
        self,
        source_branch: str,
        emit_branch: str,
        base_override: Optional[str],
        metadata: Optional[BranchMetadata],
    ) -> EmitResult:
        base_branch = self.resolve_base_branch(base_override, metadata)
        logger.debug(f"Using base branch: {base_branch}")

        merge_base = self.branch_manager.get_merge_base(self.repo_root, source_branch, base_branch)
        logger.debug(f"Branch diverged at commit: {merge_base}")

        self._recreate_branch(source_branch, emit_branch)
        self.branch_manager.unset_config(self.repo_root, f"branch.{emit_branch}.remote")
        self.branch_manager.unset_config(self.repo_root, f"branch.{emit_branch}.merge")

        self.rewriter.clear_state(self.repo_root)

        paths = self.storage.get_files_to_filter(metadata)
        logger.debug(f"Files to filter: {', '.join(paths)}")

        commit_range = CommitRange(merge_base=merge_base, branch=emit_branch)
        self.rewriter.rewrite(
            self.repo_root, paths, commit_range, self.config.remove_commit_marker
        )

        return EmitResult(
            source_branch=source_branch,
            emit_branch=emit_branch,
            base_branch=base_branch,
            merge_base=merge_base,
            filtered_paths=paths,
        )

    def _ensure_emit_branch_in_metadata(
        self, source_branch: str, pair: BranchPair
    ) -> Optional[BranchMetadata]:
        """Backfill emitBranchName in agency.json and commit it on the source branch."""
        metadata = self.storage.read()
        if metadata is None or metadata.emit_branch_name:
            return metadata

        # The pair was resolved from the branch the user was on, which may have been the emit branch
        if pair.source_branch == source_branch:
            emit_branch = pair.emit_branch
        else:
            emit_branch = self.resolve_branch_pair(source_branch).emit_branch

        metadata.emit_branch_name = emit_branch
        self.storage.write(metadata)
        self.branch_manager.commit_files(self.repo_root, [METADATA_FILE], BACKFILL_COMMIT_MESSAGE)
        logger.info(f"Recorded emit branch {emit_branch} in {METADATA_FILE}")
        return metadata

    def _recreate_branch(self, source_branch: str, target_branch: str) -> None:
        """Delete target_branch if present and recreate it at the tip of source_branch."""
        if self.branch_manager.local_branch_exists(self.repo_root, target_branch):
            current = self.branch_manager.get_current_branch(self.repo_root)
            if current == target_branch:
                self.branch_manager.checkout_branch(self.repo_root, source_branch)
            self.branch_manager.delete_branch(self.repo_root, target_branch, force=True)
            logger.debug(f"Deleted existing emit branch {target_branch}")

        self.branch_manager.create_local_branch(self.repo_root, target_branch, source_branch)

    def _restore_branch(self, source_branch: str, strict: bool = True) -> None:
        """Check out source_branch again if something moved HEAD away from it.

        With strict=False a failure is logged instead of raised, so the error
        that triggered the restore is the one the caller sees.
        """
        try:
            current = self.branch_manager.get_current_branch(self.repo_root)
        except RuntimeError:
            current = None  # detached HEAD
        if current == source_branch:
            return
        try:
            self.branch_manager.checkout_branch(self.repo_root, source_branch)
        except RuntimeError as e:
            if strict:
                raise
            logger.warning(f"Failed to switch back to {source_branch}: {e}")
