"""History rewriting through git-filter-repo.

Two rules are applied in a single git-filter-repo pass over a commit range:

* path stripping: ``--path ... --invert-paths`` removes every managed path
  from each commit in the range, so at the new tip each such path is back to
  its merge-base content (or gone if it did not exist there). Commits left
  empty are pruned by git-filter-repo.
* commit dropping: a ``--commit-callback`` clears the file changes of any
  commit whose message has a line equal to the removal marker. The emptied
  commit is then pruned, so its children are re-parented onto its first
  parent. Pruning resets the branch ref even when every commit in the range
  is dropped, which ``commit.skip`` would not.

git-filter-repo keeps state under ``<git-dir>/filter-repo`` and refuses to
run again while it is there, so ``clear_state`` must precede every rewrite.
"""

import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .branch_manager import BranchManager, run_command
from .constants import FILTER_REPO_COMMAND, FILTER_REPO_STATE_DIR, REMOVE_COMMIT_MARKER
from .errors import FilterRepoError, FilterRepoNotInstalledError
from .models import CommitRange

logger = logging.getLogger(__name__)


def install_hint() -> str:
    """Get platform-specific install instructions for git-filter-repo."""
    if sys.platform == "darwin":
        return "Please install it via Homebrew: brew install git-filter-repo"
    return (
        "Please install it with 'pip install git-filter-repo' or your package manager. "
        "See: https://github.com/newren/git-filter-repo/blob/main/INSTALL.md"
    )


def build_commit_callback(marker: str = REMOVE_COMMIT_MARKER) -> str:
    """Render the --commit-callback body that drops markered commits.

    git-filter-repo wraps the body in a function taking ``commit`` and
    ``metadata``; ``commit.message`` is bytes.
    """
    token = marker.strip().encode("utf-8")
    return (
        "for line in commit.message.splitlines():\n"
        f"    if line.strip() == {token!r}:\n"
        "        commit.file_changes = []\n"
        "        break\n"
    )


def message_has_marker(message: str, marker: str = REMOVE_COMMIT_MARKER) -> bool:
    """Check a commit message the same way the commit callback does."""
    token = marker.strip()
    return any(line.strip() == token for line in message.splitlines())


class HistoryRewriter:
    """Rewrites a commit range with git-filter-repo."""

    def __init__(
        self,
        branch_manager: Optional[BranchManager] = None,
        command: str = FILTER_REPO_COMMAND,
    ):
        """Initialize history rewriter."""
        self.branch_manager = branch_manager or BranchManager()
        self.command = command

    def find_executable(self) -> Optional[str]:
        """Locate git-filter-repo on PATH."""
        return shutil.which(self.command)

    def is_installed(self) -> bool:
        return self.find_executable() is not None

    def ensure_installed(self) -> str:
        """Return the git-filter-repo executable or fail with an install hint."""
        executable = self.find_executable()
        if executable is None:
            raise FilterRepoNotInstalledError(
                f"{self.command} is not installed.", install_hint()
            )
        return executable

    def clear_state(self, repo_root: Path) -> None:
        """Remove leftover git-filter-repo state from a previous run."""
        state_dir = self.branch_manager.get_git_dir(repo_root) / FILTER_REPO_STATE_DIR
        if state_dir.exists():
            shutil.rmtree(state_dir)
            logger.debug(f"Removed previous git-filter-repo state at {state_dir}")

    def build_args(
        self,
        paths: Sequence[str],
        commit_range: CommitRange,
        drop_marker: Optional[str] = REMOVE_COMMIT_MARKER,
    ) -> List[str]:
        """Build the git-filter-repo argument list (without the executable)."""
        if not paths:
            raise ValueError("At least one path is required to filter")

        args: List[str] = []
        for path in paths:
            args.extend(["--path", path])
        args.extend(["--invert-paths", "--force", "--refs", str(commit_range)])
        if drop_marker:
            args.extend(["--commit-callback", build_commit_callback(drop_marker)])
        return args

    def rewrite(
        self,
        repo_root: Path,
        paths: Sequence[str],
        commit_range: CommitRange,
        drop_marker: Optional[str] = REMOVE_COMMIT_MARKER,
    ) -> subprocess.CompletedProcess:
        """Strip paths from, and drop markered commits in, commit_range.

        The branch named by the range is updated in place; no other ref moves.
        """
        executable = self.ensure_installed()
        cmd = [executable] + self.build_args(paths, commit_range, drop_marker)

        # Isolate from the invoking user's global git config
        env = {"GIT_CONFIG_GLOBAL": os.devnull}

        logger.info(f"Rewriting {commit_range} without {', '.join(paths)}")
        result = run_command(cmd, repo_root, env=env)
        logger.debug(f"git-filter-repo output: {result.stdout}")

        if result.returncode != 0:
            logger.error(f"git-filter-repo failed: {result.stderr}")
            raise FilterRepoError(result.returncode, result.stderr)

        return result
