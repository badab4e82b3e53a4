"""Recording stand-in for HistoryRewriter.

Lets orchestration tests check which range and paths would be rewritten
without needing git-filter-repo installed.
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence

from agency.emit.errors import FilterRepoError, FilterRepoNotInstalledError
from agency.emit.models import CommitRange


class FilterRepoMock:
    """Records rewrite calls instead of running git-filter-repo.

    Usage:
        mock = FilterRepoMock()
        manager = EmitManager(repo, config, rewriter=mock)
        manager.emit(base_branch="main")
        assert mock.calls[-1]["range"].merge_base == ...
    """

    def __init__(self, installed: bool = True, fail_with: Optional[str] = None):
        """Initialize the mock."""
        self.installed = installed
        self.fail_with = fail_with
        self.calls: List[Dict] = []
        self.cleared: List[Path] = []

    def ensure_installed(self) -> str:
        if not self.installed:
            raise FilterRepoNotInstalledError("git-filter-repo is not installed.")
        return "/usr/bin/git-filter-repo"

    def clear_state(self, repo_root: Path) -> None:
        self.cleared.append(repo_root)

    def rewrite(
        self,
        repo_root: Path,
        paths: Sequence[str],
        commit_range: CommitRange,
        drop_marker: Optional[str] = None,
    ) -> None:
        self.calls.append(
            {
                "repo_root": repo_root,
                "paths": list(paths),
                "range": commit_range,
                "drop_marker": drop_marker,
            }
        )
        if self.fail_with is not None:
            raise FilterRepoError(1, self.fail_with)
