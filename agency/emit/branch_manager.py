"""Branch management for the emit engine."""

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from .errors import NotInGitRepoError

logger = logging.getLogger(__name__)


def run_command(
    cmd: List[str],
    cwd: Path,
    env: Optional[Dict[str, str]] = None,
    capture: bool = True,
) -> subprocess.CompletedProcess:
    """Run an external command without raising on a non-zero exit.

    Args:
        cmd: Full command line, executable first
        cwd: Directory to run in
        env: Extra environment variables, layered over the current environment
        capture: Whether to capture stdout/stderr (inherits the terminal if False)

    Returns:
        CompletedProcess result
    """
    logger.debug(f"Running: {' '.join(cmd)}")
    full_env = {**os.environ, **env} if env else None
    if capture:
        return subprocess.run(
            cmd, cwd=cwd, env=full_env, capture_output=True, text=True, check=False
        )
    return subprocess.run(cmd, cwd=cwd, env=full_env, check=False)


def run_git(
    args: List[str],
    cwd: Path,
    env: Optional[Dict[str, str]] = None,
    capture: bool = True,
) -> subprocess.CompletedProcess:
    """Run a git command; args exclude 'git' itself."""
    return run_command(["git"] + args, cwd, env=env, capture=capture)


class BranchManager:
    """Manages git branch operations."""

    def get_repo_root(self, path: Path) -> Path:
        """Get the top-level directory of the repository containing path."""
        try:
            result = subprocess.run(
                ["git", "rev-parse", "--show-toplevel"],
                cwd=path,
                capture_output=True,
                text=True,
                check=True,
            )
            return Path(result.stdout.strip())
        except (OSError, subprocess.CalledProcessError) as e:
            raise NotInGitRepoError(path) from e

    def get_git_dir(self, repo_path: Path) -> Path:
        """Get the absolute path of the repository's control directory."""
        try:
            result = subprocess.run(
                ["git", "rev-parse", "--absolute-git-dir"],
                cwd=repo_path,
                capture_output=True,
                text=True,
                check=True,
            )
            return Path(result.stdout.strip())
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to locate git directory: {e.stderr}")
            raise RuntimeError(f"Failed to locate git directory: {e.stderr}") from e

    def get_current_branch(self, repo_path: Path) -> str:
        """Get the name of the checked out branch."""
        try:
            result = subprocess.run(
                ["git", "symbolic-ref", "--short", "HEAD"],
                cwd=repo_path,
                capture_output=True,
                text=True,
                check=True,
            )
            return result.stdout.strip()
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to get current branch: {e.stderr}")
            raise RuntimeError(
                f"Failed to get current branch (detached HEAD?): {e.stderr}"
            ) from e

    def local_branch_exists(self, repo_path: Path, branch: str) -> bool:
        """Check if a branch exists locally."""
        try:
            result = subprocess.run(
                ["git", "show-ref", "--verify", "--quiet", f"refs/heads/{branch}"],
                cwd=repo_path,
                capture_output=True,
                text=True,
                check=False,
            )
            return result.returncode == 0
        except (OSError, subprocess.SubprocessError):
            return False

    def remote_tracking_branch_exists(self, repo_path: Path, branch: str) -> bool:
        """Check if a remote-tracking ref such as origin/main exists."""
        try:
            result = subprocess.run(
                ["git", "show-ref", "--verify", "--quiet", f"refs/remotes/{branch}"],
                cwd=repo_path,
                capture_output=True,
                text=True,
                check=False,
            )
            return result.returncode == 0
        except (OSError, subprocess.SubprocessError):
            return False

    def branch_exists(self, repo_path: Path, branch: str) -> bool:
        """Check if a local branch or a remote-tracking branch exists."""
        if self.local_branch_exists(repo_path, branch):
            return True
        return self.remote_tracking_branch_exists(repo_path, branch)

    def list_local_branches(self, repo_path: Path) -> List[str]:
        """Get list of local branch names."""
        try:
            result = subprocess.run(
                ["git", "for-each-ref", "--format=%(refname:short)", "refs/heads/"],
                cwd=repo_path,
                capture_output=True,
                text=True,
                check=True,
            )
            return [line for line in result.stdout.strip().split("\n") if line]
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to list branches: {e.stderr}")
            return []

    def create_local_branch(
        self, repo_path: Path, branch: str, start_point: str = "HEAD"
    ) -> None:
        """Create a new local branch without checking it out."""
        try:
            result = subprocess.run(
                ["git", "branch", branch, start_point],
                cwd=repo_path,
                capture_output=True,
                text=True,
                check=True,
            )
            logger.debug(f"Branch creation output: {result.stdout}")
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to create branch: {e.stderr}")
            raise RuntimeError(f"Failed to create branch: {e.stderr}") from e

    def delete_branch(self, repo_path: Path, branch: str, force: bool = True) -> None:
        """Delete a local branch."""
        try:
            result = subprocess.run(
                ["git", "branch", "-D" if force else "-d", branch],
                cwd=repo_path,
                capture_output=True,
                text=True,
                check=True,
            )
            logger.debug(f"Branch deletion output: {result.stdout}")
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to delete branch: {e.stderr}")
            raise RuntimeError(f"Failed to delete branch: {e.stderr}") from e

    def checkout_branch(self, repo_path: Path, branch: str) -> None:
        """Checkout a branch in a repository."""
        try:
            result = subprocess.run(
                ["git", "checkout", branch],
                cwd=repo_path,
                capture_output=True,
                text=True,
                check=True,
            )
            logger.debug(f"Checkout output: {result.stdout}")
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to checkout branch: {e.stderr}")
            raise RuntimeError(f"Failed to checkout branch: {e.stderr}") from e

    def get_merge_base(self, repo_path: Path, ref1: str, ref2: str) -> str:
        """Get the best common ancestor of two refs."""
        try:
            result = subprocess.run(
                ["git", "merge-base", ref1, ref2],
                cwd=repo_path,
                capture_output=True,
                text=True,
                check=True,
            )
            return result.stdout.strip()
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to compute merge-base of {ref1} and {ref2}: {e.stderr}")
            raise RuntimeError(
                f"Failed to compute merge-base of {ref1} and {ref2}: {e.stderr}"
            ) from e

    def get_default_remote_branch(self, repo_path: Path, remote: str = "origin") -> Optional[str]:
        """Get the branch the remote's HEAD points at, e.g. origin/main."""
        try:
            result = subprocess.run(
                ["git", "symbolic-ref", "--short", f"refs/remotes/{remote}/HEAD"],
                cwd=repo_path,
                capture_output=True,
                text=True,
                check=True,
            )
            # Output is like "origin/main"
            return result.stdout.strip() or None
        except subprocess.CalledProcessError:
            return None

    def get_config(self, repo_path: Path, key: str) -> Optional[str]:
        """Read a repository-local git config value."""
        result = run_git(["config", "--local", "--get", key], repo_path)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def set_config(self, repo_path: Path, key: str, value: str) -> None:
        """Write a repository-local git config value."""
        try:
            subprocess.run(
                ["git", "config", "--local", key, value],
                cwd=repo_path,
                capture_output=True,
                text=True,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to set {key}: {e.stderr}")
            raise RuntimeError(f"Failed to set {key}: {e.stderr}") from e

    def unset_config(self, repo_path: Path, key: str) -> None:
        """Remove a git config value; a missing key is not an error."""
        result = run_git(["config", "--unset", key], repo_path)
        logger.debug(f"Unset {key} (exit {result.returncode})")

    def show_file(self, repo_path: Path, ref: str, path: str) -> Optional[str]:
        """Get the contents of a file at a ref, or None if it does not exist there."""
        result = run_git(["show", f"{ref}:{path}"], repo_path)
        if result.returncode != 0:
            return None
        return result.stdout

    def commit_files(self, repo_path: Path, files: List[str], message: str) -> None:
        """Stage the given files and commit them."""
        try:
            subprocess.run(
                ["git", "add", "--", *files],
                cwd=repo_path,
                capture_output=True,
                text=True,
                check=True,
            )
            result = subprocess.run(
                ["git", "commit", "--no-verify", "-m", message],
                cwd=repo_path,
                capture_output=True,
                text=True,
                check=True,
            )
            logger.debug(f"Commit output: {result.stdout}")
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to commit {', '.join(files)}: {e.stderr}")
            raise RuntimeError(f"Failed to commit {', '.join(files)}: {e.stderr}") from e
