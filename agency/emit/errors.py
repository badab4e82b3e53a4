"""Error types for emit operations."""

from typing import Optional


class EmitError(RuntimeError):
    """Base class for emit failures, with an optional remediation hint."""

    def __init__(self, message: str, suggestion: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message} {self.suggestion}"
        return self.message


class PreconditionError(EmitError):
    """Something required is missing; nothing was mutated."""


class NotInGitRepoError(PreconditionError):
    """The working directory is not inside a git repository."""

    def __init__(self, path):
        super().__init__(
            f"Not a git repository: {path}",
            "Run this command from inside a git working tree.",
        )
        self.path = path


class FilterRepoNotInstalledError(PreconditionError):
    """git-filter-repo could not be found on PATH."""


class BaseBranchNotFoundError(PreconditionError):
    """An explicitly requested base branch does not exist."""

    def __init__(self, branch: str):
        super().__init__(
            f"Base branch {branch} does not exist.",
            "Check the branch name or fetch it from the remote first.",
        )
        self.branch = branch


class InvalidEmitBranchError(PreconditionError):
    """The emit branch would clobber the source branch."""


class ResolutionError(EmitError):
    """Required information could not be determined."""


class BaseBranchError(ResolutionError):
    """No base branch could be resolved."""


class MetadataError(ResolutionError):
    """agency.json is missing, invalid or could not be written."""


class FilterRepoError(EmitError):
    """git-filter-repo exited non-zero."""

    def __init__(self, returncode: int, stderr: str):
        super().__init__(f"git-filter-repo failed with exit code {returncode}: {stderr}")
        self.returncode = returncode
        self.stderr = stderr
