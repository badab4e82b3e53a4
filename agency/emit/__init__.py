"""Emit engine: strips backpack files from a branch's history."""

from .branch_manager import BranchManager
from .branch_names import BranchResolver, make_emit_branch_name, resolve_branch_pair
from .config import EmitConfig, get_emit_config
from .emit_manager import EmitManager
from .errors import (
    BaseBranchError,
    BaseBranchNotFoundError,
    EmitError,
    FilterRepoError,
    FilterRepoNotInstalledError,
    InvalidEmitBranchError,
    MetadataError,
    NotInGitRepoError,
)
from .filter_repo import HistoryRewriter
from .models import BranchMetadata, BranchPair, CommitRange, EmitResult
from .storage import MetadataStorage

__all__ = [
    "BranchMetadata",
    "BranchPair",
    "CommitRange",
    "EmitResult",
    "EmitConfig",
    "get_emit_config",
    "BranchManager",
    "BranchResolver",
    "make_emit_branch_name",
    "resolve_branch_pair",
    "MetadataStorage",
    "HistoryRewriter",
    "EmitManager",
    "EmitError",
    "BaseBranchError",
    "BaseBranchNotFoundError",
    "FilterRepoError",
    "FilterRepoNotInstalledError",
    "InvalidEmitBranchError",
    "MetadataError",
    "NotInGitRepoError",
]
