"""Data models for the emit engine."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .constants import METADATA_VERSION, TOOL_OWNED_FILES


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> datetime:
    # fromisoformat() only learned the "Z" suffix in Python 3.11
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


@dataclass
class BranchMetadata:
    """The agency.json record committed on a source branch."""

    version: int = METADATA_VERSION
    managed_files: List[str] = field(default_factory=list)
    base_branch: Optional[str] = None
    emit_branch_name: Optional[str] = None
    template: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)

    def all_managed_files(self) -> List[str]:
        """Tool-owned files followed by the managed patterns, deduplicated in order."""
        files: List[str] = []
        for path in [*TOOL_OWNED_FILES, *self.managed_files]:
            if path not in files:
                files.append(path)
        return files

    def add_managed_file(self, path: str) -> bool:
        """Append a managed pattern. Returns False if it was already present."""
        if path in self.managed_files:
            return False
        self.managed_files.append(path)
        return True

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        data: Dict = {
            "version": self.version,
            "managedFiles": list(self.managed_files),
        }
        if self.base_branch:
            data["baseBranch"] = self.base_branch
        if self.emit_branch_name:
            data["emitBranchName"] = self.emit_branch_name
        if self.template:
            data["template"] = self.template
        data["createdAt"] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "BranchMetadata":
        """Create from dictionary.

        Raises ValueError when the record is not a supported agency.json.
        The older ``injectedFiles`` and ``emitBranch`` keys are accepted.
        """
        if not isinstance(data, dict):
            raise ValueError("agency.json must contain a JSON object")

        version = data.get("version")
        if version != METADATA_VERSION or isinstance(version, bool):
            raise ValueError(f"Unsupported agency.json version: {version!r}")

        managed = data.get("managedFiles", data.get("injectedFiles", []))
        if not isinstance(managed, list) or not all(isinstance(p, str) for p in managed):
            raise ValueError("managedFiles must be a list of strings")

        optional_strings = {
            "base_branch": data.get("baseBranch"),
            "emit_branch_name": data.get("emitBranchName", data.get("emitBranch")),
            "template": data.get("template"),
        }
        for name, value in optional_strings.items():
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{name} must be a string")

        created_at = data.get("createdAt")
        return cls(
            version=version,
            managed_files=list(managed),
            created_at=_parse_timestamp(created_at) if created_at else _utcnow(),
            **optional_strings,
        )


@dataclass(frozen=True)
class CommitRange:
    """Commits after ``merge_base`` up to and including the tip of ``branch``."""

    merge_base: str
    branch: str

    def __str__(self) -> str:
        return f"{self.merge_base}..{self.branch}"


@dataclass(frozen=True)
class BranchPair:
    """A source branch and the emit branch derived from it."""

    source_branch: str
    emit_branch: str
    is_on_emit_branch: bool = False


@dataclass
class EmitResult:
    """Outcome of a successful emit run."""

    source_branch: str
    emit_branch: str
    base_branch: str
    merge_base: str
    filtered_paths: List[str] = field(default_factory=list)
