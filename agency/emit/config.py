"""Configuration management for the emit engine."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

import tomli
import tomli_w

from .constants import FILTER_REPO_COMMAND, REMOVE_COMMIT_MARKER

DEFAULT_SOURCE_BRANCH_PATTERN = "agency--%branch%"
DEFAULT_EMIT_BRANCH_PATTERN = "%branch%"


def _default_base_candidates() -> List[str]:
    return ["origin/main", "origin/master", "main", "master"]


@dataclass
class EmitConfig:
    """Configuration for emit runs."""

    source_branch_pattern: str = DEFAULT_SOURCE_BRANCH_PATTERN
    emit_branch_pattern: str = DEFAULT_EMIT_BRANCH_PATTERN
    remove_commit_marker: str = REMOVE_COMMIT_MARKER
    base_branch_candidates: List[str] = field(default_factory=_default_base_candidates)
    filter_repo_command: str = FILTER_REPO_COMMAND

    def __post_init__(self):
        """Reject values that would make branch resolution ambiguous."""
        if not self.source_branch_pattern:
            raise ValueError("source_branch_pattern must not be empty")
        if not self.emit_branch_pattern:
            raise ValueError("emit_branch_pattern must not be empty")
        if not self.remove_commit_marker.strip():
            raise ValueError("remove_commit_marker must not be blank")

    def to_dict(self) -> Dict:
        """Convert to dictionary for TOML serialization."""
        return {
            "emit": {
                "source_branch_pattern": self.source_branch_pattern,
                "emit_branch_pattern": self.emit_branch_pattern,
                "remove_commit_marker": self.remove_commit_marker,
                "base_branch_candidates": list(self.base_branch_candidates),
                "filter_repo_command": self.filter_repo_command,
            }
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "EmitConfig":
        """Create from dictionary."""
        emit_data = data.get("emit", {})

        return cls(
            source_branch_pattern=emit_data.get(
                "source_branch_pattern", DEFAULT_SOURCE_BRANCH_PATTERN
            ),
            emit_branch_pattern=emit_data.get("emit_branch_pattern", DEFAULT_EMIT_BRANCH_PATTERN),
            remove_commit_marker=emit_data.get("remove_commit_marker", REMOVE_COMMIT_MARKER),
            base_branch_candidates=list(
                emit_data.get("base_branch_candidates", _default_base_candidates())
            ),
            filter_repo_command=emit_data.get("filter_repo_command", FILTER_REPO_COMMAND),
        )


def get_config_path() -> Path:
    """Get the path to the config file, honoring AGENCY_CONFIG_PATH."""
    override = os.environ.get("AGENCY_CONFIG_PATH")
    if override:
        return Path(override).expanduser()
    config_dir = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return config_dir / "agency" / "config.toml"


def load_config() -> Dict:
    """Load configuration from file."""
    config_path = get_config_path()
    if not config_path.exists():
        return {}

    with open(config_path, "rb") as f:
        return tomli.load(f)


def save_config(config: Dict) -> None:
    """Save configuration to file."""
    config_path = get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "wb") as f:
        tomli_w.dump(config, f)


def get_emit_config() -> EmitConfig:
    """Get emit configuration, loading from file if exists."""
    config_data = load_config()
    return EmitConfig.from_dict(config_data)
