"""Shared constants for the emit engine."""

METADATA_FILE = "agency.json"
METADATA_VERSION = 1

# Files the tool owns on every source branch; always stripped on emit.
TOOL_OWNED_FILES = ("TASK.md", "AGENCY.md", METADATA_FILE)

# A commit whose message carries this token on its own line is dropped on emit.
REMOVE_COMMIT_MARKER = "AGENCY_REMOVE_COMMIT"

BRANCH_PLACEHOLDER = "%branch%"

BASE_BRANCH_CONFIG_KEY = "agency.baseBranch"

FILTER_REPO_COMMAND = "git-filter-repo"
FILTER_REPO_STATE_DIR = "filter-repo"
