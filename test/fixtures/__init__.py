"""Test fixtures for agency tests."""

# Note: Fixtures are imported directly from modules in conftest.py
# This __init__.py enables the fixtures package to be imported

__all__ = [
    "isolated_agency_env",
    "git_repo",
    "emit_config",
    "FilterRepoMock",
]
