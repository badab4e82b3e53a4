"""Shared pytest configuration and fixtures for agency tests.

This module provides:
- Test markers for unit and integration tests
- Shared fixtures imported from test/fixtures/
- pytest configuration hooks
"""

import sys
from pathlib import Path

import pytest

# Add test directory to path for imports
test_dir = Path(__file__).parent
if str(test_dir) not in sys.path:
    sys.path.insert(0, str(test_dir))

# noqa: E402 - imports must come after sys.path modification
from fixtures.git_fixtures import emit_config, git_repo, isolated_agency_env  # noqa: E402
from fixtures.filter_repo_mock import FilterRepoMock  # noqa: E402


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "unit: Pure logic tests with no external commands. Fast, runs everywhere.",
    )
    config.addinivalue_line(
        "markers",
        "integration: Real git commands against temporary repositories.",
    )


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        test_path = str(item.fspath)

        if "/test/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/test/integration/" in test_path:
            item.add_marker(pytest.mark.integration)


# Re-export fixtures so they're available without explicit imports
__all__ = [
    "isolated_agency_env",
    "git_repo",
    "emit_config",
    "FilterRepoMock",
]
