"""
Root-level pytest configuration and shared fixtures for all tests.

This conftest.py is shared by both unit and integration tests.
It registers pytest markers and provides common fixtures.
"""
import sys
from pathlib import Path

import pytest  # noqa: E402

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Expose fixtures from test fixture modules
# Note: pytest_plugins must be defined at the top level (root conftest)
pytest_plugins = [
    "tests.unit.fixtures.discord_data",
]


# Configure pytest markers
def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (slower, with dependencies)")


@pytest.fixture
def temp_progress_file(tmp_path):
    """
    Create a temporary progress file path for testing.

    The file is not created by default - tests can write to it as needed.

    Args:
        tmp_path: Pytest's temporary directory fixture

    Returns:
        Path object pointing to the temporary progress file
    """
    return tmp_path / "progress.json"
