"""
Pytest configuration and shared fixtures for unit tests.
"""
import sys
from pathlib import Path

import pytest  # noqa: E402

# Add project root to path for imports
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

# Note: pytest_plugins is defined in the root tests/conftest.py
# to comply with pytest's requirement that it be at the top level

from purgecord.deletion.models import RunConfig, RunContext  # noqa: E402
from purgecord.utils.run_control import RunControl  # noqa: E402
from purgecord.utils.statistics import ProgressTracker  # noqa: E402
from tests.unit.fixtures.discord_data import AUTHOR_ID, CHANNEL_ID  # noqa: E402


@pytest.fixture
def run_context():
    """Run context for a channel-scoped run with no pacing delays."""
    config = RunConfig(
        auth_token="token",
        author_id=AUTHOR_ID,
        channel_id=CHANNEL_ID,
        search_delay=0,
        delete_delay=0,
    )
    return RunContext(config=config)


@pytest.fixture
def control(fake_sleep):
    """RunControl that records sleeps instead of blocking."""
    return RunControl(sleep=fake_sleep)


@pytest.fixture
def tracker():
    """ProgressTracker driven by a fixed clock (seconds)."""
    return ProgressTracker(clock=lambda: 1000.0)

