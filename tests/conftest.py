"""Pytest configuration for LootAura rate limiting tests.

Provides shared fixtures and test configuration.
"""

import sys
from pathlib import Path

import pytest

# Add src to path for runs without an editable install
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, now: float = 1_700_000_010.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    """Clock parked at the start of a 30s window (1_700_000_010 % 30 == 0)."""
    return FakeClock()


def pytest_collection_modifyitems(config, items):
    """Add markers based on test location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
