"""
Pytest configuration and fixtures for Serenity tests.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from serenity.cache.clock import ManualClock  # noqa: E402


@pytest.fixture
def clock():
    """A clock starting at t=0 that only moves when advanced."""
    return ManualClock()
