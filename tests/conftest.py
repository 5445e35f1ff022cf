"""
Pytest configuration and fixtures for Cardcord tests.
"""

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add src directory to path so imports work, and this directory for the fakes
tests_path = Path(__file__).parent
src_path = tests_path.parent / "src"
sys.path.insert(0, str(src_path))
sys.path.insert(0, str(tests_path))

from cardcord.configuration.coordination_settings import CoordinationSettings  # noqa: E402
from cardcord.database.db_connection import open_database  # noqa: E402
from fakes import FakeClock  # noqa: E402


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> CoordinationSettings:
    return CoordinationSettings(
        {
            "days_ahead": 14,
            "reminder_days_before": 3,
            "cleanup_grace_hours": 24,
            "celebration_channel_name": "general",
            "birthday_role_name": "Birthday Star",
            "role_duration_hours": 24,
            "card_url": "https://example.com/card/1",
            "poll_limit": 50,
            "timezone": "UTC",
        }
    )


@pytest_asyncio.fixture
async def db(tmp_path: Path):
    """Open a fresh SQLite database with the schema applied."""
    async with open_database(tmp_path / "test.db") as manager:
        yield manager
