"""Pytest configuration and shared fixtures."""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator

import pytest  # type: ignore[import-not-found]

from timeboard.core.config import ConfigManager
from timeboard.core.members import MemberDirectory
from timeboard.core.storage import StorageManager
from timeboard.core.tracker import TimeTracker


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest."""
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    """Clock fixed at 2024-01-01 09:00 UTC."""
    return FrozenClock(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def temp_data_dir() -> Iterator[Path]:
    """Create a temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "data"


@pytest.fixture
def storage(temp_data_dir: Path) -> StorageManager:
    return StorageManager(temp_data_dir)


@pytest.fixture
def tracker(storage: StorageManager, clock: FrozenClock) -> TimeTracker:
    """Tracker for Rehman and Ana with the default alias table."""
    return TimeTracker(
        storage,
        members=MemberDirectory(["Rehman", "Ana"], {"rahman": "Rehman"}),
        clock=clock,
    )


@pytest.fixture
def test_config(temp_data_dir: Path) -> Iterator[ConfigManager]:
    """Configuration pointing at the temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config = ConfigManager(Path(tmpdir) / "config.yml")
        config.set("general.data_dir", str(temp_data_dir))
        config.set("team.members", ["Rehman", "Ana"])
        yield config
