from datetime import datetime, timedelta, timezone

import pytest

from todust import config
from todust.lib import paths
from todust.lib.store import EntryStore
from todust.repository import EntryRepository


class FakeClock:
    """Deterministic clock for repository tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def todust_home(monkeypatch, tmp_path):
    """Isolated data directory per test execution.

    Provides:
    - Temporary data directory instead of the real XDG data home
    - Fresh config cache (setup + teardown)
    """
    config.clear_cache()

    data_dir = tmp_path / "todust"
    data_dir.mkdir()

    monkeypatch.setenv("TODUST_DATADIR", str(data_dir))
    monkeypatch.delenv("TODUST_PROJECT", raising=False)
    monkeypatch.delenv("TODUST_LOG_LEVEL", raising=False)
    monkeypatch.setattr(paths, "data_dir", lambda: data_dir)

    yield data_dir

    config.clear_cache()


@pytest.fixture
def store(todust_home):
    entry_store = EntryStore(todust_home / "todust.db")
    yield entry_store
    entry_store.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repository(store, clock):
    return EntryRepository(store, clock=clock)
