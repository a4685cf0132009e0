# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for context_insight tests."""

from datetime import datetime, timedelta, timezone

import pytest

from context_insight.fingerprint import Fingerprint
from context_insight.tracker import ContextCacheTracker

EPOCH = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock for deterministic timestamps."""

    def __init__(self, start: datetime = EPOCH) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += timedelta(milliseconds=ms)

    def set_offset(self, ms: int) -> None:
        self.now = EPOCH + timedelta(milliseconds=ms)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tracker(clock: FakeClock) -> ContextCacheTracker:
    return ContextCacheTracker(clock=clock)


@pytest.fixture
def web_fingerprint() -> Fingerprint:
    return Fingerprint(
        sources={"app.config.WebConfig", "app.config.SecurityConfig"},
        profiles={"test"},
        loader="SpringBootContextLoader",
        properties={"server.port": "0"},
    )


@pytest.fixture
def web_fingerprint_with_mock() -> Fingerprint:
    """Same sources as web_fingerprint plus one extra property override."""
    return Fingerprint(
        sources={"app.config.WebConfig", "app.config.SecurityConfig"},
        profiles={"test"},
        loader="SpringBootContextLoader",
        properties={"server.port": "0", "feature.mock": "true"},
    )


@pytest.fixture
def data_fingerprint() -> Fingerprint:
    return Fingerprint(
        sources={"app.config.DataConfig"},
        profiles={"test", "db"},
        loader="SpringBootContextLoader",
        initializers={"app.init.FlywayInitializer"},
    )
