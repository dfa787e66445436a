from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from tableside.sessions.config import SessionConfig
from tableside.sessions.registry import SessionRegistry


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 3, 1, 19, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock) -> SessionRegistry:
    config = SessionConfig(
        max_customers=10,
        idle_timeout_seconds=600,
        archive_retention_seconds=3600,
        history_window=20,
    )
    return SessionRegistry(config=config, clock=clock)
