"""Pytest fixtures for AcornQuest."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from ..app import EngineApp
from ..config import AcornQuestConfig


class FrozenClock:
    """Manually advanced clock; pass the instance wherever a ``Clock`` is expected."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 9, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture()
def memory_app() -> EngineApp:
    return EngineApp(AcornQuestConfig(bot_token="test", rng_seed=7), clock=FrozenClock())


def app_fixture(bot_token: str = "test", **kwargs) -> EngineApp:
    """Helper for ad-hoc tests where pytest is not available."""
    clock = kwargs.pop("clock", None) or FrozenClock()
    rng = kwargs.pop("rng", None)
    config = AcornQuestConfig(bot_token=bot_token, **kwargs)
    return EngineApp(config, clock=clock, rng=rng)
