from __future__ import annotations

import pytest

from acornquest.app import EngineApp
from acornquest.config import AcornQuestConfig
from acornquest.storage.base import PlayerRecord
from acornquest.testing import FrozenClock, memory_app  # noqa: F401


class ScriptedRandom:
    """Stand-in RNG: fixed power rolls, always picks the first eligible opponent."""

    def __init__(self, *rolls: int) -> None:
        self.rolls = list(rolls)

    def randint(self, low: int, high: int) -> int:
        return self.rolls.pop(0) if self.rolls else low

    def choice(self, seq):
        return seq[0]


def setting(**values):
    def mutation(record: PlayerRecord):
        for key, value in values.items():
            setattr(record, key, value)
        return []

    return mutation


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def rng() -> ScriptedRandom:
    return ScriptedRandom()


@pytest.fixture()
def app(clock, rng) -> EngineApp:
    return EngineApp(AcornQuestConfig(bot_token="test"), clock=clock, rng=rng)
