"""Testing utilities for AcornQuest."""

from ..seeding import PlayerFactory, seed_players
from .fixtures import FrozenClock, app_fixture, memory_app

__all__ = [
    "PlayerFactory",
    "seed_players",
    "FrozenClock",
    "app_fixture",
    "memory_app",
]
