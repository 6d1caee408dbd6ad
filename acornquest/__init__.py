"""AcornQuest progression and battle economy engine public API."""

from .app import EngineApp
from .config import AcornQuestConfig

__all__ = [
    "EngineApp",
    "AcornQuestConfig",
]
