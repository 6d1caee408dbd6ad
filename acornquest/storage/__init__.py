"""Storage backends for AcornQuest."""

from .base import (
    AuditRecord,
    AuditStore,
    BattleRecord,
    BattleSideSnapshot,
    JournalEntry,
    JournalKind,
    PlayerRecord,
    PlayerStore,
)
from .memory import InMemoryAuditStore, InMemoryPlayerStore
from .sqlalchemy import AsyncSQLAlchemyStorage

__all__ = [
    "AuditRecord",
    "AuditStore",
    "BattleRecord",
    "BattleSideSnapshot",
    "JournalEntry",
    "JournalKind",
    "PlayerRecord",
    "PlayerStore",
    "InMemoryAuditStore",
    "InMemoryPlayerStore",
    "AsyncSQLAlchemyStorage",
]
