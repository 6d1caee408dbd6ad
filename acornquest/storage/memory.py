"""In-memory storage backend for AcornQuest."""

from __future__ import annotations

import asyncio
from collections import deque
from datetime import datetime, timezone
from typing import Deque, Iterable, Sequence

from ..domain.exceptions import PlayerNotFound
from .base import (
    AuditRecord,
    AuditStore,
    BattleRecord,
    JournalEntry,
    PairMutation,
    PlayerMutation,
    PlayerRecord,
    PlayerStore,
)


class InMemoryAuditStore(AuditStore):
    def __init__(self, *, maxlen: int = 1000) -> None:
        self._entries: Deque[tuple[datetime, str, dict]] = deque(maxlen=maxlen)
        self._journal: list[JournalEntry] = []
        self._battles: list[BattleRecord] = []

    async def add_entry(self, action: str, payload: dict) -> None:
        self._entries.append((datetime.now(timezone.utc), action, payload))

    def record_all(self, records: Iterable[AuditRecord]) -> None:
        journal: list[JournalEntry] = []
        battles: list[BattleRecord] = []
        for record in records:
            if isinstance(record, BattleRecord):
                battles.append(record)
            elif isinstance(record, JournalEntry):
                journal.append(record)
            else:
                raise TypeError(f"Unsupported audit record {type(record).__name__}")
        self._journal.extend(journal)
        self._battles.extend(battles)

    async def journal_for(self, player_id: str, limit: int = 20) -> Sequence[JournalEntry]:
        filtered = [entry for entry in reversed(self._journal) if entry.player_id == player_id]
        return filtered[:limit]

    async def battles_for(self, player_id: str, limit: int = 20) -> Sequence[BattleRecord]:
        filtered = [
            battle
            for battle in reversed(self._battles)
            if player_id in (battle.attacker_id, battle.defender_id)
        ]
        return filtered[:limit]

    def dump(self) -> list[tuple[datetime, str, dict]]:
        return list(self._entries)


class InMemoryPlayerStore(PlayerStore):
    """Serialises every write behind one lock and swaps in fresh copies on commit."""

    def __init__(self, audit_store: InMemoryAuditStore | None = None) -> None:
        self._records: dict[str, PlayerRecord] = {}
        self._audit = audit_store or InMemoryAuditStore()
        self._lock = asyncio.Lock()

    async def get(self, player_id: str) -> PlayerRecord:
        return self._require(player_id).copy()

    async def create(self, record: PlayerRecord) -> PlayerRecord:
        async with self._lock:
            existing = self._records.get(record.player_id)
            if existing is None:
                existing = record.copy()
                self._records[record.player_id] = existing
            return existing.copy()

    async def list_players(self) -> Sequence[PlayerRecord]:
        return [record.copy() for record in self._records.values()]

    async def update(self, player_id: str, mutation: PlayerMutation) -> PlayerRecord:
        async with self._lock:
            current = self._require(player_id)
            working = current.copy()
            audits = list(mutation(working))
            working.player_id = current.player_id
            working.version = current.version + 1
            self._audit.record_all(audits)
            self._records[player_id] = working
            return working.copy()

    async def update_pair(
        self, first_id: str, second_id: str, mutation: PairMutation
    ) -> tuple[PlayerRecord, PlayerRecord]:
        if first_id == second_id:
            raise ValueError("update_pair needs two distinct players")
        async with self._lock:
            first = self._require(first_id)
            second = self._require(second_id)
            first_copy, second_copy = first.copy(), second.copy()
            audits = list(mutation(first_copy, second_copy))
            first_copy.player_id, second_copy.player_id = first_id, second_id
            first_copy.version = first.version + 1
            second_copy.version = second.version + 1
            self._audit.record_all(audits)
            self._records[first_id] = first_copy
            self._records[second_id] = second_copy
            return first_copy.copy(), second_copy.copy()

    def _require(self, player_id: str) -> PlayerRecord:
        try:
            return self._records[player_id]
        except KeyError as exc:
            raise PlayerNotFound(player_id) from exc
