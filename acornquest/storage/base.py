"""Storage abstractions used by the AcornQuest services."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Protocol, Sequence, TypeVar, Union

from ..domain.exceptions import StorageUnavailable
from ..domain.leveling import level_of
from ..domain.streak import AttendanceStreak


@dataclass(slots=True)
class PlayerRecord:
    player_id: str
    name: str = ""
    xp: int = 0
    acorns: int = 0
    last_battle_time: datetime | None = None
    shield_end_time: datetime | None = None
    completed_reward_ids: set[str] = field(default_factory=set)
    attendance: AttendanceStreak = field(default_factory=AttendanceStreak)
    version: int = 0

    @property
    def level(self) -> int:
        return level_of(self.xp)

    def copy(self) -> "PlayerRecord":
        return replace(self, completed_reward_ids=set(self.completed_reward_ids))


class JournalKind(str, Enum):
    BATTLE_WON = "battle_won"
    BATTLE_LOST = "battle_lost"
    ATTENDANCE = "attendance"
    ATTENDANCE_REVERSED = "attendance_reversed"
    ASSIGNMENT = "assignment"


@dataclass(slots=True, frozen=True)
class BattleSideSnapshot:
    player_id: str
    name: str
    level: int
    xp: int
    power: int
    roll: int
    xp_gained: int
    acorns_change: int


@dataclass(slots=True, frozen=True)
class BattleRecord:
    battle_id: str
    attacker_id: str
    defender_id: str
    winner_id: str
    timestamp: datetime
    attacker: BattleSideSnapshot
    defender: BattleSideSnapshot


@dataclass(slots=True, frozen=True)
class JournalEntry:
    entry_id: str
    player_id: str
    kind: JournalKind
    message: str
    timestamp: datetime
    xp_delta: int = 0
    acorn_delta: int = 0
    reference: str | None = None


AuditRecord = Union[BattleRecord, JournalEntry]

# Mutations work on private copies; raising aborts the whole commit.
PlayerMutation = Callable[[PlayerRecord], Sequence[AuditRecord]]
PairMutation = Callable[[PlayerRecord, PlayerRecord], Sequence[AuditRecord]]


class PlayerStore(Protocol):
    async def get(self, player_id: str) -> PlayerRecord:
        ...

    async def create(self, record: PlayerRecord) -> PlayerRecord:
        ...

    async def list_players(self) -> Sequence[PlayerRecord]:
        ...

    async def update(self, player_id: str, mutation: PlayerMutation) -> PlayerRecord:
        ...

    async def update_pair(
        self, first_id: str, second_id: str, mutation: PairMutation
    ) -> tuple[PlayerRecord, PlayerRecord]:
        ...


class AuditStore(Protocol):
    async def add_entry(self, action: str, payload: dict) -> None:
        ...

    async def journal_for(self, player_id: str, limit: int = 20) -> Sequence[JournalEntry]:
        ...

    async def battles_for(self, player_id: str, limit: int = 20) -> Sequence[BattleRecord]:
        ...


T = TypeVar("T")


async def bounded(operation: str, awaitable: Awaitable[T], timeout: float) -> T:
    """Await a store call, turning a timeout into :class:`StorageUnavailable`.

    On timeout the outcome of a write is unknown; callers re-read before retrying.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise StorageUnavailable(f"{operation} timed out after {timeout}s") from exc
