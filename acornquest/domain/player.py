"""Player-centric utilities: first-login registration and read-only views."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Sequence

from ..config import BattleConfig, RewardConfig
from ..storage.base import AuditStore, BattleRecord, JournalEntry, PlayerRecord, PlayerStore, bounded
from .gates import Clock, shield_time_remaining, time_until_next_battle, utc_now
from .leveling import xp_into_level, xp_needed_for_next_level

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class PlayerProfile:
    player_id: str
    name: str
    level: int
    xp: int
    xp_into_level: int
    xp_for_next_level: int
    acorns: int
    current_streak: int
    last_attendance_date: date | None
    total_days_attended: int


@dataclass(slots=True, frozen=True)
class BattleStatus:
    can_battle_in: timedelta
    shield_remaining: timedelta

    @property
    def can_battle(self) -> bool:
        return self.can_battle_in <= timedelta(0)

    @property
    def shielded(self) -> bool:
        return self.shield_remaining > timedelta(0)


class PlayerService:
    """Expose read operations for player state; writes belong to settlement."""

    def __init__(
        self,
        store: PlayerStore,
        audit_store: AuditStore,
        *,
        battle_config: BattleConfig | None = None,
        reward_config: RewardConfig | None = None,
        storage_timeout: float = 5.0,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._audit = audit_store
        self._battle = battle_config or BattleConfig()
        self._rewards = reward_config or RewardConfig()
        self._timeout = storage_timeout
        self._clock = clock

    async def register(self, player_id: str, name: str = "") -> PlayerProfile:
        """Create the profile on first login; later logins return it unchanged."""
        record = await bounded(
            "create player",
            self._store.create(
                PlayerRecord(player_id=player_id, name=name, acorns=self._rewards.starting_acorns)
            ),
            self._timeout,
        )
        if record.version == 0:
            logger.info("Registered player %s with %s acorns.", player_id, record.acorns)
        return self._to_profile(record)

    async def fetch(self, player_id: str) -> PlayerProfile:
        return self._to_profile(await bounded("get player", self._store.get(player_id), self._timeout))

    async def get_battle_status(self, player_id: str) -> BattleStatus:
        record = await bounded("get player", self._store.get(player_id), self._timeout)
        now = self._clock()
        return BattleStatus(
            can_battle_in=time_until_next_battle(record.last_battle_time, now, self._battle.cooldown),
            shield_remaining=shield_time_remaining(record.shield_end_time, now),
        )

    async def journal(self, player_id: str, limit: int = 20) -> Sequence[JournalEntry]:
        return await bounded("journal", self._audit.journal_for(player_id, limit), self._timeout)

    async def battle_history(self, player_id: str, limit: int = 20) -> Sequence[BattleRecord]:
        return await bounded("battle history", self._audit.battles_for(player_id, limit), self._timeout)

    async def leaderboard(self, limit: int = 10) -> list[PlayerProfile]:
        records = await bounded("list players", self._store.list_players(), self._timeout)
        ranked = sorted(records, key=lambda rec: (-rec.xp, rec.player_id))
        return [self._to_profile(record) for record in ranked[:limit]]

    def _to_profile(self, record: PlayerRecord) -> PlayerProfile:
        streak = record.attendance
        return PlayerProfile(
            player_id=record.player_id,
            name=record.name,
            level=record.level,
            xp=record.xp,
            xp_into_level=xp_into_level(record.xp),
            xp_for_next_level=xp_needed_for_next_level(record.xp),
            acorns=record.acorns,
            current_streak=streak.current_streak,
            last_attendance_date=streak.last_attendance_date,
            total_days_attended=streak.total_days_attended,
        )
