"""Top level application object for AcornQuest deployments."""

from __future__ import annotations

from random import Random
from typing import Any

from .config import AcornQuestConfig
from .domain.events import EventBus
from .domain.gates import Clock, utc_now
from .domain.player import PlayerService
from .domain.providers import (
    AttendanceProvider,
    CourseDataProvider,
    InMemoryAttendanceProvider,
    InMemoryCourseData,
)
from .domain.settlement import SettlementService
from .storage.base import AuditStore, PlayerStore
from .storage.memory import InMemoryAuditStore, InMemoryPlayerStore
from .storage.sqlalchemy import AsyncSQLAlchemyStorage


class EngineApp:
    """Central dependency container used by the bot, the CLI and tests."""

    def __init__(
        self,
        config: AcornQuestConfig,
        *,
        player_store: PlayerStore | None = None,
        audit_store: AuditStore | None = None,
        course_data: CourseDataProvider | None = None,
        attendance: AttendanceProvider | None = None,
        event_bus: EventBus | None = None,
        rng: Random | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.config = config
        self.event_bus = event_bus or EventBus()
        self.course_data = course_data or InMemoryCourseData()
        self.attendance = attendance or InMemoryAttendanceProvider()
        self.clock = clock
        self._rng = rng or (Random(config.rng_seed) if config.rng_seed is not None else Random())

        self._sqlalchemy_storage: AsyncSQLAlchemyStorage | None = None
        self.player_store, self.audit_store = self._wire_storage(player_store, audit_store)

        self.settlement = SettlementService(
            self.player_store,
            self.audit_store,
            self.event_bus,
            battle_config=config.battle,
            reward_config=config.rewards,
            course_data=self.course_data,
            attendance=self.attendance,
            storage_timeout=config.storage.timeout_seconds,
            rng=self._rng,
            clock=clock,
        )
        self.player_service = PlayerService(
            self.player_store,
            self.audit_store,
            battle_config=config.battle,
            reward_config=config.rewards,
            storage_timeout=config.storage.timeout_seconds,
            clock=clock,
        )

    def _wire_storage(
        self,
        player_store: PlayerStore | None,
        audit_store: AuditStore | None,
    ) -> tuple[PlayerStore, AuditStore]:
        if player_store and audit_store:
            return player_store, audit_store

        backend = self.config.storage.backend
        if backend == "memory":
            if player_store:
                raise ValueError("A custom player store needs its matching audit store")
            memory_audit = audit_store if isinstance(audit_store, InMemoryAuditStore) else InMemoryAuditStore()
            return InMemoryPlayerStore(memory_audit), memory_audit
        if backend == "sqlalchemy":
            dsn = self.config.storage.resolve_dsn()
            if not dsn:
                raise ValueError("SQLAlchemy backend requires a DSN")
            storage = AsyncSQLAlchemyStorage(dsn, echo=self.config.storage.echo_sql)
            self._sqlalchemy_storage = storage
            return (
                player_store or storage.player_store(),
                audit_store or storage.audit_store(),
            )
        raise ValueError(f"Unsupported storage backend {backend}")

    def snapshot(self) -> dict[str, Any]:
        """Export current configuration for debugging."""
        return {
            "storage": self.config.storage.backend,
            "battle_cooldown_seconds": self.config.battle.cooldown_seconds,
            "shield_seconds": self.config.battle.shield_seconds,
            "starting_acorns": self.config.rewards.starting_acorns,
            "assignment_reward": {
                "acorns": self.config.rewards.assignment_acorns,
                "xp": self.config.rewards.assignment_xp,
            },
        }

    async def init_backend(self) -> None:
        """Initialize storage backend resources (e.g., database tables)."""
        if self._sqlalchemy_storage:
            await self._sqlalchemy_storage.init_models()

    async def close(self) -> None:
        if self._sqlalchemy_storage:
            await self._sqlalchemy_storage.dispose()
