"""SQLAlchemy storage backend for AcornQuest."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import date, datetime, timezone
from typing import AsyncIterator, Iterable, Sequence

from sqlalchemy import DateTime, Integer, JSON, String, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..domain.exceptions import Conflict, PlayerNotFound, StorageUnavailable
from ..domain.gates import as_utc
from ..domain.streak import AttendanceStreak
from .base import (
    AuditRecord,
    AuditStore,
    BattleRecord,
    BattleSideSnapshot,
    JournalEntry,
    JournalKind,
    PairMutation,
    PlayerMutation,
    PlayerRecord,
    PlayerStore,
)


class Base(DeclarativeBase):
    pass


class PlayerTable(Base):
    __tablename__ = "acornquest_players"

    player_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    xp: Mapped[int] = mapped_column(Integer, default=0)
    acorns: Mapped[int] = mapped_column(Integer, default=0)
    last_battle_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    shield_end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_reward_ids: Mapped[list] = mapped_column(JSON, default=list)
    attendance: Mapped[dict] = mapped_column(JSON, default=dict)
    version: Mapped[int] = mapped_column(Integer, default=0)


class BattleTable(Base):
    __tablename__ = "acornquest_battles"

    battle_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    attacker_id: Mapped[str] = mapped_column(String(128), index=True)
    defender_id: Mapped[str] = mapped_column(String(128), index=True)
    winner_id: Mapped[str] = mapped_column(String(128))
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    attacker: Mapped[dict] = mapped_column(JSON)
    defender: Mapped[dict] = mapped_column(JSON)


class JournalTable(Base):
    __tablename__ = "acornquest_journal"

    entry_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    player_id: Mapped[str] = mapped_column(String(128), index=True)
    kind: Mapped[str] = mapped_column(String(32))
    message: Mapped[str] = mapped_column(String(512))
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    xp_delta: Mapped[int] = mapped_column(Integer, default=0)
    acorn_delta: Mapped[int] = mapped_column(Integer, default=0)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)


class AuditTable(Base):
    __tablename__ = "acornquest_audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    action: Mapped[str] = mapped_column(String(128))
    payload: Mapped[dict] = mapped_column(JSON)


@asynccontextmanager
async def _translate_errors(operation: str) -> AsyncIterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise StorageUnavailable(f"{operation} failed: {exc}") from exc


class AsyncSQLAlchemyStorage:
    """Bundle of async stores backed by SQLAlchemy."""

    def __init__(self, dsn: str, *, echo: bool = False) -> None:
        self._engine = create_async_engine(dsn, echo=echo)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            yield session

    async def init_models(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    def player_store(self) -> "AsyncSQLAlchemyPlayerStore":
        return AsyncSQLAlchemyPlayerStore(self._session_factory)

    def audit_store(self) -> "AsyncSQLAlchemyAuditStore":
        return AsyncSQLAlchemyAuditStore(self._session_factory)


class AsyncSQLAlchemyPlayerStore(PlayerStore):
    """Versioned compare-and-set writes; audit rows share the player transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, player_id: str) -> PlayerRecord:
        async with _translate_errors("get"), self._session_factory() as session:
            row = await session.get(PlayerTable, player_id)
            if row is None:
                raise PlayerNotFound(player_id)
            return _to_record(row)

    async def create(self, record: PlayerRecord) -> PlayerRecord:
        async with _translate_errors("create"):
            try:
                async with self._session_factory() as session, session.begin():
                    existing = await session.get(PlayerTable, record.player_id)
                    if existing is not None:
                        return _to_record(existing)
                    session.add(PlayerTable(player_id=record.player_id, **_row_values(record)))
                return record.copy()
            except IntegrityError:
                # Lost a first-login race; the winner's row is the profile.
                return await self.get(record.player_id)

    async def list_players(self) -> Sequence[PlayerRecord]:
        async with _translate_errors("list_players"), self._session_factory() as session:
            rows = (await session.execute(select(PlayerTable))).scalars().all()
            return [_to_record(row) for row in rows]

    async def update(self, player_id: str, mutation: PlayerMutation) -> PlayerRecord:
        async with _translate_errors("update"), self._session_factory() as session:
            async with session.begin():
                row = await session.get(PlayerTable, player_id)
                if row is None:
                    raise PlayerNotFound(player_id)
                record = _to_record(row)
                expected = record.version
                audits = list(mutation(record))
                record.player_id = player_id
                await _compare_and_set(session, record, expected)
                _add_audit_rows(session, audits)
            return record

    async def update_pair(
        self, first_id: str, second_id: str, mutation: PairMutation
    ) -> tuple[PlayerRecord, PlayerRecord]:
        if first_id == second_id:
            raise ValueError("update_pair needs two distinct players")
        async with _translate_errors("update_pair"), self._session_factory() as session:
            async with session.begin():
                first_row = await session.get(PlayerTable, first_id)
                second_row = await session.get(PlayerTable, second_id)
                if first_row is None:
                    raise PlayerNotFound(first_id)
                if second_row is None:
                    raise PlayerNotFound(second_id)
                first, second = _to_record(first_row), _to_record(second_row)
                first_version, second_version = first.version, second.version
                audits = list(mutation(first, second))
                first.player_id, second.player_id = first_id, second_id
                await _compare_and_set(session, first, first_version)
                await _compare_and_set(session, second, second_version)
                _add_audit_rows(session, audits)
            return first, second


class AsyncSQLAlchemyAuditStore(AuditStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add_entry(self, action: str, payload: dict) -> None:
        async with _translate_errors("add_entry"), self._session_factory() as session:
            session.add(
                AuditTable(
                    created_at=datetime.now(timezone.utc),
                    action=action,
                    payload=dict(payload),
                )
            )
            await session.commit()

    async def journal_for(self, player_id: str, limit: int = 20) -> Sequence[JournalEntry]:
        async with _translate_errors("journal_for"), self._session_factory() as session:
            stmt = (
                select(JournalTable)
                .where(JournalTable.player_id == player_id)
                .order_by(JournalTable.timestamp.desc())
                .limit(limit)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [
                JournalEntry(
                    entry_id=row.entry_id,
                    player_id=row.player_id,
                    kind=JournalKind(row.kind),
                    message=row.message,
                    timestamp=row.timestamp,
                    xp_delta=row.xp_delta,
                    acorn_delta=row.acorn_delta,
                    reference=row.reference,
                )
                for row in rows
            ]

    async def battles_for(self, player_id: str, limit: int = 20) -> Sequence[BattleRecord]:
        async with _translate_errors("battles_for"), self._session_factory() as session:
            stmt = (
                select(BattleTable)
                .where(or_(BattleTable.attacker_id == player_id, BattleTable.defender_id == player_id))
                .order_by(BattleTable.timestamp.desc())
                .limit(limit)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [
                BattleRecord(
                    battle_id=row.battle_id,
                    attacker_id=row.attacker_id,
                    defender_id=row.defender_id,
                    winner_id=row.winner_id,
                    timestamp=row.timestamp,
                    attacker=BattleSideSnapshot(**row.attacker),
                    defender=BattleSideSnapshot(**row.defender),
                )
                for row in rows
            ]


async def _compare_and_set(session: AsyncSession, record: PlayerRecord, expected_version: int) -> None:
    stmt = (
        update(PlayerTable)
        .where(
            PlayerTable.player_id == record.player_id,
            PlayerTable.version == expected_version,
        )
        .values(version=expected_version + 1, **_row_values(record))
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.rowcount != 1:
        raise Conflict(f"Player {record.player_id} changed concurrently")
    record.version = expected_version + 1


def _add_audit_rows(session: AsyncSession, records: Iterable[AuditRecord]) -> None:
    for record in records:
        if isinstance(record, BattleRecord):
            session.add(
                BattleTable(
                    battle_id=record.battle_id,
                    attacker_id=record.attacker_id,
                    defender_id=record.defender_id,
                    winner_id=record.winner_id,
                    timestamp=as_utc(record.timestamp),
                    attacker=asdict(record.attacker),
                    defender=asdict(record.defender),
                )
            )
        elif isinstance(record, JournalEntry):
            session.add(
                JournalTable(
                    entry_id=record.entry_id,
                    player_id=record.player_id,
                    kind=record.kind.value,
                    message=record.message,
                    timestamp=as_utc(record.timestamp),
                    xp_delta=record.xp_delta,
                    acorn_delta=record.acorn_delta,
                    reference=record.reference,
                )
            )
        else:
            raise TypeError(f"Unsupported audit record {type(record).__name__}")


def _row_values(record: PlayerRecord) -> dict:
    streak = record.attendance
    return {
        "name": record.name,
        "xp": record.xp,
        "acorns": record.acorns,
        "last_battle_time": as_utc(record.last_battle_time) if record.last_battle_time else None,
        "shield_end_time": as_utc(record.shield_end_time) if record.shield_end_time else None,
        "completed_reward_ids": sorted(record.completed_reward_ids),
        "attendance": {
            "current_streak": streak.current_streak,
            "last_attendance_date": (
                streak.last_attendance_date.isoformat() if streak.last_attendance_date else None
            ),
            "total_days_attended": streak.total_days_attended,
        },
    }


def _to_record(row: PlayerTable) -> PlayerRecord:
    attendance = row.attendance or {}
    last_date = attendance.get("last_attendance_date")
    return PlayerRecord(
        player_id=row.player_id,
        name=row.name or "",
        xp=row.xp,
        acorns=row.acorns,
        last_battle_time=row.last_battle_time,
        shield_end_time=row.shield_end_time,
        completed_reward_ids=set(row.completed_reward_ids or ()),
        attendance=AttendanceStreak(
            current_streak=attendance.get("current_streak", 0),
            last_attendance_date=date.fromisoformat(last_date) if last_date else None,
            total_days_attended=attendance.get("total_days_attended", 0),
        ),
        version=row.version,
    )
