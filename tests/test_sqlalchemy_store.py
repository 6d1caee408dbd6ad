from datetime import date, timedelta

import pytest

from acornquest.app import EngineApp
from acornquest.config import AcornQuestConfig, StorageConfig
from acornquest.domain.exceptions import Conflict, PlayerNotFound
from acornquest.domain.gates import as_utc
from acornquest.storage.base import JournalEntry, JournalKind, PlayerRecord
from acornquest.storage.sqlalchemy import AsyncSQLAlchemyStorage, _compare_and_set
from acornquest.testing import FrozenClock

from conftest import ScriptedRandom, setting


def sqlite_app(tmp_path, clock, rng=None) -> EngineApp:
    dsn = f"sqlite+aiosqlite:///{tmp_path / 'acornquest.db'}"
    config = AcornQuestConfig(bot_token="test", storage=StorageConfig(backend="sqlalchemy", dsn=dsn))
    return EngineApp(config, clock=clock, rng=rng or ScriptedRandom())


@pytest.mark.asyncio()
async def test_sqlalchemy_claims_and_attendance_persist(tmp_path):
    clock = FrozenClock()
    app = sqlite_app(tmp_path, clock)
    await app.init_backend()
    try:
        await app.player_service.register("ann", "Ann")
        first = await app.settlement.claim_reward("ann", "quest:1", 10, 50)
        second = await app.settlement.claim_reward("ann", "quest:1", 10, 50)
        reward = await app.settlement.claim_attendance_reward("ann", date(2024, 9, 2))

        assert not first.already_claimed and second.already_claimed
        record = await app.player_store.get("ann")
        assert (record.acorns, record.xp) == (65, 60)
        assert record.completed_reward_ids == {"quest:1", "attendance:2024-09-02"}
        assert record.attendance.current_streak == reward.streak == 1
        assert record.attendance.last_attendance_date == date(2024, 9, 2)
        assert record.version == 2

        journal = await app.player_service.journal("ann")
        assert {entry.kind for entry in journal} == {JournalKind.ASSIGNMENT, JournalKind.ATTENDANCE}
    finally:
        await app.close()


@pytest.mark.asyncio()
async def test_sqlalchemy_battle_updates_both_rows(tmp_path):
    clock = FrozenClock()
    app = sqlite_app(tmp_path, clock, ScriptedRandom(0, 0))
    await app.init_backend()
    try:
        await app.player_store.create(PlayerRecord("ann", name="Ann", xp=150, acorns=40))
        await app.player_store.create(PlayerRecord("dan", name="Dan", xp=50, acorns=30))

        result = await app.settlement.initiate_battle("ann")

        ann = await app.player_store.get("ann")
        dan = await app.player_store.get("dan")
        assert (ann.xp, ann.acorns) == (210, 45)
        assert (dan.xp, dan.acorns) == (80, 25)
        assert as_utc(ann.last_battle_time) == clock.now
        assert as_utc(dan.shield_end_time) == clock.now + timedelta(hours=8)
        history = await app.player_service.battle_history("ann")
        assert history[0].battle_id == result.record.battle_id
        assert (history[0].defender.power, history[0].defender.roll) == (150, 0)
    finally:
        await app.close()


@pytest.mark.asyncio()
async def test_sqlalchemy_stale_version_is_a_conflict(tmp_path):
    storage = AsyncSQLAlchemyStorage(f"sqlite+aiosqlite:///{tmp_path / 'cas.db'}")
    await storage.init_models()
    try:
        store = storage.player_store()
        await store.create(PlayerRecord("ann", acorns=10))
        stale = await store.get("ann")
        await store.update("ann", setting(acorns=11))

        stale.acorns = 0
        with pytest.raises(Conflict):
            async with storage.session() as session, session.begin():
                await _compare_and_set(session, stale, stale.version)

        current = await store.get("ann")
        assert (current.acorns, current.version) == (11, 1)
    finally:
        await storage.dispose()


@pytest.mark.asyncio()
async def test_sqlalchemy_missing_player(tmp_path):
    app = sqlite_app(tmp_path, FrozenClock())
    await app.init_backend()
    try:
        with pytest.raises(PlayerNotFound):
            await app.player_store.get("ghost")
        created = await app.player_store.create(PlayerRecord("ann", acorns=50))
        again = await app.player_store.create(PlayerRecord("ann", acorns=999))
        assert created.acorns == again.acorns == 50
    finally:
        await app.close()


@pytest.mark.asyncio()
async def test_sqlalchemy_pair_conflict_rolls_back_first_row(tmp_path, monkeypatch):
    storage = AsyncSQLAlchemyStorage(f"sqlite+aiosqlite:///{tmp_path / 'pair.db'}")
    await storage.init_models()
    try:
        store = storage.player_store()
        audit = storage.audit_store()
        await store.create(PlayerRecord("ann", acorns=10))
        await store.create(PlayerRecord("dan", acorns=10))

        async def second_write_loses(session, record, expected_version):
            if record.player_id == "dan":
                expected_version += 1
            await _compare_and_set(session, record, expected_version)

        monkeypatch.setattr("acornquest.storage.sqlalchemy._compare_and_set", second_write_loses)

        def transfer(first, second):
            first.acorns, second.acorns = 20, 0
            return [
                JournalEntry(
                    entry_id="j1",
                    player_id="ann",
                    kind=JournalKind.BATTLE_WON,
                    message="won",
                    timestamp=FrozenClock().now,
                )
            ]

        with pytest.raises(Conflict):
            await store.update_pair("ann", "dan", transfer)

        ann, dan = await store.get("ann"), await store.get("dan")
        assert (ann.acorns, ann.version) == (10, 0)
        assert (dan.acorns, dan.version) == (10, 0)
        assert await audit.journal_for("ann") == []
    finally:
        await storage.dispose()
