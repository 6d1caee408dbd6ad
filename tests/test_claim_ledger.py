import asyncio

import pytest

from acornquest.app import EngineApp
from acornquest.config import AcornQuestConfig, RewardConfig, StorageConfig
from acornquest.domain.events import LEVEL_UP, REWARD_CLAIMED
from acornquest.domain.exceptions import AssignmentIncomplete, Conflict, StorageUnavailable
from acornquest.domain.settlement import assignment_key
from acornquest.storage.base import JournalKind, PlayerRecord
from acornquest.storage.memory import InMemoryAuditStore, InMemoryPlayerStore


class FlakyStore(InMemoryPlayerStore):
    def __init__(self, audit_store, failures: int) -> None:
        super().__init__(audit_store)
        self.failures = failures
        self.attempts = 0

    async def update(self, player_id, mutation):
        self.attempts += 1
        if self.failures:
            self.failures -= 1
            raise Conflict(f"{player_id} changed concurrently")
        return await super().update(player_id, mutation)


class SlowStore(InMemoryPlayerStore):
    async def update(self, player_id, mutation):
        await asyncio.sleep(1)
        return await super().update(player_id, mutation)


def app_with(store, audit, **config) -> EngineApp:
    return EngineApp(AcornQuestConfig(bot_token="test", **config), player_store=store, audit_store=audit)


@pytest.mark.asyncio()
async def test_second_claim_reports_already_claimed(app):
    await app.player_service.register("ann", "Ann")

    first = await app.settlement.claim_reward("ann", "quest:1", 10, 50)
    second = await app.settlement.claim_reward("ann", "quest:1", 10, 50)

    assert not first.already_claimed
    assert (first.acorns, first.xp) == (10, 50)
    assert second.already_claimed
    assert (second.acorns, second.xp) == (0, 0)
    ann = await app.player_store.get("ann")
    assert (ann.acorns, ann.xp) == (60, 50)
    assert ann.completed_reward_ids == {"quest:1"}
    assert len(await app.player_service.journal("ann")) == 1


@pytest.mark.asyncio()
async def test_concurrent_claims_pay_once(app):
    await app.player_service.register("ann")

    results = await asyncio.gather(*(app.settlement.claim_reward("ann", "quest:1", 10, 50) for _ in range(5)))

    assert sum(not result.already_claimed for result in results) == 1
    ann = await app.player_store.get("ann")
    assert (ann.acorns, ann.xp) == (60, 50)


@pytest.mark.asyncio()
async def test_negative_reward_is_rejected(app):
    await app.player_service.register("ann")
    with pytest.raises(ValueError):
        await app.settlement.claim_reward("ann", "quest:1", -1, 0)


@pytest.mark.asyncio()
async def test_conflicts_are_retried_within_budget():
    audit = InMemoryAuditStore()
    store = FlakyStore(audit, failures=2)
    app = app_with(store, audit)
    await store.create(PlayerRecord("ann"))

    result = await app.settlement.claim_reward("ann", "quest:1", 10, 50)

    assert not result.already_claimed
    assert store.attempts == 3
    assert (await store.get("ann")).acorns == 10


@pytest.mark.asyncio()
async def test_conflict_surfaces_when_retries_run_out():
    audit = InMemoryAuditStore()
    store = FlakyStore(audit, failures=5)
    app = app_with(store, audit, rewards=RewardConfig(max_conflict_retries=2))
    await store.create(PlayerRecord("ann"))

    with pytest.raises(Conflict):
        await app.settlement.claim_reward("ann", "quest:1", 10, 50)

    assert store.attempts == 2
    ann = await store.get("ann")
    assert ann.acorns == 0 and not ann.completed_reward_ids


@pytest.mark.asyncio()
async def test_slow_store_becomes_storage_unavailable():
    audit = InMemoryAuditStore()
    store = SlowStore(audit)
    app = app_with(store, audit, storage=StorageConfig(timeout_seconds=0.05))
    await store.create(PlayerRecord("ann"))

    with pytest.raises(StorageUnavailable):
        await app.settlement.claim_reward("ann", "quest:1", 10, 50)

    assert not (await store.get("ann")).completed_reward_ids


@pytest.mark.asyncio()
async def test_incomplete_assignment_is_refused_and_audited(app):
    await app.player_service.register("ann")

    with pytest.raises(AssignmentIncomplete):
        await app.settlement.claim_assignment_reward("ann", "hw1")

    assert (await app.player_store.get("ann")).acorns == 50
    actions = [action for _, action, _ in app.audit_store.dump()]
    assert actions == ["assignment.incomplete"]


@pytest.mark.asyncio()
async def test_completed_assignment_pays_once(app):
    await app.player_service.register("ann")
    app.course_data.complete("ann", "hw1")
    claimed = []

    async def listener(payload):
        claimed.append(payload["event_id"])

    app.event_bus.subscribe(REWARD_CLAIMED, listener)

    first = await app.settlement.claim_assignment_reward("ann", "hw1")
    second = await app.settlement.claim_assignment_reward("ann", "hw1")

    assert (first.acorns, first.xp, first.already_claimed) == (10, 50, False)
    assert second.already_claimed
    assert claimed == [assignment_key("hw1")]
    ann = await app.player_store.get("ann")
    assert (ann.acorns, ann.xp) == (60, 50)
    journal = await app.player_service.journal("ann")
    assert journal[0].kind is JournalKind.ASSIGNMENT
    assert journal[0].message.startswith("Completed assignment hw1!")


@pytest.mark.asyncio()
async def test_claim_crossing_level_boundary_reports_level_up(app):
    await app.player_store.create(PlayerRecord("ann", xp=80))
    levels = []

    async def listener(payload):
        levels.append(payload["level"])

    app.event_bus.subscribe(LEVEL_UP, listener)
    result = await app.settlement.claim_reward("ann", "quest:1", 0, 50)

    assert result.level_up and result.new_level == 2
    assert levels == [2]


@pytest.mark.asyncio()
async def test_failing_listener_does_not_undo_claim(app):
    await app.player_service.register("ann")

    async def broken(payload):
        raise RuntimeError("listener exploded")

    app.event_bus.subscribe(REWARD_CLAIMED, broken)
    result = await app.settlement.claim_reward("ann", "quest:1", 10, 0)

    assert not result.already_claimed
    assert (await app.player_store.get("ann")).acorns == 60
