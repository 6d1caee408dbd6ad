"""Settlement of battles and coursework rewards onto player records.

Every balance change in AcornQuest goes through :class:`SettlementService`.
Calculations are delegated to the pure modules (``battle``, ``streak``,
``leveling``); this module reads the affected records, runs the calculator on
the fresh copies handed out by the store, and commits balances, ledger keys and
audit rows in one store transaction.

Claims are idempotent per ``(player, event id)``: the membership test and the
insert happen inside the same compare-and-set commit, so redundant completion
signals racing each other pay at most once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from random import Random
from typing import Awaitable, Sequence, TypeVar
from uuid import uuid4

from ..config import BattleConfig, RewardConfig
from ..storage.base import (
    AuditStore,
    BattleRecord,
    BattleSideSnapshot,
    JournalEntry,
    JournalKind,
    PlayerRecord,
    PlayerStore,
    bounded,
)
from .battle import BattleOutcome, SideResult, resolve_battle, roll_power_bonus
from .economy import Balance
from .events import BATTLE_RESOLVED, LEVEL_UP, REWARD_CLAIMED, REWARD_REVERSED, EventBus
from .exceptions import (
    AssignmentIncomplete,
    AttendanceRejected,
    ClaimLocked,
    Conflict,
    NoOpponentAvailable,
    NotEligible,
)
from .gates import Clock, can_battle, is_shielded, time_until_next_battle, utc_now
from .leveling import level_of, levels_gained
from .providers import AttendanceProvider, CourseDataProvider
from .streak import BASE_ACORNS, BASE_XP, advance_streak, attendance_reward, rewind_total, streak_tier

T = TypeVar("T")

logger = logging.getLogger(__name__)


def attendance_key(day: date) -> str:
    return f"attendance:{day.isoformat()}"


def assignment_key(assignment_id: str) -> str:
    return f"assignment:{assignment_id}"


@dataclass(slots=True, frozen=True)
class ClaimResult:
    player_id: str
    event_id: str
    already_claimed: bool
    acorns: int = 0
    xp: int = 0
    new_level: int = 1
    level_up: bool = False


@dataclass(slots=True, frozen=True)
class AttendanceReward:
    player_id: str
    day: date
    already_claimed: bool
    acorns: int
    xp: int
    multiplier: float
    streak: int
    streak_label: str
    new_level: int
    level_up: bool = False
    base_acorns: int = BASE_ACORNS
    base_xp: int = BASE_XP


@dataclass(slots=True, frozen=True)
class ReversalResult:
    player_id: str
    event_id: str
    reversed: bool
    acorns_removed: int = 0
    xp_removed: int = 0


@dataclass(slots=True, frozen=True)
class BattleSettlement:
    outcome: BattleOutcome
    record: BattleRecord
    attacker: PlayerRecord
    defender: PlayerRecord

    @property
    def attacker_won(self) -> bool:
        return self.outcome.attacker_won


class _AlreadyClaimed(Exception):
    """Aborts a ledger commit without writing anything."""


class _NotClaimed(Exception):
    """Aborts a reversal for a key that was never paid."""


class SettlementService:
    """Apply battle, attendance and assignment outcomes atomically."""

    def __init__(
        self,
        player_store: PlayerStore,
        audit_store: AuditStore,
        event_bus: EventBus,
        *,
        battle_config: BattleConfig | None = None,
        reward_config: RewardConfig | None = None,
        course_data: CourseDataProvider | None = None,
        attendance: AttendanceProvider | None = None,
        storage_timeout: float = 5.0,
        rng: Random | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._players = player_store
        self._audit_store = audit_store
        self._events = event_bus
        self._battle = battle_config or BattleConfig()
        self._rewards = reward_config or RewardConfig()
        self._course_data = course_data
        self._attendance = attendance
        self._timeout = storage_timeout
        self._rng = rng or Random()
        self._clock = clock

    # -- battles ---------------------------------------------------------

    async def initiate_battle(self, attacker_id: str) -> BattleSettlement:
        """Pick a random unshielded opponent, resolve the battle and settle both sides.

        Raises :class:`NotEligible` while the attacker's cooldown runs and
        :class:`NoOpponentAvailable` when nobody can be attacked. A
        :class:`Conflict` is surfaced rather than retried: the caller decides
        whether to start a new battle.
        """
        now = self._clock()
        cooldown = self._battle.cooldown
        attacker = await self._bounded("get attacker", self._players.get(attacker_id))
        if not can_battle(attacker.last_battle_time, now, cooldown):
            raise NotEligible(time_until_next_battle(attacker.last_battle_time, now, cooldown))

        players = await self._bounded("list players", self._players.list_players())
        eligible = [
            player
            for player in players
            if player.player_id != attacker_id and not is_shielded(player.shield_end_time, now)
        ]
        if not eligible:
            raise NoOpponentAvailable("Every other player is shielded or no other player exists")
        defender_id = self._rng.choice(eligible).player_id

        attacker_roll = roll_power_bonus(self._rng, self._battle.max_power_roll)
        defender_roll = roll_power_bonus(self._rng, self._battle.max_power_roll)
        battle_id = uuid4().hex
        settled: list[tuple[BattleOutcome, BattleRecord]] = []

        def settle(attacker_rec: PlayerRecord, defender_rec: PlayerRecord) -> Sequence:
            # Re-checked on the fresh copies: a second session may have battled meanwhile.
            if not can_battle(attacker_rec.last_battle_time, now, cooldown):
                raise NotEligible(time_until_next_battle(attacker_rec.last_battle_time, now, cooldown))
            if is_shielded(defender_rec.shield_end_time, now):
                raise Conflict(f"Player {defender_rec.player_id} became shielded before settlement")

            outcome = resolve_battle(
                attacker_rec,
                defender_rec,
                attacker_roll=attacker_roll,
                defender_roll=defender_roll,
            )
            record = BattleRecord(
                battle_id=battle_id,
                attacker_id=attacker_rec.player_id,
                defender_id=defender_rec.player_id,
                winner_id=attacker_rec.player_id if outcome.attacker_won else defender_rec.player_id,
                timestamp=now,
                attacker=_side_snapshot(attacker_rec, outcome.attacker, outcome.attacker_power, attacker_roll),
                defender=_side_snapshot(defender_rec, outcome.defender, outcome.defender_power, defender_roll),
            )
            journal = [
                _battle_journal(
                    attacker_rec, defender_rec.name, outcome.attacker, outcome.attacker_won, battle_id, now
                ),
                _battle_journal(
                    defender_rec, attacker_rec.name, outcome.defender, outcome.defender_won, battle_id, now
                ),
            ]

            attacker_rec.xp, attacker_rec.acorns = outcome.attacker.new_xp, outcome.attacker.new_acorns
            defender_rec.xp, defender_rec.acorns = outcome.defender.new_xp, outcome.defender.new_acorns
            attacker_rec.last_battle_time = now
            # Win or lose, the defender can not be farmed for the next window.
            defender_rec.shield_end_time = now + self._battle.shield

            settled[:] = [(outcome, record)]
            return [record, *journal]

        try:
            attacker_after, defender_after = await self._bounded(
                "settle battle", self._players.update_pair(attacker_id, defender_id, settle)
            )
        except Conflict:
            logger.warning("Battle %s between %s and %s hit a conflict.", battle_id, attacker_id, defender_id)
            await self._audit("battle.conflict", {"attacker_id": attacker_id, "defender_id": defender_id})
            raise

        outcome, record = settled[0]
        logger.info(
            "Battle %s settled: %s vs %s, winner %s (%s vs %s power, %s acorns).",
            battle_id,
            attacker_id,
            defender_id,
            record.winner_id,
            outcome.attacker_power,
            outcome.defender_power,
            outcome.acorns_stolen,
        )
        await self._events.publish(
            BATTLE_RESOLVED,
            {
                "battle_id": battle_id,
                "attacker_id": attacker_id,
                "defender_id": defender_id,
                "winner_id": record.winner_id,
                "acorns_stolen": outcome.acorns_stolen,
            },
        )
        await self._announce_level_up(attacker_id, record.attacker.xp, attacker_after.xp)
        await self._announce_level_up(defender_id, record.defender.xp, defender_after.xp)
        return BattleSettlement(
            outcome=outcome,
            record=record,
            attacker=attacker_after,
            defender=defender_after,
        )

    # -- claim ledger ------------------------------------------------------

    async def claim_reward(
        self,
        player_id: str,
        event_id: str,
        reward_acorns: int,
        reward_xp: int,
        *,
        kind: JournalKind = JournalKind.ASSIGNMENT,
        message: str | None = None,
    ) -> ClaimResult:
        """Pay ``event_id`` once; repeats report ``already_claimed`` and change nothing."""
        if reward_acorns < 0 or reward_xp < 0:
            raise ValueError("Reward amounts cannot be negative")
        xp_before: list[int] = []

        def pay(record: PlayerRecord) -> Sequence:
            if event_id in record.completed_reward_ids:
                raise _AlreadyClaimed()
            xp_before[:] = [record.xp]
            balance = Balance(xp=record.xp, acorns=record.acorns)
            balance.grant(xp=reward_xp, acorns=reward_acorns)
            record.xp, record.acorns = balance.xp, balance.acorns
            record.completed_reward_ids.add(event_id)
            return [
                JournalEntry(
                    entry_id=uuid4().hex,
                    player_id=record.player_id,
                    kind=kind,
                    message=message or f"Quest complete! +{reward_acorns} acorns +{reward_xp} XP",
                    timestamp=self._clock(),
                    xp_delta=reward_xp,
                    acorn_delta=reward_acorns,
                    reference=event_id,
                )
            ]

        try:
            record = await self._update_with_retries(player_id, pay, f"claim {event_id}")
        except _AlreadyClaimed:
            logger.debug("Reward %s for %s already claimed.", event_id, player_id)
            current = await self._bounded("get player", self._players.get(player_id))
            return ClaimResult(
                player_id=player_id,
                event_id=event_id,
                already_claimed=True,
                new_level=current.level,
            )

        logger.info("Paid %s to %s: +%s acorns, +%s XP.", event_id, player_id, reward_acorns, reward_xp)
        await self._events.publish(
            REWARD_CLAIMED,
            {"player_id": player_id, "event_id": event_id, "acorns": reward_acorns, "xp": reward_xp},
        )
        leveled = await self._announce_level_up(player_id, xp_before[0], record.xp)
        return ClaimResult(
            player_id=player_id,
            event_id=event_id,
            already_claimed=False,
            acorns=reward_acorns,
            xp=reward_xp,
            new_level=record.level,
            level_up=leveled,
        )

    async def claim_assignment_reward(self, player_id: str, assignment_id: str) -> ClaimResult:
        event_id = assignment_key(assignment_id)
        current = await self._bounded("get player", self._players.get(player_id))
        if event_id in current.completed_reward_ids:
            return ClaimResult(
                player_id=player_id,
                event_id=event_id,
                already_claimed=True,
                new_level=current.level,
            )
        if self._course_data is None:
            raise RuntimeError("No course data provider configured")
        complete = await self._bounded(
            "course data", self._course_data.is_assignment_complete(player_id, assignment_id)
        )
        if not complete:
            await self._audit("assignment.incomplete", {"player_id": player_id, "assignment_id": assignment_id})
            raise AssignmentIncomplete(f"Assignment {assignment_id} is not complete for {player_id}")
        return await self.claim_reward(
            player_id,
            event_id,
            self._rewards.assignment_acorns,
            self._rewards.assignment_xp,
            kind=JournalKind.ASSIGNMENT,
            message=(
                f"Completed assignment {assignment_id}! "
                f"+{self._rewards.assignment_acorns} acorns +{self._rewards.assignment_xp} XP"
            ),
        )

    # -- attendance --------------------------------------------------------

    async def mark_attendance(self, player_id: str, event_id: str, day: date) -> AttendanceReward:
        """Ask the calendar to accept the mark, then pay the day's attendance reward."""
        if self._attendance is None:
            raise RuntimeError("No attendance provider configured")
        mark = await self._bounded(
            "calendar", self._attendance.mark_attendance(player_id, event_id, day)
        )
        if not mark.accepted:
            reason = mark.reason or "rejected by calendar"
            await self._audit(
                "attendance.rejected",
                {"player_id": player_id, "event_id": event_id, "day": day.isoformat(), "reason": reason},
            )
            raise AttendanceRejected(reason)
        return await self.claim_attendance_reward(player_id, day)

    async def claim_attendance_reward(self, player_id: str, day: date) -> AttendanceReward:
        """Advance the streak and pay the tiered reward for ``day``, once per calendar day."""
        event_id = attendance_key(day)
        paid: list[tuple[int, int, int, str]] = []
        xp_before: list[int] = []

        def attend(record: PlayerRecord) -> Sequence:
            if event_id in record.completed_reward_ids:
                raise _AlreadyClaimed()
            streak = advance_streak(record.attendance, day)
            reward = attendance_reward(streak.current_streak)
            xp_before[:] = [record.xp]
            balance = Balance(xp=record.xp, acorns=record.acorns)
            balance.grant(xp=reward.xp, acorns=reward.acorns)
            # Streak, ledger key and balances commit together or not at all.
            record.xp, record.acorns = balance.xp, balance.acorns
            record.attendance = streak
            record.completed_reward_ids.add(event_id)
            paid[:] = [(reward.acorns, reward.xp, streak.current_streak, reward.tier.label)]
            bonus = f" ({reward.multiplier}x streak bonus!)" if reward.multiplier > 1 else ""
            return [
                JournalEntry(
                    entry_id=uuid4().hex,
                    player_id=record.player_id,
                    kind=JournalKind.ATTENDANCE,
                    message=f"Attended class! +{reward.acorns} acorns +{reward.xp} XP{bonus}",
                    timestamp=self._clock(),
                    xp_delta=reward.xp,
                    acorn_delta=reward.acorns,
                    reference=event_id,
                )
            ]

        try:
            record = await self._update_with_retries(player_id, attend, f"claim {event_id}")
        except _AlreadyClaimed:
            logger.debug("Attendance for %s on %s already claimed.", player_id, day)
            current = await self._bounded("get player", self._players.get(player_id))
            tier = streak_tier(current.attendance.current_streak)
            return AttendanceReward(
                player_id=player_id,
                day=day,
                already_claimed=True,
                acorns=0,
                xp=0,
                multiplier=tier.multiplier,
                streak=current.attendance.current_streak,
                streak_label=tier.label,
                new_level=current.level,
            )

        acorns, xp, streak, label = paid[0]
        tier = streak_tier(streak)
        logger.info(
            "Attendance for %s on %s paid: +%s acorns, +%s XP at streak %s.",
            player_id, day, acorns, xp, streak,
        )
        await self._events.publish(
            REWARD_CLAIMED,
            {"player_id": player_id, "event_id": event_id, "acorns": acorns, "xp": xp, "streak": streak},
        )
        leveled = await self._announce_level_up(player_id, xp_before[0], record.xp)
        return AttendanceReward(
            player_id=player_id,
            day=day,
            already_claimed=False,
            acorns=acorns,
            xp=xp,
            multiplier=tier.multiplier,
            streak=streak,
            streak_label=label,
            new_level=record.level,
            level_up=leveled,
        )

    async def unclaim_attendance_reward(self, player_id: str, day: date) -> ReversalResult:
        """Undo the balance effect of the latest attendance claim.

        Only the most recent attendance date can be reversed; once a later day
        has built on it :class:`ClaimLocked` is raised. The streak counter is
        not rolled back, only the day total.
        """
        event_id = attendance_key(day)
        removed: list[tuple[int, int]] = []

        def reverse(record: PlayerRecord) -> Sequence:
            if event_id not in record.completed_reward_ids:
                raise _NotClaimed()
            if record.attendance.last_attendance_date != day:
                raise ClaimLocked(
                    f"Attendance on {day.isoformat()} is followed by later attendance and can not be undone"
                )
            reward = attendance_reward(record.attendance.current_streak)
            balance = Balance(xp=record.xp, acorns=record.acorns)
            balance.revoke(xp=reward.xp, acorns=reward.acorns)
            xp_removed, acorns_removed = record.xp - balance.xp, record.acorns - balance.acorns
            record.xp, record.acorns = balance.xp, balance.acorns
            record.completed_reward_ids.discard(event_id)
            record.attendance = rewind_total(record.attendance)
            removed[:] = [(acorns_removed, xp_removed)]
            return [
                JournalEntry(
                    entry_id=uuid4().hex,
                    player_id=record.player_id,
                    kind=JournalKind.ATTENDANCE_REVERSED,
                    message=f"Attendance undone. -{acorns_removed} acorns -{xp_removed} XP",
                    timestamp=self._clock(),
                    xp_delta=-xp_removed,
                    acorn_delta=-acorns_removed,
                    reference=event_id,
                )
            ]

        try:
            await self._update_with_retries(player_id, reverse, f"reverse {event_id}")
        except _NotClaimed:
            logger.debug("Nothing to reverse for %s on %s.", player_id, day)
            return ReversalResult(player_id=player_id, event_id=event_id, reversed=False)

        acorns_removed, xp_removed = removed[0]
        logger.info(
            "Attendance for %s on %s reversed: -%s acorns, -%s XP.", player_id, day, acorns_removed, xp_removed
        )
        await self._events.publish(
            REWARD_REVERSED,
            {"player_id": player_id, "event_id": event_id, "acorns": acorns_removed, "xp": xp_removed},
        )
        return ReversalResult(
            player_id=player_id,
            event_id=event_id,
            reversed=True,
            acorns_removed=acorns_removed,
            xp_removed=xp_removed,
        )

    # -- plumbing ----------------------------------------------------------

    async def _bounded(self, operation: str, awaitable: Awaitable[T]) -> T:
        return await bounded(operation, awaitable, self._timeout)

    async def _update_with_retries(self, player_id: str, mutation, operation: str) -> PlayerRecord:
        attempts = max(1, self._rewards.max_conflict_retries)
        for attempt in range(1, attempts + 1):
            try:
                return await self._bounded(operation, self._players.update(player_id, mutation))
            except Conflict:
                if attempt >= attempts:
                    logger.warning("%s for %s gave up after %s conflicts.", operation, player_id, attempt)
                    raise
                logger.warning(
                    "%s for %s conflicted (attempt %s/%s); retrying.", operation, player_id, attempt, attempts
                )
        raise Conflict(f"{operation} for {player_id} did not commit")

    async def _announce_level_up(self, player_id: str, xp_before: int, xp_after: int) -> bool:
        gained = levels_gained(xp_before, xp_after)
        if gained:
            await self._events.publish(
                LEVEL_UP,
                {"player_id": player_id, "level": level_of(xp_after), "levels_gained": gained},
            )
        return gained > 0

    async def _audit(self, action: str, payload: dict) -> None:
        try:
            await self._bounded(
                f"audit {action}",
                self._audit_store.add_entry(action, {"timestamp": self._clock().isoformat(), **payload}),
            )
        except Exception:
            logger.warning("Audit entry '%s' could not be written.", action, exc_info=True)


def _side_snapshot(record: PlayerRecord, side: SideResult, power: int, roll: int) -> BattleSideSnapshot:
    return BattleSideSnapshot(
        player_id=record.player_id,
        name=record.name,
        level=record.level,
        xp=record.xp,
        power=power,
        roll=roll,
        xp_gained=side.xp_gained,
        acorns_change=side.acorns_change,
    )


def _battle_journal(
    record: PlayerRecord,
    opponent_name: str,
    side: SideResult,
    won: bool,
    battle_id: str,
    now: datetime,
) -> JournalEntry:
    opponent = opponent_name or "an unknown rival"
    if won:
        message = f"Won battle against {opponent}! Gained {side.xp_gained} XP and {side.acorns_change} acorns."
    else:
        message = (
            f"Lost battle to {opponent}. Gained {side.xp_gained} XP "
            f"but lost {abs(side.acorns_change)} acorns."
        )
    return JournalEntry(
        entry_id=uuid4().hex,
        player_id=record.player_id,
        kind=JournalKind.BATTLE_WON if won else JournalKind.BATTLE_LOST,
        message=message,
        timestamp=now,
        xp_delta=side.xp_gained,
        acorn_delta=side.acorns_change,
        reference=battle_id,
    )
