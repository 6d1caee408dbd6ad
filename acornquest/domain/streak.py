"""Attendance streaks and the streak-scaled attendance reward."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal

BASE_ACORNS = 5
BASE_XP = 10


@dataclass(slots=True, frozen=True)
class StreakTier:
    min_streak: int
    multiplier: float
    label: str


STREAK_TIERS: tuple[StreakTier, ...] = (
    StreakTier(1, 1.0, "First class!"),
    StreakTier(3, 1.2, "3-day streak!"),
    StreakTier(5, 1.5, "5-day streak!"),
    StreakTier(7, 2.0, "Week streak!"),
    StreakTier(14, 2.5, "2-week streak!"),
    StreakTier(21, 3.0, "3-week streak!"),
    StreakTier(30, 4.0, "Month streak!"),
)


@dataclass(slots=True, frozen=True)
class AttendanceStreak:
    current_streak: int = 0
    last_attendance_date: date | None = None
    total_days_attended: int = 0


@dataclass(slots=True, frozen=True)
class StreakReward:
    acorns: int
    xp: int
    tier: StreakTier

    @property
    def multiplier(self) -> float:
        return self.tier.multiplier


def streak_tier(streak: int) -> StreakTier:
    """Highest tier whose threshold ``streak`` meets (the first tier for 0)."""
    if streak < 0:
        raise ValueError(f"Streak cannot be negative: {streak}")
    result = STREAK_TIERS[0]
    for tier in STREAK_TIERS:
        if streak < tier.min_streak:
            break
        result = tier
    return result


def streak_multiplier(streak: int) -> float:
    return streak_tier(streak).multiplier


def next_streak_value(previous_streak: int, previous_date: date | None, day: date) -> int:
    if previous_date is None:
        return 1
    gap = (day - previous_date).days
    if gap == 0:
        return max(previous_streak, 1)
    if gap == 1:
        return previous_streak + 1
    # A missed day or a back-dated mark breaks the streak.
    return 1


def advance_streak(previous: AttendanceStreak, day: date) -> AttendanceStreak:
    """Fold one attended calendar day into the streak state; ``day`` becomes the last attended date."""
    return AttendanceStreak(
        current_streak=next_streak_value(previous.current_streak, previous.last_attendance_date, day),
        last_attendance_date=day,
        total_days_attended=previous.total_days_attended + 1,
    )


def rewind_total(previous: AttendanceStreak) -> AttendanceStreak:
    """Drop one attended day from the running total; the counter itself stays."""
    return replace(previous, total_days_attended=max(0, previous.total_days_attended - 1))


def attendance_reward(streak: int) -> StreakReward:
    tier = streak_tier(streak)
    factor = Decimal(str(tier.multiplier))
    return StreakReward(
        acorns=math.floor(BASE_ACORNS * factor),
        xp=math.floor(BASE_XP * factor),
        tier=tier,
    )
