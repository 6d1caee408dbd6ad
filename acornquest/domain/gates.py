"""Cooldown and shield windows.

All checks take an explicit ``now`` from the server clock; stored timestamps
may be naive (legacy rows) and are read as UTC.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

BATTLE_COOLDOWN = timedelta(hours=8)
SHIELD_DURATION = timedelta(hours=8)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None or moment.tzinfo.utcoffset(moment) is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def can_battle(
    last_battle_time: datetime | None,
    now: datetime,
    cooldown: timedelta = BATTLE_COOLDOWN,
) -> bool:
    if last_battle_time is None:
        return True
    return as_utc(now) - as_utc(last_battle_time) >= cooldown


def time_until_next_battle(
    last_battle_time: datetime | None,
    now: datetime,
    cooldown: timedelta = BATTLE_COOLDOWN,
) -> timedelta:
    if last_battle_time is None:
        return timedelta(0)
    return max(timedelta(0), as_utc(last_battle_time) + cooldown - as_utc(now))


def is_shielded(shield_end_time: datetime | None, now: datetime) -> bool:
    if shield_end_time is None:
        return False
    return as_utc(now) < as_utc(shield_end_time)


def shield_time_remaining(shield_end_time: datetime | None, now: datetime) -> timedelta:
    if shield_end_time is None:
        return timedelta(0)
    return max(timedelta(0), as_utc(shield_end_time) - as_utc(now))
