from datetime import date

import pytest

from acornquest.domain.streak import (
    AttendanceStreak,
    advance_streak,
    attendance_reward,
    next_streak_value,
    rewind_total,
    streak_multiplier,
    streak_tier,
)

DAY = date(2024, 9, 2)


def test_multiplier_lookup():
    assert streak_multiplier(1) == 1.0
    assert streak_multiplier(2) == 1.0
    assert streak_multiplier(3) == 1.2
    assert streak_multiplier(6) == 1.5
    assert streak_multiplier(13) == 2.0
    assert streak_multiplier(29) == 3.0
    assert streak_multiplier(30) == 4.0
    assert streak_multiplier(365) == 4.0
    assert streak_tier(30).label == "Month streak!"


def test_streak_transitions():
    assert next_streak_value(0, None, DAY) == 1
    assert next_streak_value(4, DAY, DAY) == 4
    assert next_streak_value(4, DAY, date(2024, 9, 3)) == 5
    assert next_streak_value(4, DAY, date(2024, 9, 4)) == 1
    assert next_streak_value(4, DAY, date(2024, 10, 30)) == 1


def test_advance_streak_across_month_boundary():
    state = AttendanceStreak(current_streak=2, last_attendance_date=date(2024, 8, 31), total_days_attended=2)
    state = advance_streak(state, date(2024, 9, 1))
    assert state == AttendanceStreak(3, date(2024, 9, 1), 3)


def test_backdated_day_breaks_streak():
    assert next_streak_value(30, DAY, date(2024, 8, 28)) == 1
    state = AttendanceStreak(current_streak=3, last_attendance_date=DAY, total_days_attended=3)
    state = advance_streak(state, date(2024, 8, 20))
    assert state == AttendanceStreak(1, date(2024, 8, 20), 4)


def test_rewards_are_floored():
    assert (attendance_reward(1).acorns, attendance_reward(1).xp) == (5, 10)
    assert (attendance_reward(3).acorns, attendance_reward(3).xp) == (6, 12)
    assert (attendance_reward(5).acorns, attendance_reward(5).xp) == (7, 15)
    assert (attendance_reward(14).acorns, attendance_reward(14).xp) == (12, 25)
    assert (attendance_reward(30).acorns, attendance_reward(30).xp) == (20, 40)


def test_rewind_total_keeps_counter():
    state = AttendanceStreak(current_streak=3, last_attendance_date=DAY, total_days_attended=3)
    assert rewind_total(state) == AttendanceStreak(3, DAY, 2)


def test_negative_streak_rejected():
    with pytest.raises(ValueError):
        streak_tier(-1)
