from datetime import datetime, timedelta, timezone

from acornquest.domain.gates import (
    can_battle,
    is_shielded,
    shield_time_remaining,
    time_until_next_battle,
)

NOW = datetime(2024, 9, 2, 12, 0, tzinfo=timezone.utc)


def test_never_battled_can_battle():
    assert can_battle(None, NOW)
    assert time_until_next_battle(None, NOW) == timedelta(0)


def test_cooldown_boundary_is_inclusive():
    last = NOW - timedelta(hours=8)
    assert can_battle(last, NOW)
    assert not can_battle(last + timedelta(seconds=1), NOW)
    assert time_until_next_battle(last + timedelta(seconds=1), NOW) == timedelta(seconds=1)


def test_cooldown_right_after_battle():
    assert not can_battle(NOW, NOW)
    assert time_until_next_battle(NOW, NOW) == timedelta(hours=8)


def test_shield_window():
    end = NOW + timedelta(hours=1)
    assert is_shielded(end, NOW)
    assert shield_time_remaining(end, NOW) == timedelta(hours=1)
    assert not is_shielded(NOW, NOW)
    assert not is_shielded(None, NOW)
    assert shield_time_remaining(NOW - timedelta(minutes=5), NOW) == timedelta(0)


def test_naive_timestamps_are_read_as_utc():
    naive_last = (NOW - timedelta(hours=9)).replace(tzinfo=None)
    assert can_battle(naive_last, NOW)
    naive_shield = (NOW + timedelta(minutes=1)).replace(tzinfo=None)
    assert is_shielded(naive_shield, NOW)
