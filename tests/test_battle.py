import pytest
from random import Random

from acornquest.domain.battle import (
    acorns_stolen,
    battle_power,
    loser_xp,
    resolve_battle,
    roll_power_bonus,
    winner_xp,
)
from acornquest.domain.economy import Balance


def test_reference_battle_attacker_wins():
    outcome = resolve_battle(
        Balance(xp=150, acorns=40),
        Balance(xp=50, acorns=30),
        attacker_roll=0,
        defender_roll=0,
    )
    assert outcome.attacker_power == 350
    assert outcome.defender_power == 150
    assert outcome.attacker_won
    assert outcome.attacker.xp_gained == 60
    assert outcome.defender.xp_gained == 30
    assert outcome.acorns_stolen == 5
    assert outcome.attacker.new_acorns == 45
    assert outcome.defender.new_acorns == 25
    assert outcome.attacker.new_xp == 210
    assert outcome.attacker.new_level == 3
    assert outcome.attacker.level_up
    assert outcome.defender.new_xp == 80
    assert not outcome.defender.level_up


def test_tie_goes_to_defender():
    outcome = resolve_battle(
        Balance(xp=100, acorns=10),
        Balance(xp=100, acorns=10),
        attacker_roll=42,
        defender_roll=42,
    )
    assert outcome.attacker_power == outcome.defender_power
    assert outcome.defender_won
    assert not outcome.attacker_won
    # Defender earns the winner formula against a level 2 attacker.
    assert outcome.defender.xp_gained == winner_xp(2) == 70
    assert outcome.attacker.xp_gained == loser_xp(2) == 30
    assert outcome.defender.acorns_change == acorns_stolen(70) == 5
    assert outcome.attacker.acorns_change == -5


def test_roll_can_overturn_level_gap():
    outcome = resolve_battle(
        Balance(xp=0, acorns=10),
        Balance(xp=150, acorns=10),
        attacker_roll=200,
        defender_roll=0,
    )
    # 100 + 0 + 200 vs 200 + 150 + 0
    assert not outcome.attacker_won
    outcome = resolve_battle(
        Balance(xp=99, acorns=10),
        Balance(xp=100, acorns=10),
        attacker_roll=200,
        defender_roll=0,
    )
    assert outcome.attacker_won


def test_loser_is_floored_but_winner_gets_full_amount():
    outcome = resolve_battle(
        Balance(xp=500, acorns=0),
        Balance(xp=0, acorns=2),
        attacker_roll=0,
        defender_roll=0,
    )
    assert outcome.attacker_won
    assert outcome.acorns_stolen == 2 + winner_xp(1) // 20
    assert outcome.defender.new_acorns == 0
    assert outcome.defender.acorns_change == -2
    assert outcome.attacker.new_acorns == outcome.acorns_stolen


def test_both_sides_always_gain_xp():
    rng = Random(3)
    for _ in range(200):
        attacker = Balance(xp=rng.randint(0, 900), acorns=rng.randint(0, 20))
        defender = Balance(xp=rng.randint(0, 900), acorns=rng.randint(0, 20))
        outcome = resolve_battle(
            attacker,
            defender,
            attacker_roll=roll_power_bonus(rng),
            defender_roll=roll_power_bonus(rng),
        )
        assert outcome.attacker.xp_gained > 0 and outcome.defender.xp_gained > 0
        assert outcome.attacker.new_acorns >= 0 and outcome.defender.new_acorns >= 0
        assert outcome.attacker_won != outcome.defender_won


def test_roll_bounds_and_negative_roll():
    rng = Random(1)
    rolls = {roll_power_bonus(rng, 3) for _ in range(200)}
    assert rolls == {0, 1, 2, 3}
    with pytest.raises(ValueError):
        battle_power(1, 0, -1)
