"""Battle resolution between two player snapshots.

Given the two power rolls, resolution is deterministic; the settlement service
draws the rolls and owns every side effect.
"""

from __future__ import annotations

from dataclasses import dataclass
from random import Random
from typing import Protocol

from .economy import Balance
from .leveling import level_of

MAX_POWER_ROLL = 200

WINNER_BASE_XP = 50
WINNER_XP_PER_LEVEL = 10
LOSER_BASE_XP = 20
LOSER_XP_PER_LEVEL = 5
BASE_ACORNS_STOLEN = 2
XP_PER_STOLEN_ACORN = 20


class Combatant(Protocol):
    xp: int
    acorns: int


@dataclass(slots=True, frozen=True)
class SideResult:
    xp_gained: int
    acorns_change: int
    new_xp: int
    new_acorns: int
    old_level: int

    @property
    def new_level(self) -> int:
        return level_of(self.new_xp)

    @property
    def level_up(self) -> bool:
        return self.new_level > self.old_level


@dataclass(slots=True, frozen=True)
class BattleOutcome:
    attacker_won: bool
    attacker: SideResult
    defender: SideResult
    attacker_power: int
    defender_power: int
    acorns_stolen: int

    @property
    def defender_won(self) -> bool:
        return not self.attacker_won


def battle_power(level: int, xp: int, roll: int) -> int:
    if roll < 0:
        raise ValueError(f"Power roll cannot be negative: {roll}")
    return level * 100 + xp + roll


def roll_power_bonus(rng: Random, max_roll: int = MAX_POWER_ROLL) -> int:
    """Uniform integer in ``[0, max_roll]``, both ends inclusive."""
    return rng.randint(0, max_roll)


def winner_xp(opponent_level: int) -> int:
    return WINNER_BASE_XP + opponent_level * WINNER_XP_PER_LEVEL


def loser_xp(opponent_level: int) -> int:
    return LOSER_BASE_XP + opponent_level * LOSER_XP_PER_LEVEL


def acorns_stolen(winner_xp_gained: int) -> int:
    return BASE_ACORNS_STOLEN + winner_xp_gained // XP_PER_STOLEN_ACORN


def resolve_battle(
    attacker: Combatant,
    defender: Combatant,
    *,
    attacker_roll: int,
    defender_roll: int,
) -> BattleOutcome:
    """Compute winner and per-side deltas.

    A tie in power goes to the defender. Both sides always gain XP; only acorns
    move, and the loser is floored at zero while the winner still receives the
    full stolen amount.
    """
    attacker_level = level_of(attacker.xp)
    defender_level = level_of(defender.xp)

    attacker_power = battle_power(attacker_level, attacker.xp, attacker_roll)
    defender_power = battle_power(defender_level, defender.xp, defender_roll)
    attacker_won = attacker_power > defender_power

    if attacker_won:
        attacker_gain = winner_xp(defender_level)
        defender_gain = loser_xp(attacker_level)
        stolen = acorns_stolen(attacker_gain)
    else:
        attacker_gain = loser_xp(defender_level)
        defender_gain = winner_xp(attacker_level)
        stolen = acorns_stolen(defender_gain)

    attacker_balance = Balance(xp=attacker.xp, acorns=attacker.acorns)
    defender_balance = Balance(xp=defender.xp, acorns=defender.acorns)
    attacker_balance.grant(xp=attacker_gain)
    defender_balance.grant(xp=defender_gain)
    if attacker_won:
        attacker_balance.grant(acorns=stolen)
        defender_balance.take_acorns(stolen)
    else:
        defender_balance.grant(acorns=stolen)
        attacker_balance.take_acorns(stolen)

    return BattleOutcome(
        attacker_won=attacker_won,
        attacker=SideResult(
            xp_gained=attacker_gain,
            acorns_change=attacker_balance.acorns - attacker.acorns,
            new_xp=attacker_balance.xp,
            new_acorns=attacker_balance.acorns,
            old_level=attacker_level,
        ),
        defender=SideResult(
            xp_gained=defender_gain,
            acorns_change=defender_balance.acorns - defender.acorns,
            new_xp=defender_balance.xp,
            new_acorns=defender_balance.acorns,
            old_level=defender_level,
        ),
        attacker_power=attacker_power,
        defender_power=defender_power,
        acorns_stolen=stolen,
    )
