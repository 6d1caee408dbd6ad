"""Monte-Carlo simulation to evaluate battle balance."""

from __future__ import annotations

from dataclasses import dataclass
from random import Random

from ..config import BattleConfig
from ..domain.battle import resolve_battle, roll_power_bonus
from ..domain.economy import Balance


@dataclass(slots=True)
class SimulationResult:
    attacker_xp: int
    defender_xp: int
    battles: int
    attacker_wins: int = 0
    attacker_xp_gained: int = 0
    attacker_acorns_change: int = 0

    @property
    def win_rate(self) -> float:
        return self.attacker_wins / self.battles if self.battles else 0.0

    @property
    def average_acorns(self) -> float:
        return self.attacker_acorns_change / self.battles if self.battles else 0.0


class BattleSimulator:
    """Replay one pairing many times with fresh rolls; balances reset every battle."""

    def __init__(self, config: BattleConfig | None = None, *, rng: Random | None = None) -> None:
        self._config = config or BattleConfig()
        self._rng = rng or Random()

    def simulate(
        self, attacker_xp: int, defender_xp: int, *, battles: int = 1000, acorns: int = 50
    ) -> SimulationResult:
        if battles <= 0:
            raise ValueError("battles must be positive")
        result = SimulationResult(attacker_xp=attacker_xp, defender_xp=defender_xp, battles=battles)
        for _ in range(battles):
            outcome = resolve_battle(
                Balance(xp=attacker_xp, acorns=acorns),
                Balance(xp=defender_xp, acorns=acorns),
                attacker_roll=roll_power_bonus(self._rng, self._config.max_power_roll),
                defender_roll=roll_power_bonus(self._rng, self._config.max_power_roll),
            )
            if outcome.attacker_won:
                result.attacker_wins += 1
            result.attacker_xp_gained += outcome.attacker.xp_gained
            result.attacker_acorns_change += outcome.attacker.acorns_change
        return result

    def level_matrix(self, levels: list[int], *, battles: int = 500) -> dict[tuple[int, int], float]:
        """Attacker win rate for every (attacker level, defender level) pair at level floor XP."""
        return {
            (attacker, defender): self.simulate(
                (attacker - 1) * 100, (defender - 1) * 100, battles=battles
            ).win_rate
            for attacker in levels
            for defender in levels
        }
