"""Balance diagnostics for the battle economy."""

from .battle_simulator import BattleSimulator, SimulationResult

__all__ = ["BattleSimulator", "SimulationResult"]
