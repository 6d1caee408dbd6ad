"""Validation utilities for AcornQuest configuration."""

from __future__ import annotations

from .config import AcornQuestConfig


def validate_config(config: AcornQuestConfig) -> list[str]:
    """Return list of validation errors discovered in the configuration."""
    errors: list[str] = []

    storage = config.storage
    if storage.backend not in ("memory", "sqlalchemy"):
        errors.append(f"Unsupported storage backend '{storage.backend}'.")
    if storage.backend == "sqlalchemy" and not storage.resolve_dsn():
        errors.append("SQLAlchemy backend requires a DSN.")
    if storage.timeout_seconds <= 0:
        errors.append("Storage 'timeout_seconds' must be positive.")

    battle = config.battle
    if battle.cooldown_seconds < 0:
        errors.append("Battle 'cooldown_seconds' cannot be negative.")
    if battle.shield_seconds < 0:
        errors.append("Battle 'shield_seconds' cannot be negative.")
    if battle.max_power_roll < 0:
        errors.append("Battle 'max_power_roll' cannot be negative.")

    rewards = config.rewards
    for name in ("starting_acorns", "assignment_acorns", "assignment_xp"):
        value = getattr(rewards, name)
        if value < 0:
            errors.append(f"Reward '{name}' cannot be negative (got {value}).")
    if rewards.max_conflict_retries <= 0:
        errors.append("Reward 'max_conflict_retries' must be positive.")

    return errors


__all__ = ["validate_config"]
