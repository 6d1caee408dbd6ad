"""Configuration models for AcornQuest."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Literal

StorageBackend = Literal["memory", "sqlalchemy"]

_TRUE = {"1", "true", "yes"}


@dataclass(slots=True)
class StorageConfig:
    """Configure how player state and audit history are persisted."""

    backend: StorageBackend = "memory"
    dsn: str | None = None
    echo_sql: bool = False
    timeout_seconds: float = 5.0

    def resolve_dsn(self) -> str | None:
        if self.dsn:
            return self.dsn
        if self.backend == "sqlalchemy":
            return "sqlite+aiosqlite:///./acornquest.db"
        return None


@dataclass(slots=True)
class BattleConfig:
    """Temporal windows and randomness for PvP battles."""

    cooldown_seconds: int = 8 * 60 * 60
    shield_seconds: int = 8 * 60 * 60
    max_power_roll: int = 200

    @property
    def cooldown(self) -> timedelta:
        return timedelta(seconds=self.cooldown_seconds)

    @property
    def shield(self) -> timedelta:
        return timedelta(seconds=self.shield_seconds)


@dataclass(slots=True)
class RewardConfig:
    """Starting grant and fixed payouts for coursework events."""

    starting_acorns: int = 50
    assignment_acorns: int = 10
    assignment_xp: int = 50
    max_conflict_retries: int = 3


@dataclass(slots=True)
class AcornQuestConfig:
    """Top-level configuration container."""

    bot_token: str = ""
    storage: StorageConfig = field(default_factory=StorageConfig)
    battle: BattleConfig = field(default_factory=BattleConfig)
    rewards: RewardConfig = field(default_factory=RewardConfig)
    rng_seed: int | None = None

    @classmethod
    def from_env(cls) -> "AcornQuestConfig":
        """Create config from environment variables prefixed with ACORNQUEST_."""
        prefix = "ACORNQUEST_"
        backend = os.getenv(f"{prefix}STORAGE_BACKEND", "memory")
        if backend not in ("memory", "sqlalchemy"):
            raise ValueError(f"Unsupported {prefix}STORAGE_BACKEND '{backend}'")

        storage = StorageConfig(
            backend=backend,
            dsn=os.getenv(f"{prefix}STORAGE_DSN"),
            echo_sql=os.getenv(f"{prefix}STORAGE_ECHO_SQL", "false").lower() in _TRUE,
            timeout_seconds=_env_number(f"{prefix}STORAGE_TIMEOUT", 5.0, float),
        )
        battle = BattleConfig(
            cooldown_seconds=_env_number(f"{prefix}BATTLE_COOLDOWN", 8 * 60 * 60, int),
            shield_seconds=_env_number(f"{prefix}BATTLE_SHIELD", 8 * 60 * 60, int),
            max_power_roll=_env_number(f"{prefix}BATTLE_MAX_ROLL", 200, int),
        )
        rewards = RewardConfig(
            starting_acorns=_env_number(f"{prefix}STARTING_ACORNS", 50, int),
            assignment_acorns=_env_number(f"{prefix}ASSIGNMENT_ACORNS", 10, int),
            assignment_xp=_env_number(f"{prefix}ASSIGNMENT_XP", 50, int),
            max_conflict_retries=_env_number(f"{prefix}MAX_CONFLICT_RETRIES", 3, int),
        )
        seed = os.getenv(f"{prefix}RNG_SEED")
        return cls(
            bot_token=os.getenv(f"{prefix}BOT_TOKEN", ""),
            storage=storage,
            battle=battle,
            rewards=rewards,
            rng_seed=int(seed) if seed else None,
        )


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from exc
