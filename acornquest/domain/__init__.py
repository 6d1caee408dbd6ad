"""Domain models and services."""

from .battle import BattleOutcome, SideResult, resolve_battle
from .events import EventBus
from .exceptions import (
    AcornQuestError,
    AssignmentIncomplete,
    AttendanceRejected,
    ClaimLocked,
    Conflict,
    NoOpponentAvailable,
    NotEligible,
    PlayerNotFound,
    StorageUnavailable,
)
from .leveling import level_of, xp_into_level
from .player import BattleStatus, PlayerProfile, PlayerService
from .settlement import AttendanceReward, BattleSettlement, ClaimResult, ReversalResult, SettlementService
from .streak import AttendanceStreak, attendance_reward, advance_streak

__all__ = [
    "BattleOutcome",
    "SideResult",
    "resolve_battle",
    "EventBus",
    "AcornQuestError",
    "AssignmentIncomplete",
    "AttendanceRejected",
    "ClaimLocked",
    "Conflict",
    "NoOpponentAvailable",
    "NotEligible",
    "PlayerNotFound",
    "StorageUnavailable",
    "level_of",
    "xp_into_level",
    "BattleStatus",
    "PlayerProfile",
    "PlayerService",
    "AttendanceReward",
    "BattleSettlement",
    "ClaimResult",
    "ReversalResult",
    "SettlementService",
    "AttendanceStreak",
    "attendance_reward",
    "advance_streak",
]
