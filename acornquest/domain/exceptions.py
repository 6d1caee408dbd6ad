"""Exceptions raised by AcornQuest domain services."""

from __future__ import annotations

from datetime import timedelta


class AcornQuestError(RuntimeError):
    """Base class for domain exceptions."""


class PlayerNotFound(AcornQuestError):
    """Raised when a player profile does not exist."""

    def __init__(self, player_id: str) -> None:
        super().__init__(f"Player {player_id} not found")
        self.player_id = player_id


class NotEligible(AcornQuestError):
    """Raised when the attacker's battle cooldown is still running."""

    def __init__(self, remaining: timedelta) -> None:
        super().__init__(f"Battle cooldown active for {int(remaining.total_seconds())} seconds")
        self.remaining = remaining

    @property
    def seconds_remaining(self) -> int:
        return int(self.remaining.total_seconds())


class NoOpponentAvailable(AcornQuestError):
    """Raised when every other player is shielded or no other player exists."""


class Conflict(AcornQuestError):
    """Raised when a compare-and-set commit lost a race; nothing was written."""


class StorageUnavailable(AcornQuestError):
    """Raised when the storage layer failed or timed out; a timed-out write may or may not have landed."""


class AssignmentIncomplete(AcornQuestError):
    """Raised when a reward is claimed for an assignment that is not complete."""


class AttendanceRejected(AcornQuestError):
    """Raised when the calendar collaborator refuses an attendance mark."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Attendance rejected: {reason}")
        self.reason = reason


class ClaimLocked(AcornQuestError):
    """Raised when an attendance claim can no longer be reversed."""
