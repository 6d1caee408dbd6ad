"""Collaborators the engine consumes: course data and the class calendar."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Protocol


@dataclass(slots=True, frozen=True)
class AttendanceMark:
    accepted: bool
    reason: str | None = None


class CourseDataProvider(Protocol):
    async def is_assignment_complete(self, player_id: str, assignment_id: str) -> bool:
        ...


class AttendanceProvider(Protocol):
    async def mark_attendance(self, player_id: str, event_id: str, day: date) -> AttendanceMark:
        ...


class InMemoryCourseData(CourseDataProvider):
    """Submission status kept in a set; useful for tests and local runs."""

    def __init__(self) -> None:
        self._completed: set[tuple[str, str]] = set()

    def complete(self, player_id: str, assignment_id: str) -> None:
        self._completed.add((player_id, assignment_id))

    async def is_assignment_complete(self, player_id: str, assignment_id: str) -> bool:
        return (player_id, assignment_id) in self._completed


class InMemoryAttendanceProvider(AttendanceProvider):
    """Accepts every mark except for events explicitly closed."""

    def __init__(self) -> None:
        self._closed: dict[str, str] = {}

    def close_event(self, event_id: str, reason: str = "outside the lecture window") -> None:
        self._closed[event_id] = reason

    async def mark_attendance(self, player_id: str, event_id: str, day: date) -> AttendanceMark:
        reason = self._closed.get(event_id)
        if reason is not None:
            return AttendanceMark(accepted=False, reason=reason)
        return AttendanceMark(accepted=True)
