"""Fixed-width level curve.

Levels are never stored on their own: every caller derives them from total XP
so the two can not drift apart.
"""

from __future__ import annotations

XP_PER_LEVEL = 100


def _check_xp(xp: int) -> None:
    if xp < 0:
        raise ValueError(f"XP cannot be negative: {xp}")


def level_of(xp: int) -> int:
    """Return the level reached with ``xp`` total experience (level 1 at 0 XP)."""
    _check_xp(xp)
    return xp // XP_PER_LEVEL + 1


def xp_into_level(xp: int) -> int:
    """XP earned inside the current level."""
    return xp - (level_of(xp) - 1) * XP_PER_LEVEL


def xp_needed_for_next_level(xp: int = 0) -> int:
    _check_xp(xp)
    return XP_PER_LEVEL


def xp_to_next_level(xp: int) -> int:
    return XP_PER_LEVEL - xp_into_level(xp)


def levels_gained(xp_before: int, xp_after: int) -> int:
    """Number of levels crossed between two XP totals (0 when none or XP went down)."""
    return max(0, level_of(xp_after) - level_of(xp_before))
