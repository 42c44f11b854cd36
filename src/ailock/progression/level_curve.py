"""Geometric level curve: XP <-> level.

Each level needs ~20% more XP than the previous one to advance from it:
``floor(100 * 1.2 ** (level - 1))``. Level 20 is the cap.
"""

from __future__ import annotations

import math

MAX_LEVEL = 20
BASE_XP = 100
GROWTH_RATE = 1.2


def xp_required_for_level(level: int) -> int:
    """XP needed to advance from `level` to `level + 1` (0 at the cap)."""
    if level >= MAX_LEVEL:
        return 0
    return math.floor(BASE_XP * GROWTH_RATE ** (level - 1))


def total_xp_for_level(level: int) -> int:
    """Cumulative XP needed to reach `level`."""
    if level <= 1:
        return 0
    return sum(xp_required_for_level(i) for i in range(1, level))


def level_info(current_xp: int) -> dict:
    """Compute level and in-level progress from total accumulated XP."""
    level = 1
    total_for_current = 0

    while level < MAX_LEVEL:
        needed = xp_required_for_level(level)
        if current_xp < total_for_current + needed:
            break
        total_for_current += needed
        level += 1

    xp_needed = xp_required_for_level(level)
    progress_xp = current_xp - total_for_current

    if xp_needed > 0:
        percentage = min(max(progress_xp / xp_needed * 100, 0.0), 100.0)
    else:
        percentage = 100.0

    return {
        "level": level,
        "current_xp": current_xp,
        "total_xp_for_current_level": total_for_current,
        "progress_xp": progress_xp,
        "xp_needed_for_next_level": xp_needed,
        "xp_to_next_level": max(0, xp_needed - progress_xp),
        "progress_percentage": percentage,
    }


def level_table() -> list[dict]:
    """Every level with its per-level and cumulative requirement."""
    return [
        {
            "level": level,
            "xp_required": xp_required_for_level(level),
            "cumulative": total_xp_for_level(level),
        }
        for level in range(1, MAX_LEVEL + 1)
    ]
