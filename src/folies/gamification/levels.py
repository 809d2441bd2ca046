"""Level thresholds, XP conversion constants and level progress.

The web app renders the same numbers; change both together.
"""

from __future__ import annotations

from dataclasses import dataclass

# 10 XP = 1 loyalty point
XP_CONVERSION_RATE = 10
MIN_XP_CONVERSION = 100


def level_threshold(level: int) -> int:
    """Cumulative XP required to complete ``level`` (i.e. reach ``level + 1``)."""
    return level * level * 100


def level_up_reward(level: int) -> int:
    """Bonus XP available to callers when a user reaches ``level``."""
    return level * 50


def xp_to_points(xp_amount: int) -> int:
    """Loyalty points obtained by converting ``xp_amount`` XP."""
    return xp_amount // XP_CONVERSION_RATE


@dataclass(frozen=True)
class LevelProgress:
    level: int
    total_xp: int
    xp_into_level: int
    xp_for_level: int
    next_level_xp: int

    @property
    def percent(self) -> float:
        if self.xp_for_level <= 0:
            return 100.0
        return min(self.xp_into_level / self.xp_for_level * 100, 100.0)


def level_progress(total_xp: int, level: int) -> LevelProgress:
    """Progress within the stored ``level``.

    The level itself is never derived from XP here; it is the persisted
    value, and progress is measured against its threshold band.
    """
    floor_xp = level_threshold(level - 1)
    ceiling_xp = level_threshold(level)
    return LevelProgress(
        level=level,
        total_xp=total_xp,
        xp_into_level=total_xp - floor_xp,
        xp_for_level=ceiling_xp - floor_xp,
        next_level_xp=ceiling_xp,
    )
