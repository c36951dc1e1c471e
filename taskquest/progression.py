"""
XP and level progression rules.

A user's progress is the triple ``(level, xp, xp_to_next_level)`` where the
threshold is derived from the level alone.  Gaining XP rolls any overflow
into level-ups until ``0 <= xp < xp_to_next_level`` holds again.

Example::

    >>> apply_xp(level=5, xp=75, delta=130)
    Progress(level=6, xp=5, xp_to_next_level=220)
"""

from __future__ import annotations

from math import isqrt
from typing import NamedTuple

BASE_LEVEL_THRESHOLD = 100
THRESHOLD_PER_LEVEL = 20


class Progress(NamedTuple):
    """Settled progression state of a user."""

    level: int
    xp: int
    xp_to_next_level: int

    def to_dict(self) -> dict[str, int]:
        """Wire representation used in API responses."""
        return {
            "level": self.level,
            "xp": self.xp,
            "xpToNextLevel": self.xp_to_next_level,
        }


def xp_to_next_level(level: int) -> int:
    """Return the XP needed to leave *level*; strictly positive and increasing."""
    if level < 1:
        raise ValueError("level must be at least 1")
    return BASE_LEVEL_THRESHOLD + level * THRESHOLD_PER_LEVEL


def _thresholds_total(level: int, count: int) -> int:
    """XP needed to climb *count* levels starting from *level*."""
    return count * BASE_LEVEL_THRESHOLD + THRESHOLD_PER_LEVEL * (
        count * level + count * (count - 1) // 2
    )


def _levels_covered(level: int, xp: int) -> int:
    """
    Largest number of consecutive thresholds, from *level* up, that *xp*
    pays for in full.

    Solves the quadratic ``_thresholds_total(level, k) <= xp`` for ``k``
    directly so huge grants settle in constant time.
    """
    a = THRESHOLD_PER_LEVEL
    b = 2 * BASE_LEVEL_THRESHOLD + THRESHOLD_PER_LEVEL * (2 * level - 1)
    count = (isqrt(b * b + 8 * a * xp) - b) // (2 * a)
    # isqrt floors, so nudge onto the exact boundary
    while count > 0 and _thresholds_total(level, count) > xp:
        count -= 1
    while _thresholds_total(level, count + 1) <= xp:
        count += 1
    return count


def apply_xp(level: int, xp: int, delta: int) -> Progress:
    """
    Add *delta* XP and settle any resulting level-ups.

    Args:
        level: Current level (>= 1).
        xp: Current XP within the level (>= 0).
        delta: XP gained (>= 0).

    Returns:
        The new :class:`Progress`.  The level never decreases and the
        returned XP is always below the returned threshold.

    Raises:
        ValueError: If *delta* or *xp* is negative, or *level* is below 1.
    """
    if level < 1:
        raise ValueError("level must be at least 1")
    if delta < 0:
        raise ValueError("delta must be non-negative; use revoke_xp to remove XP")
    if xp < 0:
        raise ValueError("xp must be non-negative")

    xp += delta
    gained = _levels_covered(level, xp)
    xp -= _thresholds_total(level, gained)
    level += gained
    return Progress(level, xp, xp_to_next_level(level))


def revoke_xp(level: int, xp: int, delta: int) -> Progress:
    """
    Remove *delta* XP, dropping levels when the XP pool runs dry.

    Each dropped level refunds that level's threshold into the pool, which
    exactly reverses a matching :func:`apply_xp`.  Progress never goes below
    level 1 with 0 XP.
    """
    if delta < 0:
        raise ValueError("delta must be non-negative")

    xp -= delta
    while xp < 0 and level > 1:
        level -= 1
        xp += xp_to_next_level(level)
    if xp < 0:
        xp = 0
    return Progress(level, xp, xp_to_next_level(level))
