"""Streak and weekly-points tiers shown next to a friend's name."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Tier:
    id: str
    name: str
    threshold: int
    emoji: str


STREAK_TIERS: tuple[Tier, ...] = (
    Tier("rookie", "Rookie", 7, "🥉"),
    Tier("committed", "Committed", 30, "🥈"),
    Tier("champion", "Champion", 60, "🥇"),
    Tier("legend", "Legend", 90, "💎"),
    Tier("immortal", "Immortal", 120, "👑"),
    Tier("godlike", "Godlike", 180, "⚡"),
)
NEWBIE_TIER = Tier("newbie", "Newbie", 0, "🔰")

POINTS_TIERS: tuple[Tier, ...] = (
    Tier("beginner", "Beginner", 50, "🌱"),
    Tier("active", "Active", 100, "💪"),
    Tier("committed", "Committed", 200, "🔥"),
    Tier("champion", "Champion", 300, "👑"),
    Tier("elite", "Elite", 500, "⭐"),
    Tier("legend", "Legend", 750, "🏆"),
)


def _highest(tiers: tuple[Tier, ...], value: int) -> Optional[Tier]:
    achieved = [tier for tier in tiers if value >= tier.threshold]
    return achieved[-1] if achieved else None


def streak_tier(streak_days: int) -> Tier:
    """Highest streak tier reached, ``Newbie`` below the first one."""
    return _highest(STREAK_TIERS, streak_days) or NEWBIE_TIER


def points_tier(weekly_points: int) -> Tier:
    """Highest weekly-points tier reached (``Beginner`` is the floor)."""
    return _highest(POINTS_TIERS, weekly_points) or POINTS_TIERS[0]


def next_streak_tier(streak_days: int) -> Optional[Tier]:
    """Next streak tier to aim for, None at the top."""
    return next((tier for tier in STREAK_TIERS if streak_days < tier.threshold), None)


def days_until_next_streak_tier(streak_days: int) -> int:
    tier = next_streak_tier(streak_days)
    return tier.threshold - streak_days if tier else 0
