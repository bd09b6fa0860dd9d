"""Badge catalog and unlock evaluation.

The catalog is a fixed, ordered tuple of ``BadgeDefinition`` entries. Each
entry carries a small rule object whose thresholds are plain parameters and
whose ``evaluate`` method is a pure function of a ``BadgeContext``. Rules never
depend on each other, so one pass can unlock several badges in any order.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Iterable, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fitsquad.core.database import upsert_insert
from fitsquad.models.badge import FitnessBadge
from fitsquad.models.workout import ActivityCategory, WorkoutRecord
from fitsquad.observability import get_metrics_backend
from fitsquad.services.scoring import WorkoutSnapshot, calculate_current_streak

logger = logging.getLogger(__name__)


class BadgeCategory(str, Enum):
    CARDIO = "cardio"
    STRENGTH = "strength"
    STREAK = "streak"
    SPECIAL = "special"


@dataclass(frozen=True)
class BadgeContext:
    """Immutable input to every badge rule."""

    history: tuple[WorkoutSnapshot, ...]
    unlocked: frozenset[str]
    as_of: date


class BadgeRule(Protocol):
    def evaluate(self, ctx: BadgeContext) -> bool:
        ...


def _matching(history: Iterable[WorkoutSnapshot], category: Optional[ActivityCategory]):
    return [w for w in history if category is None or w.category == category]


@dataclass(frozen=True)
class WorkoutCount:
    """At least ``count`` workouts, optionally of one category."""

    count: int
    category: Optional[ActivityCategory] = None

    def evaluate(self, ctx: BadgeContext) -> bool:
        return len(_matching(ctx.history, self.category)) >= self.count


@dataclass(frozen=True)
class SingleSessionDistance:
    """One workout of ``category`` covering at least ``km``."""

    category: ActivityCategory
    km: float

    def evaluate(self, ctx: BadgeContext) -> bool:
        return any((w.distance_km or 0) >= self.km for w in _matching(ctx.history, self.category))


@dataclass(frozen=True)
class CumulativeDistance:
    """All-time distance of ``category`` reaching ``km``."""

    category: ActivityCategory
    km: float

    def evaluate(self, ctx: BadgeContext) -> bool:
        total = sum(w.distance_km or 0 for w in _matching(ctx.history, self.category))
        return total >= self.km


@dataclass(frozen=True)
class RollingDistance:
    """Distance of ``category`` within the last ``days`` days reaching ``km``."""

    category: ActivityCategory
    km: float
    days: int = 7

    def evaluate(self, ctx: BadgeContext) -> bool:
        total = sum(
            w.distance_km or 0
            for w in _matching(ctx.history, self.category)
            if 0 <= (ctx.as_of - w.activity_date).days <= self.days
        )
        return total >= self.km


@dataclass(frozen=True)
class StreakAtLeast:
    days: int

    def evaluate(self, ctx: BadgeContext) -> bool:
        return calculate_current_streak(ctx.history, ctx.as_of) >= self.days


@dataclass(frozen=True)
class StartHour:
    """A workout started at or after ``from_hour`` or before ``until_hour``.

    Only workouts with a known start time are considered.
    """

    until_hour: int
    from_hour: Optional[int] = None

    def evaluate(self, ctx: BadgeContext) -> bool:
        for w in ctx.history:
            if w.started_at is None:
                continue
            hour = w.started_at.hour
            if hour < self.until_hour:
                return True
            if self.from_hour is not None and hour >= self.from_hour:
                return True
        return False


@dataclass(frozen=True)
class WeekendCount:
    count: int

    def evaluate(self, ctx: BadgeContext) -> bool:
        weekend = [w for w in ctx.history if w.activity_date.weekday() >= 5]
        return len(weekend) >= self.count


@dataclass(frozen=True)
class BadgeDefinition:
    id: str
    name: str
    description: str
    emoji: str
    category: BadgeCategory
    rule: BadgeRule

    def qualifies(self, ctx: BadgeContext) -> bool:
        return self.rule.evaluate(ctx)


BADGE_DEFINITIONS: tuple[BadgeDefinition, ...] = (
    # Cardio
    BadgeDefinition(
        "first_steps", "First Steps", "Complete your first workout", "👟",
        BadgeCategory.CARDIO, WorkoutCount(1),
    ),
    BadgeDefinition(
        "5k_runner", "5K Runner", "Run 5km in a single session", "🏃",
        BadgeCategory.CARDIO, SingleSessionDistance(ActivityCategory.RUN, 5),
    ),
    BadgeDefinition(
        "10k_runner", "10K Champion", "Run 10km in a single session", "🏃‍♂️",
        BadgeCategory.CARDIO, SingleSessionDistance(ActivityCategory.RUN, 10),
    ),
    BadgeDefinition(
        "marathon_runner", "Marathon Runner", "Run 42km in a week", "🏅",
        BadgeCategory.CARDIO, RollingDistance(ActivityCategory.RUN, 42),
    ),
    BadgeDefinition(
        "century_cyclist", "Century Cyclist", "Bike 100km in a week", "🚴",
        BadgeCategory.CARDIO, RollingDistance(ActivityCategory.BIKE, 100),
    ),
    BadgeDefinition(
        "ocean_swimmer", "Ocean Swimmer", "Swim 10km total", "🏊",
        BadgeCategory.CARDIO, CumulativeDistance(ActivityCategory.SWIM, 10),
    ),
    # Strength
    BadgeDefinition(
        "iron_lifter", "Iron Lifter", "Complete 10 gym sessions", "💪",
        BadgeCategory.STRENGTH, WorkoutCount(10, ActivityCategory.GYM),
    ),
    BadgeDefinition(
        "beast_mode", "Beast Mode", "Complete 20 gym sessions", "🏋️",
        BadgeCategory.STRENGTH, WorkoutCount(20, ActivityCategory.GYM),
    ),
    BadgeDefinition(
        "diamond_grinder", "Diamond Grinder", "Complete 50 gym sessions", "💎",
        BadgeCategory.STRENGTH, WorkoutCount(50, ActivityCategory.GYM),
    ),
    # Streak
    BadgeDefinition(
        "hot_streak", "Hot Streak", "Workout 3 days in a row", "🔥",
        BadgeCategory.STREAK, StreakAtLeast(3),
    ),
    BadgeDefinition(
        "lightning_streak", "Lightning Streak", "Workout 7 days in a row", "⚡",
        BadgeCategory.STREAK, StreakAtLeast(7),
    ),
    BadgeDefinition(
        "unstoppable", "Unstoppable", "Workout 30 days in a row", "🌟",
        BadgeCategory.STREAK, StreakAtLeast(30),
    ),
    # Special
    BadgeDefinition(
        "night_owl", "Night Owl", "Workout after 10 PM", "🦉",
        BadgeCategory.SPECIAL, StartHour(until_hour=5, from_hour=22),
    ),
    BadgeDefinition(
        "early_bird", "Early Bird", "Workout before 6 AM", "🐓",
        BadgeCategory.SPECIAL, StartHour(until_hour=6),
    ),
    BadgeDefinition(
        "weekend_warrior", "Weekend Warrior", "Complete 10 weekend workouts", "🎉",
        BadgeCategory.SPECIAL, WeekendCount(10),
    ),
    BadgeDefinition(
        "hundred_club", "100 Club", "Complete 100 total workouts", "💯",
        BadgeCategory.SPECIAL, WorkoutCount(100),
    ),
)

_BADGES_BY_ID = {badge.id: badge for badge in BADGE_DEFINITIONS}


def get_badge_info(badge_type: str) -> Optional[BadgeDefinition]:
    return _BADGES_BY_ID.get(badge_type)


def get_badges_by_category(category: BadgeCategory | str) -> list[BadgeDefinition]:
    category = BadgeCategory(category)
    return [badge for badge in BADGE_DEFINITIONS if badge.category == category]


def check_badge_unlocks(
    history: Iterable[WorkoutSnapshot],
    existing_badge_types: Iterable[str],
    as_of: date,
) -> list[BadgeDefinition]:
    """Return catalog badges that now qualify and are not yet unlocked."""
    ctx = BadgeContext(
        history=tuple(history),
        unlocked=frozenset(existing_badge_types),
        as_of=as_of,
    )
    return [
        badge
        for badge in BADGE_DEFINITIONS
        if badge.id not in ctx.unlocked and badge.qualifies(ctx)
    ]


class BadgeService:
    """Loads a friend's history, evaluates the catalog and persists unlocks."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.metrics = get_metrics_backend()

    async def list_badges(self, friend_id: int) -> list[FitnessBadge]:
        result = await self.db.execute(
            select(FitnessBadge)
            .where(FitnessBadge.friend_id == friend_id)
            .order_by(FitnessBadge.unlocked_at.desc(), FitnessBadge.id.desc())
        )
        return list(result.scalars().all())

    async def evaluate_and_unlock(
        self,
        friend_id: int,
        as_of: Optional[date] = None,
    ) -> list[BadgeDefinition]:
        """Unlock every newly qualifying badge for a friend.

        Inserts use ON CONFLICT DO NOTHING on (friend_id, badge_type), so a
        concurrent evaluation cannot unlock the same badge twice. Only badges
        actually inserted by this call are returned.

        Args:
            friend_id: Friend to evaluate.
            as_of: Evaluation date (defaults to today).

        Returns:
            Newly unlocked badge definitions.
        """
        as_of = as_of or date.today()

        history_result = await self.db.execute(
            select(WorkoutRecord).where(WorkoutRecord.friend_id == friend_id)
        )
        history = [WorkoutSnapshot.from_record(r) for r in history_result.scalars().all()]

        existing_result = await self.db.execute(
            select(FitnessBadge.badge_type).where(FitnessBadge.friend_id == friend_id)
        )
        existing = set(existing_result.scalars().all())

        candidates = check_badge_unlocks(history, existing, as_of)
        if not candidates:
            return []

        now = datetime.now(timezone.utc)
        unlocked: list[BadgeDefinition] = []
        for badge in candidates:
            stmt = (
                upsert_insert(self.db, FitnessBadge)
                .values(
                    friend_id=friend_id,
                    badge_type=badge.id,
                    unlocked_at=now,
                    badge_metadata=_badge_metadata(badge, history, as_of),
                )
                .on_conflict_do_nothing(index_elements=["friend_id", "badge_type"])
                .returning(FitnessBadge.id)
            )
            result = await self.db.execute(stmt)
            if result.scalar_one_or_none() is not None:
                unlocked.append(badge)
                self.metrics.observe_badge_unlock(badge.id)

        await self.db.commit()

        if unlocked:
            logger.info(f"Unlocked badges for friend {friend_id}: {', '.join(b.id for b in unlocked)}")
        return unlocked


def _badge_metadata(
    badge: BadgeDefinition,
    history: list[WorkoutSnapshot],
    as_of: date,
) -> dict:
    metadata: dict = {"workout_count": len(history)}
    if badge.category == BadgeCategory.STREAK:
        metadata["streak_days"] = calculate_current_streak(history, as_of)
    return metadata
