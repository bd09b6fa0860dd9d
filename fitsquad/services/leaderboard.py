"""Weekly leaderboard, weekly challenges and per-friend week summary.

Everything here is recomputed on request from the stored workout log.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fitsquad.models.badge import FitnessBadge
from fitsquad.models.friend import Friend
from fitsquad.models.strava import StravaConnection
from fitsquad.models.workout import WorkoutRecord
from fitsquad.services.scoring import WorkoutSnapshot, calculate_current_streak, round_half_up
from fitsquad.services.tiers import Tier, points_tier, streak_tier


def week_bounds(today: date) -> tuple[date, date]:
    """Monday and Sunday of the ISO week containing ``today``."""
    monday = today - timedelta(days=today.weekday())
    return monday, monday + timedelta(days=6)


@dataclass(frozen=True)
class FriendRef:
    id: int
    name: str
    image_url: Optional[str] = None


@dataclass(frozen=True)
class FriendWorkout:
    """A workout snapshot tagged with its owner."""

    friend_id: int
    snapshot: WorkoutSnapshot


@dataclass
class LeaderboardEntry:
    friend_id: int
    friend_name: str
    friend_image_url: Optional[str]
    points: int
    workouts: int
    distance_km: float
    calories: int
    streak: int
    badges: int
    strava_connected: bool
    points_tier: Tier
    streak_tier: Tier
    rank: int = 0


def build_weekly_leaderboard(
    friends: Sequence[FriendRef],
    activities: Iterable[FriendWorkout],
    today: date,
    badge_counts: Optional[dict[int, int]] = None,
    connected_ids: Iterable[int] = (),
) -> list[LeaderboardEntry]:
    """Rank friends by points earned in the current Monday-Sunday week.

    Streaks use each friend's whole history. Friends with equal points keep
    the order they were given in.
    """
    badge_counts = badge_counts or {}
    connected = set(connected_ids)
    start, end = week_bounds(today)

    history: dict[int, list[WorkoutSnapshot]] = defaultdict(list)
    for item in activities:
        history[item.friend_id].append(item.snapshot)

    entries = []
    for friend in friends:
        all_workouts = history.get(friend.id, [])
        week = [w for w in all_workouts if start <= w.activity_date <= end]
        points = sum(w.points for w in week)
        streak = calculate_current_streak(all_workouts, today)
        entries.append(
            LeaderboardEntry(
                friend_id=friend.id,
                friend_name=friend.name,
                friend_image_url=friend.image_url,
                points=points,
                workouts=len(week),
                distance_km=round(sum(w.distance_km or 0 for w in week), 2),
                calories=sum(w.calories or 0 for w in week),
                streak=streak,
                badges=badge_counts.get(friend.id, 0),
                strava_connected=friend.id in connected,
                points_tier=points_tier(points),
                streak_tier=streak_tier(streak),
            )
        )

    # sorted() is stable
    entries = sorted(entries, key=lambda e: e.points, reverse=True)
    for index, entry in enumerate(entries):
        entry.rank = index + 1
    return entries


@dataclass(frozen=True)
class ChallengeDefinition:
    id: str
    title: str
    description: str
    metric: str
    target: float
    reward: str
    emoji: str


@dataclass(frozen=True)
class WeeklyChallenge:
    id: str
    title: str
    description: str
    emoji: str
    reward: str
    current: float
    target: float
    progress: int
    completed: bool


WEEKLY_CHALLENGES: tuple[ChallengeDefinition, ...] = (
    ChallengeDefinition(
        "distance_50", "Distance Crusher", "Cover 50km this week",
        "distance_km", 50, "Road Warrior title", "🛣️",
    ),
    ChallengeDefinition(
        "workouts_5", "Consistency King", "Log 5 workouts this week",
        "workouts", 5, "Consistency crown", "👑",
    ),
    ChallengeDefinition(
        "points_200", "Point Hunter", "Earn 200 points this week",
        "points", 200, "Committed tier", "🎯",
    ),
    ChallengeDefinition(
        "calories_3000", "Calorie Torcher", "Burn 3000 calories this week",
        "calories", 3000, "Inferno flair", "🔥",
    ),
    ChallengeDefinition(
        "streak_7", "Perfect Week", "Work out every day for 7 days",
        "streak", 7, "Lightning Streak badge", "⚡",
    ),
)


def build_weekly_challenges(entry: LeaderboardEntry) -> list[WeeklyChallenge]:
    """Progress of one leaderboard entry against the weekly challenge catalog."""
    challenges = []
    for definition in WEEKLY_CHALLENGES:
        current = getattr(entry, definition.metric)
        challenges.append(
            WeeklyChallenge(
                id=definition.id,
                title=definition.title,
                description=definition.description,
                emoji=definition.emoji,
                reward=definition.reward,
                current=current,
                target=definition.target,
                progress=min(100, round_half_up(current / definition.target * 100)),
                completed=current >= definition.target,
            )
        )
    return challenges


@dataclass
class WeekSummary:
    week_start: date
    week_end: date
    total_points: int
    total_workouts: int
    total_distance_km: float
    total_calories: int
    streak: int
    badges_count: int
    daily: dict[date, list[WorkoutSnapshot]] = field(default_factory=dict)


def weekly_summary(
    history: Iterable[WorkoutSnapshot],
    today: date,
    badges_count: int = 0,
) -> WeekSummary:
    """Totals for the current week plus a Monday-Sunday map of workouts."""
    history = list(history)
    start, end = week_bounds(today)
    week = [w for w in history if start <= w.activity_date <= end]

    daily = {start + timedelta(days=i): [] for i in range(7)}
    for workout in week:
        daily[workout.activity_date].append(workout)

    return WeekSummary(
        week_start=start,
        week_end=end,
        total_points=sum(w.points for w in week),
        total_workouts=len(week),
        total_distance_km=round(sum(w.distance_km or 0 for w in week), 2),
        total_calories=sum(w.calories or 0 for w in week),
        streak=calculate_current_streak(history, today),
        badges_count=badges_count,
        daily=daily,
    )


class LeaderboardService:
    """Loads friends, workouts, badges and connections for leaderboard views."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def weekly_leaderboard(self, today: Optional[date] = None) -> list[LeaderboardEntry]:
        today = today or date.today()

        friends_result = await self.db.execute(select(Friend).order_by(Friend.id))
        friends = [
            FriendRef(id=f.id, name=f.name, image_url=f.image_url)
            for f in friends_result.scalars().all()
        ]

        # Streaks need full history; the week filter happens in memory
        workouts_result = await self.db.execute(select(WorkoutRecord))
        activities = [
            FriendWorkout(friend_id=r.friend_id, snapshot=WorkoutSnapshot.from_record(r))
            for r in workouts_result.scalars().all()
        ]

        badge_result = await self.db.execute(
            select(FitnessBadge.friend_id, func.count(FitnessBadge.id)).group_by(
                FitnessBadge.friend_id
            )
        )
        badge_counts = {friend_id: count for friend_id, count in badge_result.all()}

        connected_result = await self.db.execute(select(StravaConnection.friend_id))
        connected_ids = set(connected_result.scalars().all())

        return build_weekly_leaderboard(friends, activities, today, badge_counts, connected_ids)

    async def entry_for(self, friend_id: int, today: Optional[date] = None) -> Optional[LeaderboardEntry]:
        entries = await self.weekly_leaderboard(today)
        return next((e for e in entries if e.friend_id == friend_id), None)

    async def summary_for(self, friend_id: int, today: Optional[date] = None) -> WeekSummary:
        today = today or date.today()
        workouts_result = await self.db.execute(
            select(WorkoutRecord).where(WorkoutRecord.friend_id == friend_id)
        )
        history = [WorkoutSnapshot.from_record(r) for r in workouts_result.scalars().all()]

        badges_result = await self.db.execute(
            select(func.count(FitnessBadge.id)).where(FitnessBadge.friend_id == friend_id)
        )
        return weekly_summary(history, today, badges_count=badges_result.scalar_one())
