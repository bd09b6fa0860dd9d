"""Weekly leaderboard, challenges and week summary endpoints."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from fitsquad.api.v1.endpoints.auth import AuthContext, get_auth_context
from fitsquad.core.database import get_db
from fitsquad.services.leaderboard import LeaderboardService, build_weekly_challenges
from fitsquad.services.tiers import Tier, days_until_next_streak_tier, next_streak_tier

router = APIRouter()


class TierResponse(BaseModel):
    id: str
    name: str
    emoji: str
    threshold: int

    @classmethod
    def from_tier(cls, tier: Tier) -> "TierResponse":
        return cls(id=tier.id, name=tier.name, emoji=tier.emoji, threshold=tier.threshold)


class LeaderboardEntryResponse(BaseModel):
    rank: int
    friend_id: int
    friend_name: str
    friend_image_url: str | None
    points: int
    workouts: int
    distance_km: float
    calories: int
    streak: int
    badges: int
    strava_connected: bool
    points_tier: TierResponse
    streak_tier: TierResponse


class ChallengeResponse(BaseModel):
    id: str
    title: str
    description: str
    emoji: str
    reward: str
    current: float
    target: float
    progress: int
    completed: bool


class DayResponse(BaseModel):
    day: date
    workouts: int
    points: int


class WeekSummaryResponse(BaseModel):
    week_start: date
    week_end: date
    total_points: int
    total_workouts: int
    total_distance_km: float
    total_calories: int
    streak: int
    badges_count: int
    next_streak_tier: TierResponse | None
    days_to_next_streak_tier: int
    daily: list[DayResponse]


@router.get("/weekly", response_model=list[LeaderboardEntryResponse])
async def get_weekly_leaderboard(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
) -> list[LeaderboardEntryResponse]:
    """Rank every friend by points earned this Monday-Sunday week."""
    entries = await LeaderboardService(db).weekly_leaderboard()
    return [
        LeaderboardEntryResponse(
            rank=e.rank,
            friend_id=e.friend_id,
            friend_name=e.friend_name,
            friend_image_url=e.friend_image_url,
            points=e.points,
            workouts=e.workouts,
            distance_km=e.distance_km,
            calories=e.calories,
            streak=e.streak,
            badges=e.badges,
            strava_connected=e.strava_connected,
            points_tier=TierResponse.from_tier(e.points_tier),
            streak_tier=TierResponse.from_tier(e.streak_tier),
        )
        for e in entries
    ]


@router.get("/challenges", response_model=list[ChallengeResponse])
async def get_weekly_challenges(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
    friend_id: int | None = None,
) -> list[ChallengeResponse]:
    """Progress towards this week's challenges.

    Any squad member may read another friend's progress via ``friend_id``;
    the data is read-only and shared with the whole squad.
    """
    target = friend_id if friend_id is not None else auth.acting_friend_id()
    entry = await LeaderboardService(db).entry_for(target)
    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Friend not found",
        )
    return [ChallengeResponse(**vars(c)) for c in build_weekly_challenges(entry)]


@router.get("/summary", response_model=WeekSummaryResponse)
async def get_week_summary(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
    friend_id: int | None = None,
) -> WeekSummaryResponse:
    """This week's totals and a day-by-day breakdown.

    ``friend_id`` may name any squad member; summaries are visible to the
    whole squad.
    """
    target = friend_id if friend_id is not None else auth.acting_friend_id()
    summary = await LeaderboardService(db).summary_for(target)
    upcoming = next_streak_tier(summary.streak)

    return WeekSummaryResponse(
        week_start=summary.week_start,
        week_end=summary.week_end,
        total_points=summary.total_points,
        total_workouts=summary.total_workouts,
        total_distance_km=summary.total_distance_km,
        total_calories=summary.total_calories,
        streak=summary.streak,
        badges_count=summary.badges_count,
        next_streak_tier=TierResponse.from_tier(upcoming) if upcoming else None,
        days_to_next_streak_tier=days_until_next_streak_tier(summary.streak),
        daily=[
            DayResponse(
                day=day,
                workouts=len(workouts),
                points=sum(w.points for w in workouts),
            )
            for day, workouts in summary.daily.items()
        ],
    )
