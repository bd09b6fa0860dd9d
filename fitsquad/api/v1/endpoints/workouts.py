"""Workout logging endpoints."""

from datetime import date, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from fitsquad.api.v1.endpoints.auth import AuthContext, get_auth_context
from fitsquad.core.database import get_db
from fitsquad.core.exceptions import WorkoutValidationError
from fitsquad.models.workout import ActivityCategory
from fitsquad.services.workouts import WorkoutInput, WorkoutService

router = APIRouter()


# -------------------------------------------------------------------------
# Request/Response Models
# -------------------------------------------------------------------------


class WorkoutCreate(BaseModel):
    """Manual workout submission."""

    friend_id: int | None = None  # admin only
    category: ActivityCategory
    activity_date: date
    duration_minutes: int = Field(gt=0)
    distance_km: float | None = Field(default=None, ge=0)
    calories: int | None = Field(default=None, ge=0)
    heart_rate: int | None = Field(default=None, ge=0)
    started_at: datetime | None = None
    notes: str | None = None


class WorkoutResponse(BaseModel):
    id: int
    friend_id: int
    category: str
    activity_date: date
    started_at: datetime | None
    duration_minutes: int
    distance_km: float | None
    calories: int | None
    heart_rate: int | None
    points: int
    source: str
    external_id: str | None
    notes: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class UnlockedBadge(BaseModel):
    id: str
    name: str
    emoji: str


class WorkoutCreateResponse(BaseModel):
    workout: WorkoutResponse
    new_badges: list[UnlockedBadge]
    linked_event_id: int | None = None
    event_bonus_points: int = 0


class WorkoutListResponse(BaseModel):
    """Paginated workout list."""

    items: list[WorkoutResponse]
    total: int


class FeedItem(WorkoutResponse):
    friend_name: str
    friend_image_url: str | None = None


# -------------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------------


@router.post("", response_model=WorkoutCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_workout(
    request: WorkoutCreate,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
) -> WorkoutCreateResponse:
    """Log a manual workout.

    Points and missing calories are computed server-side. New badges and any
    event bonus are reported back.
    """
    friend_id = auth.acting_friend_id(request.friend_id)
    data = WorkoutInput(
        category=request.category,
        activity_date=request.activity_date,
        duration_minutes=request.duration_minutes,
        distance_km=request.distance_km,
        calories=request.calories,
        heart_rate=request.heart_rate,
        started_at=request.started_at,
        notes=request.notes,
    )

    service = WorkoutService(db)
    try:
        recorded = await service.record_workout(friend_id, data)
    except WorkoutValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    link = recorded.event_link
    return WorkoutCreateResponse(
        workout=WorkoutResponse.model_validate(recorded.workout),
        new_badges=[UnlockedBadge(id=b.id, name=b.name, emoji=b.emoji) for b in recorded.new_badges],
        linked_event_id=link.event_id if link else None,
        event_bonus_points=link.bonus_points if link else 0,
    )


@router.get("", response_model=WorkoutListResponse)
async def list_workouts(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
    friend_id: int | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
) -> WorkoutListResponse:
    """List workouts, newest first.

    Args:
        auth: Authenticated caller.
        db: Database session.
        friend_id: Limit to one friend (defaults to the caller).
        page: Page number.
        per_page: Items per page.

    Returns:
        Paginated workout list.
    """
    target = friend_id if friend_id is not None else auth.friend_id
    service = WorkoutService(db)
    items = await service.list_workouts(target, limit=per_page, offset=(page - 1) * per_page)
    total = await service.count_workouts(target)
    return WorkoutListResponse(
        items=[WorkoutResponse.model_validate(w) for w in items],
        total=total,
    )


@router.get("/feed", response_model=list[FeedItem])
async def get_feed(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
    limit: int = Query(10, ge=1, le=50),
) -> list[FeedItem]:
    """Most recently logged workouts across the squad."""
    rows = await WorkoutService(db).list_recent_feed(limit)
    return [
        FeedItem(
            **WorkoutResponse.model_validate(workout).model_dump(),
            friend_name=friend.name,
            friend_image_url=friend.image_url,
        )
        for workout, friend in rows
    ]


@router.delete("/{workout_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workout(
    workout_id: int,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
) -> None:
    """Delete a workout. Friends may only delete their own."""
    owner = None if auth.is_admin else auth.friend_id
    deleted = await WorkoutService(db).delete_workout(workout_id, friend_id=owner)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Workout not found",
        )
