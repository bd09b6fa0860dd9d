"""Workout ingestion pipeline shared by manual logging and Strava sync."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fitsquad.core.database import upsert_insert
from fitsquad.core.exceptions import WorkoutValidationError
from fitsquad.models.friend import Friend
from fitsquad.models.workout import ActivityCategory, WorkoutRecord, WorkoutSource
from fitsquad.services.badges import BadgeDefinition, BadgeService
from fitsquad.services.event_linker import EventAutoLinker, EventLink
from fitsquad.services.scoring import WorkoutSnapshot, calculate_points, estimate_calories

logger = logging.getLogger(__name__)


@dataclass
class WorkoutInput:
    """A workout as submitted, before scoring."""

    category: ActivityCategory
    activity_date: date
    duration_minutes: int
    distance_km: Optional[float] = None
    calories: Optional[int] = None
    heart_rate: Optional[int] = None
    started_at: Optional[datetime] = None
    notes: Optional[str] = None
    source: WorkoutSource = WorkoutSource.MANUAL
    external_id: Optional[str] = None


@dataclass
class RecordedWorkout:
    workout: WorkoutRecord
    new_badges: list[BadgeDefinition] = field(default_factory=list)
    event_link: Optional[EventLink] = None


def validate_workout(data: WorkoutInput) -> None:
    """Reject inputs the scoring rules cannot price.

    Raises:
        WorkoutValidationError: On missing or non-positive duration or
            negative measurements.
    """
    if data.duration_minutes is None or data.duration_minutes <= 0:
        raise WorkoutValidationError("duration_minutes", "must be a positive number of minutes")
    for name in ("distance_km", "calories", "heart_rate"):
        value = getattr(data, name)
        if value is not None and value < 0:
            raise WorkoutValidationError(name, "must not be negative")


class WorkoutService:
    """Prices, persists and post-processes workouts."""

    def __init__(
        self,
        db: AsyncSession,
        badges: Optional[BadgeService] = None,
        linker: Optional[EventAutoLinker] = None,
    ):
        self.db = db
        self.badges = badges or BadgeService(db)
        self.linker = linker or EventAutoLinker(db)

    async def record_workout(
        self,
        friend_id: int,
        data: WorkoutInput,
        as_of: Optional[date] = None,
    ) -> Optional[RecordedWorkout]:
        """Run a workout through the full pipeline.

        Validate, price, insert (deduplicated on ``external_id``), unlock
        badges, then try to link the workout to a checked-in event.

        Args:
            friend_id: Owner of the workout.
            data: Submitted workout.
            as_of: Date used for streak and weekly badge windows.

        Returns:
            The stored workout with its side effects, or None when a record
            with the same external id already exists for this friend.
        """
        validate_workout(data)

        category = ActivityCategory(data.category)
        points = calculate_points(category, data.duration_minutes, data.distance_km, data.heart_rate)
        calories = (
            data.calories
            if data.calories is not None
            else estimate_calories(category, data.distance_km, data.duration_minutes)
        )

        stmt = (
            upsert_insert(self.db, WorkoutRecord)
            .values(
                friend_id=friend_id,
                category=category.value,
                activity_date=data.activity_date,
                started_at=data.started_at,
                duration_minutes=data.duration_minutes,
                distance_km=data.distance_km,
                calories=calories,
                heart_rate=data.heart_rate,
                points=points,
                source=WorkoutSource(data.source).value,
                external_id=data.external_id,
                notes=data.notes,
            )
            .on_conflict_do_nothing(index_elements=["friend_id", "external_id"])
            .returning(WorkoutRecord.id)
        )
        result = await self.db.execute(stmt)
        workout_id = result.scalar_one_or_none()
        await self.db.commit()

        if workout_id is None:
            logger.debug(f"Workout {data.external_id} already recorded for friend {friend_id}")
            return None

        logger.info(
            f"Recorded {category.value} workout {workout_id} for friend {friend_id} ({points} points)"
        )

        new_badges = await self.badges.evaluate_and_unlock(friend_id, as_of)
        link = await self.linker.link_workout(friend_id, workout_id, category, data.activity_date)

        workout = await self.get_workout(workout_id)
        return RecordedWorkout(workout=workout, new_badges=new_badges, event_link=link)

    async def get_workout(self, workout_id: int) -> Optional[WorkoutRecord]:
        result = await self.db.execute(
            select(WorkoutRecord)
            .where(WorkoutRecord.id == workout_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def has_external_id(self, friend_id: int, external_id: str) -> bool:
        result = await self.db.execute(
            select(WorkoutRecord.id).where(
                WorkoutRecord.friend_id == friend_id,
                WorkoutRecord.external_id == external_id,
            )
        )
        return result.first() is not None

    async def list_workouts(
        self,
        friend_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[WorkoutRecord]:
        """Workouts newest first, for one friend or everyone."""
        query = select(WorkoutRecord)
        if friend_id is not None:
            query = query.where(WorkoutRecord.friend_id == friend_id)
        query = (
            query.order_by(WorkoutRecord.activity_date.desc(), WorkoutRecord.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count_workouts(self, friend_id: Optional[int] = None) -> int:
        query = select(func.count(WorkoutRecord.id))
        if friend_id is not None:
            query = query.where(WorkoutRecord.friend_id == friend_id)
        result = await self.db.execute(query)
        return result.scalar_one()

    async def list_recent_feed(self, limit: int = 10) -> list[tuple[WorkoutRecord, Friend]]:
        """Latest logged workouts across all friends, for the activity feed."""
        result = await self.db.execute(
            select(WorkoutRecord, Friend)
            .join(Friend, Friend.id == WorkoutRecord.friend_id)
            .order_by(WorkoutRecord.created_at.desc(), WorkoutRecord.id.desc())
            .limit(limit)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def get_history(self, friend_id: int) -> list[WorkoutSnapshot]:
        result = await self.db.execute(
            select(WorkoutRecord).where(WorkoutRecord.friend_id == friend_id)
        )
        return [WorkoutSnapshot.from_record(r) for r in result.scalars().all()]

    async def delete_workout(self, workout_id: int, friend_id: Optional[int] = None) -> bool:
        """Delete a workout; ``friend_id`` restricts deletion to its owner."""
        stmt = delete(WorkoutRecord).where(WorkoutRecord.id == workout_id)
        if friend_id is not None:
            stmt = stmt.where(WorkoutRecord.friend_id == friend_id)
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount > 0
