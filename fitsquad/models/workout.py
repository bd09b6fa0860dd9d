"""Workout record models."""

from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fitsquad.models.base import BaseModel

if TYPE_CHECKING:
    from fitsquad.models.friend import Friend


class ActivityCategory(str, Enum):
    """Workout category."""

    RUN = "run"
    BIKE = "bike"
    SWIM = "swim"
    WALK = "walk"
    HIKE = "hike"
    GYM = "gym"
    YOGA = "yoga"
    HIIT = "hiit"
    OTHER = "other"


class WorkoutSource(str, Enum):
    """Where a workout record came from."""

    MANUAL = "manual"
    STRAVA = "strava"
    APPLE_HEALTH = "apple_health"


class WorkoutRecord(BaseModel):
    """One logged exercise session, manual or synced."""

    __tablename__ = "fitness_activities"
    __table_args__ = (
        UniqueConstraint("friend_id", "external_id", name="uq_fitness_activity_friend_external"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    friend_id: Mapped[int] = mapped_column(
        ForeignKey("friends.id", ondelete="CASCADE"),
        index=True,
    )

    category: Mapped[str] = mapped_column(String(20), index=True)
    activity_date: Mapped[date] = mapped_column(Date, index=True)
    # Local start time when known (synced records); drives time-of-day badges
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    duration_minutes: Mapped[int] = mapped_column(Integer)
    distance_km: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    calories: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    heart_rate: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    points: Mapped[int] = mapped_column(Integer)
    source: Mapped[str] = mapped_column(String(20), default=WorkoutSource.MANUAL.value)
    external_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationship
    friend: Mapped["Friend"] = relationship("Friend", back_populates="workouts")

    def __repr__(self) -> str:
        return (
            f"<WorkoutRecord(id={self.id}, friend_id={self.friend_id}, "
            f"category={self.category}, date={self.activity_date})>"
        )
