"""Group fitness event models."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fitsquad.models.base import BaseModel


class EventCategory(str, Enum):
    """Category of a group fitness event."""

    RUN = "run"
    RACE = "race"
    RIDE = "ride"
    HIKE = "hike"
    SWIM = "swim"
    OTHER = "other"


class IntensityLevel(str, Enum):
    """Intensity of a group fitness event."""

    EASY = "easy"
    MODERATE = "moderate"
    HARD = "hard"
    RACE = "race"


class RsvpStatus(str, Enum):
    """Participant RSVP."""

    INVITED = "invited"
    GOING = "going"
    MAYBE = "maybe"
    DECLINED = "declined"
    WAITLIST = "waitlist"


class AttendanceStatus(str, Enum):
    """Participant attendance."""

    PENDING = "pending"
    CHECKED_IN = "checked_in"
    NO_SHOW = "no_show"


class FitnessEvent(BaseModel):
    """Fitness details attached to a trip-calendar activity."""

    __tablename__ = "fitness_events"

    id: Mapped[int] = mapped_column(primary_key=True)
    # Trip/activity calendar entry owned by the wider application
    activity_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)

    event_date: Mapped[date] = mapped_column(Date, index=True)
    starts_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    event_category: Mapped[str] = mapped_column(String(20), default=EventCategory.RUN.value)
    intensity_level: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    meetup_location: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    meetup_lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    meetup_lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    meetup_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    auto_log_workouts: Mapped[bool] = mapped_column(Boolean, default=True)
    points_override: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Relationship
    participants: Mapped[list["FitnessEventParticipant"]] = relationship(
        "FitnessEventParticipant",
        back_populates="event",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<FitnessEvent(id={self.id}, category={self.event_category}, date={self.event_date})>"


class FitnessEventParticipant(BaseModel):
    """A friend's RSVP, attendance and linked workout for one event."""

    __tablename__ = "fitness_event_participants"
    __table_args__ = (
        UniqueConstraint("event_id", "friend_id", name="uq_fitness_event_participant"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    event_id: Mapped[int] = mapped_column(
        ForeignKey("fitness_events.id", ondelete="CASCADE"),
        index=True,
    )
    friend_id: Mapped[int] = mapped_column(
        ForeignKey("friends.id", ondelete="CASCADE"),
        index=True,
    )

    rsvp_status: Mapped[str] = mapped_column(String(20), default=RsvpStatus.INVITED.value)
    attendance_status: Mapped[str] = mapped_column(
        String(20),
        default=AttendanceStatus.PENDING.value,
        index=True,
    )
    checked_in_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Set at most once, by a conditional UPDATE
    fitness_activity_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("fitness_activities.id", ondelete="SET NULL"),
        nullable=True,
    )
    bonus_points_awarded: Mapped[int] = mapped_column(Integer, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationship
    event: Mapped["FitnessEvent"] = relationship("FitnessEvent", back_populates="participants")

    def __repr__(self) -> str:
        return (
            f"<FitnessEventParticipant(event_id={self.event_id}, friend_id={self.friend_id}, "
            f"attendance={self.attendance_status})>"
        )
