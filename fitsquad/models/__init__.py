"""Database models for FitSquad."""

from fitsquad.models.friend import Friend
from fitsquad.models.workout import ActivityCategory, WorkoutRecord, WorkoutSource
from fitsquad.models.badge import FitnessBadge
from fitsquad.models.strava import StravaConnection
from fitsquad.models.event import (
    AttendanceStatus,
    EventCategory,
    FitnessEvent,
    FitnessEventParticipant,
    IntensityLevel,
    RsvpStatus,
)

__all__ = [
    # Friend
    "Friend",
    # Workout
    "WorkoutRecord",
    "ActivityCategory",
    "WorkoutSource",
    # Badge
    "FitnessBadge",
    # Strava
    "StravaConnection",
    # Events
    "FitnessEvent",
    "FitnessEventParticipant",
    "EventCategory",
    "IntensityLevel",
    "RsvpStatus",
    "AttendanceStatus",
]
