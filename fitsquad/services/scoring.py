"""Scoring rules, calorie estimates and streak tracking.

All functions here are pure: they take plain values or immutable
``WorkoutSnapshot`` objects and never touch the database.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional

from fitsquad.models.workout import ActivityCategory, WorkoutRecord

DISTANCE_CATEGORIES = frozenset(
    {
        ActivityCategory.RUN,
        ActivityCategory.BIKE,
        ActivityCategory.SWIM,
        ActivityCategory.WALK,
        ActivityCategory.HIKE,
    }
)

POINTS_PER_KM = 10
GYM_POINTS_PER_10_MIN = 5
RECOVERY_POINTS_PER_10_MIN = 3
HIIT_DEFAULT_EFFORT = 1.5
HIIT_MIN_EFFORT = 0.5
HIIT_MAX_EFFORT = 2.0
MIN_POINTS = 1

# kcal per km for distance sports, kcal per hour otherwise (70 kg adult)
CALORIES_PER_KM = {
    ActivityCategory.RUN: 100,
    ActivityCategory.BIKE: 50,
    ActivityCategory.WALK: 65,
    ActivityCategory.HIKE: 65,
}
CALORIES_PER_HOUR = {
    ActivityCategory.SWIM: 600,
    ActivityCategory.GYM: 375,
    ActivityCategory.YOGA: 225,
}
DEFAULT_CALORIES_PER_HOUR = 200


@dataclass(frozen=True)
class WorkoutSnapshot:
    """Immutable view of a workout used by rule evaluation."""

    category: ActivityCategory
    activity_date: date
    duration_minutes: int
    distance_km: Optional[float] = None
    calories: Optional[int] = None
    points: int = 0
    started_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: WorkoutRecord) -> "WorkoutSnapshot":
        return cls(
            category=ActivityCategory(record.category),
            activity_date=record.activity_date,
            duration_minutes=record.duration_minutes,
            distance_km=record.distance_km,
            calories=record.calories,
            points=record.points,
            started_at=record.started_at,
        )


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (``round`` uses banker's rounding)."""
    return int(math.floor(value + 0.5))


def hiit_effort(heart_rate: Optional[float]) -> float:
    """Effort multiplier derived from average heart rate."""
    if not heart_rate:
        return HIIT_DEFAULT_EFFORT
    effort = (heart_rate - 100) / 100 + 1
    return min(HIIT_MAX_EFFORT, max(HIIT_MIN_EFFORT, effort))


def calculate_points(
    category: ActivityCategory | str,
    duration_minutes: float,
    distance_km: Optional[float] = None,
    heart_rate: Optional[float] = None,
) -> int:
    """Compute points for a workout.

    Args:
        category: Workout category.
        duration_minutes: Duration in minutes.
        distance_km: Distance in km (distance sports only).
        heart_rate: Average heart rate (HIIT effort).

    Returns:
        Integer points, never below 1.
    """
    category = ActivityCategory(category)

    if category in DISTANCE_CATEGORIES:
        points = round_half_up((distance_km or 0) * POINTS_PER_KM)
    elif category == ActivityCategory.HIIT:
        points = round_half_up(hiit_effort(heart_rate) * duration_minutes)
    elif category == ActivityCategory.GYM:
        points = round_half_up(duration_minutes / 10 * GYM_POINTS_PER_10_MIN)
    else:
        points = round_half_up(duration_minutes / 10 * RECOVERY_POINTS_PER_10_MIN)

    return max(points, MIN_POINTS)


def estimate_calories(
    category: ActivityCategory | str,
    distance_km: Optional[float],
    duration_minutes: float,
) -> int:
    """Estimate kilocalories when the source supplies none."""
    category = ActivityCategory(category)

    if category in CALORIES_PER_KM:
        return round_half_up((distance_km or 0) * CALORIES_PER_KM[category])

    per_hour = CALORIES_PER_HOUR.get(category, DEFAULT_CALORIES_PER_HOUR)
    return round_half_up(duration_minutes / 60 * per_hour)


def calculate_current_streak(history: Iterable[WorkoutSnapshot], as_of: date) -> int:
    """Count consecutive active days ending at ``as_of`` (or the day before).

    Each calendar day counts once no matter how many workouts it holds.
    Workouts dated after ``as_of`` are ignored. The streak ends at the first
    gap of two or more days.
    """
    ordered = sorted(history, key=lambda w: w.activity_date, reverse=True)

    streak = 0
    cursor = as_of
    last_counted: Optional[date] = None
    for workout in ordered:
        day = workout.activity_date
        if day > as_of or day == last_counted:
            continue
        days_diff = (cursor - day).days
        if days_diff in (0, 1):
            streak += 1
            cursor = day
            last_counted = day
        else:
            break

    return streak
