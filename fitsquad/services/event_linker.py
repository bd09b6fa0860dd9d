"""Attach freshly logged workouts to checked-in group events."""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fitsquad.core.config import Settings, get_settings
from fitsquad.models.event import (
    AttendanceStatus,
    EventCategory,
    FitnessEvent,
    FitnessEventParticipant,
)
from fitsquad.models.workout import ActivityCategory, WorkoutRecord
from fitsquad.observability import MetricsBackend, get_metrics_backend

logger = logging.getLogger(__name__)

# Workout category -> event categories it can satisfy
EVENT_CATEGORY_MAP: dict[ActivityCategory, frozenset[EventCategory]] = {
    ActivityCategory.RUN: frozenset({EventCategory.RUN, EventCategory.RACE}),
    ActivityCategory.BIKE: frozenset({EventCategory.RIDE}),
    ActivityCategory.HIKE: frozenset({EventCategory.HIKE}),
    ActivityCategory.SWIM: frozenset({EventCategory.SWIM}),
}
FALLBACK_EVENT_CATEGORIES = frozenset({EventCategory.OTHER})


def compatible_event_categories(category: ActivityCategory | str) -> frozenset[EventCategory]:
    return EVENT_CATEGORY_MAP.get(ActivityCategory(category), FALLBACK_EVENT_CATEGORIES)


@dataclass(frozen=True)
class EventLink:
    event_id: int
    participant_id: int
    workout_id: int
    bonus_points: int


class EventAutoLinker:
    """Links a workout to at most one matching event participation.

    The participant row is claimed with a conditional UPDATE
    (``fitness_activity_id IS NULL``); only the caller whose UPDATE touched
    exactly one row awards the bonus.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Optional[Settings] = None,
        metrics: Optional[MetricsBackend] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.metrics = metrics or get_metrics_backend()

    async def try_link_workout(
        self,
        friend_id: int,
        workout_id: int,
        category: ActivityCategory | str,
        workout_date: date,
    ) -> bool:
        return await self.link_workout(friend_id, workout_id, category, workout_date) is not None

    async def link_workout(
        self,
        friend_id: int,
        workout_id: int,
        category: ActivityCategory | str,
        workout_date: date,
    ) -> Optional[EventLink]:
        """Link a workout to the first eligible event and award its bonus.

        Eligible events are on the workout's date, have auto-logging on,
        accept the workout's category and have the friend checked in with no
        workout linked yet. Earlier ``starts_at`` wins; events without a start
        time come last; event id breaks remaining ties.

        Returns:
            The link that was made, or None if nothing matched or another
            caller claimed the participation first.
        """
        candidate = await self.find_candidate(friend_id, category, workout_date)
        if candidate is None:
            return None

        participant, event = candidate
        return await self._link(participant, event, workout_id)

    async def link_to_event(
        self,
        event_id: int,
        friend_id: int,
        workout_id: int,
    ) -> Optional[EventLink]:
        """Link a workout to a specific event participation by hand.

        Skips the date and category checks but keeps the at-most-once claim.
        """
        result = await self.db.execute(
            select(FitnessEventParticipant, FitnessEvent)
            .join(FitnessEvent, FitnessEvent.id == FitnessEventParticipant.event_id)
            .where(
                FitnessEventParticipant.event_id == event_id,
                FitnessEventParticipant.friend_id == friend_id,
            )
        )
        row = result.first()
        if row is None:
            return None
        return await self._link(row[0], row[1], workout_id)

    def bonus_for(self, event: FitnessEvent) -> int:
        if event.points_override is not None:
            return event.points_override
        return self.settings.event_base_bonus_points

    async def _link(
        self,
        participant: FitnessEventParticipant,
        event: FitnessEvent,
        workout_id: int,
    ) -> Optional[EventLink]:
        friend_id = participant.friend_id
        bonus = self.bonus_for(event)

        if not await self._claim(participant.id, workout_id, bonus):
            logger.info(
                f"Participation {participant.id} already linked; workout {workout_id} not linked"
            )
            self.metrics.observe_event_link(False)
            return None

        await self.db.execute(
            update(WorkoutRecord)
            .where(WorkoutRecord.id == workout_id)
            .values(points=WorkoutRecord.points + bonus)
        )
        await self.db.commit()

        self.metrics.observe_event_link(True)
        logger.info(
            f"Linked workout {workout_id} to event {event.id} for friend {friend_id} (+{bonus} points)"
        )
        return EventLink(
            event_id=event.id,
            participant_id=participant.id,
            workout_id=workout_id,
            bonus_points=bonus,
        )

    async def find_candidate(
        self,
        friend_id: int,
        category: ActivityCategory | str,
        workout_date: date,
    ) -> Optional[tuple[FitnessEventParticipant, FitnessEvent]]:
        categories = [c.value for c in compatible_event_categories(category)]
        result = await self.db.execute(
            select(FitnessEventParticipant, FitnessEvent)
            .join(FitnessEvent, FitnessEvent.id == FitnessEventParticipant.event_id)
            .where(
                FitnessEventParticipant.friend_id == friend_id,
                FitnessEventParticipant.attendance_status == AttendanceStatus.CHECKED_IN.value,
                FitnessEventParticipant.fitness_activity_id.is_(None),
                FitnessEvent.event_date == workout_date,
                FitnessEvent.auto_log_workouts.is_(True),
                FitnessEvent.event_category.in_(categories),
            )
            .order_by(
                FitnessEvent.starts_at.is_(None),
                FitnessEvent.starts_at,
                FitnessEvent.id,
            )
            .limit(1)
        )
        row = result.first()
        return (row[0], row[1]) if row else None

    async def _claim(self, participant_id: int, workout_id: int, bonus: int) -> bool:
        result = await self.db.execute(
            update(FitnessEventParticipant)
            .where(
                FitnessEventParticipant.id == participant_id,
                FitnessEventParticipant.fitness_activity_id.is_(None),
            )
            .values(fitness_activity_id=workout_id, bonus_points_awarded=bonus)
        )
        return result.rowcount == 1
