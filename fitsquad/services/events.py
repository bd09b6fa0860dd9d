"""Fitness event storage: events, RSVPs and attendance."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fitsquad.core.database import upsert_insert
from fitsquad.core.exceptions import PersistenceConflict
from fitsquad.models.event import (
    AttendanceStatus,
    FitnessEvent,
    FitnessEventParticipant,
    RsvpStatus,
)
from fitsquad.models.workout import WorkoutRecord
from fitsquad.services.event_linker import EventAutoLinker, EventLink

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset(
    {
        "event_date",
        "starts_at",
        "event_category",
        "intensity_level",
        "meetup_location",
        "meetup_lat",
        "meetup_lng",
        "meetup_notes",
        "auto_log_workouts",
        "points_override",
    }
)


@dataclass
class EventOverview:
    event: FitnessEvent
    going_count: int
    maybe_count: int
    checked_in_count: int


def summarize(event: FitnessEvent) -> EventOverview:
    participants = event.participants
    return EventOverview(
        event=event,
        going_count=sum(p.rsvp_status == RsvpStatus.GOING.value for p in participants),
        maybe_count=sum(p.rsvp_status == RsvpStatus.MAYBE.value for p in participants),
        checked_in_count=sum(
            p.attendance_status == AttendanceStatus.CHECKED_IN.value for p in participants
        ),
    )


class EventService:
    def __init__(self, db: AsyncSession, linker: Optional[EventAutoLinker] = None):
        self.db = db
        self.linker = linker or EventAutoLinker(db)

    async def create_event(self, activity_id: str, **fields: Any) -> FitnessEvent:
        """Attach fitness details to a calendar activity.

        Raises:
            PersistenceConflict: The activity already has a fitness event.
        """
        event = FitnessEvent(activity_id=activity_id, **_editable(fields))
        self.db.add(event)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise PersistenceConflict("fitness event", activity_id) from e

        logger.info(f"Created fitness event {event.id} for activity {activity_id}")
        return await self.get_event(event.id)

    async def update_event(self, event_id: int, **changes: Any) -> Optional[FitnessEvent]:
        values = _editable(changes)
        if values:
            result = await self.db.execute(
                update(FitnessEvent).where(FitnessEvent.id == event_id).values(**values)
            )
            await self.db.commit()
            if result.rowcount == 0:
                return None
        return await self.get_event(event_id)

    async def delete_event(self, event_id: int) -> bool:
        await self.db.execute(
            delete(FitnessEventParticipant).where(FitnessEventParticipant.event_id == event_id)
        )
        result = await self.db.execute(delete(FitnessEvent).where(FitnessEvent.id == event_id))
        await self.db.commit()
        return result.rowcount > 0

    async def get_event(self, event_id: int) -> Optional[FitnessEvent]:
        result = await self.db.execute(
            select(FitnessEvent)
            .where(FitnessEvent.id == event_id)
            .options(selectinload(FitnessEvent.participants))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_event_by_activity_id(self, activity_id: str) -> Optional[FitnessEvent]:
        result = await self.db.execute(
            select(FitnessEvent)
            .where(FitnessEvent.activity_id == activity_id)
            .options(selectinload(FitnessEvent.participants))
        )
        return result.scalar_one_or_none()

    async def list_upcoming(
        self,
        today: Optional[date] = None,
        limit: int = 10,
    ) -> list[EventOverview]:
        today = today or date.today()
        result = await self.db.execute(
            select(FitnessEvent)
            .where(FitnessEvent.event_date >= today)
            .options(selectinload(FitnessEvent.participants))
            .execution_options(populate_existing=True)
            .order_by(FitnessEvent.event_date, FitnessEvent.starts_at.is_(None), FitnessEvent.starts_at)
            .limit(limit)
        )
        return [summarize(event) for event in result.scalars().all()]

    async def rsvp(
        self,
        event_id: int,
        friend_id: int,
        status: RsvpStatus | str,
    ) -> tuple[FitnessEventParticipant, bool]:
        """Set a friend's RSVP, joining the event if needed.

        Returns:
            The participant row and whether it was created by this call.
        """
        status = RsvpStatus(status)
        existing = await self.get_participant(event_id, friend_id)

        stmt = (
            upsert_insert(self.db, FitnessEventParticipant)
            .values(
                event_id=event_id,
                friend_id=friend_id,
                rsvp_status=status.value,
                attendance_status=AttendanceStatus.PENDING.value,
                bonus_points_awarded=0,
            )
            .on_conflict_do_update(
                index_elements=["event_id", "friend_id"],
                set_={"rsvp_status": status.value},
            )
        )
        await self.db.execute(stmt)
        await self.db.commit()

        participant = await self.get_participant(event_id, friend_id, refresh=True)
        return participant, existing is None

    async def set_attendance(
        self,
        event_id: int,
        friend_id: int,
        status: AttendanceStatus | str = AttendanceStatus.CHECKED_IN,
    ) -> Optional[FitnessEventParticipant]:
        """Record attendance for an existing participant.

        ``checked_in_at`` is stamped only for check-ins. Returns None when the
        friend is not a participant of the event.
        """
        status = AttendanceStatus(status)
        values: dict[str, Any] = {"attendance_status": status.value}
        if status == AttendanceStatus.CHECKED_IN:
            values["checked_in_at"] = datetime.now(timezone.utc)

        result = await self.db.execute(
            update(FitnessEventParticipant)
            .where(
                FitnessEventParticipant.event_id == event_id,
                FitnessEventParticipant.friend_id == friend_id,
            )
            .values(**values)
        )
        await self.db.commit()
        if result.rowcount == 0:
            return None
        return await self.get_participant(event_id, friend_id, refresh=True)

    async def link_workout(
        self,
        event_id: int,
        friend_id: int,
        workout_id: int,
    ) -> Optional[EventLink]:
        """Manually link one of the friend's workouts to their participation."""
        owned = await self.db.execute(
            select(WorkoutRecord.id).where(
                WorkoutRecord.id == workout_id,
                WorkoutRecord.friend_id == friend_id,
            )
        )
        if owned.first() is None:
            return None
        return await self.linker.link_to_event(event_id, friend_id, workout_id)

    async def get_participant(
        self,
        event_id: int,
        friend_id: int,
        refresh: bool = False,
    ) -> Optional[FitnessEventParticipant]:
        query = select(FitnessEventParticipant).where(
            FitnessEventParticipant.event_id == event_id,
            FitnessEventParticipant.friend_id == friend_id,
        )
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()


def _editable(fields: dict[str, Any]) -> dict[str, Any]:
    values = {}
    for key, value in fields.items():
        if key not in EDITABLE_FIELDS:
            raise ValueError(f"Unknown fitness event field: {key}")
        values[key] = value.value if isinstance(value, Enum) else value
    return values
