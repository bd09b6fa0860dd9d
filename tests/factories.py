"""Builders for rows and Strava payloads shared across tests."""

from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from fitsquad.core.security import get_pin_hash
from fitsquad.models import FitnessEvent, FitnessEventParticipant, Friend

FRIEND_PIN = "1234"


async def create_friend(db: AsyncSession, name: str, is_admin: bool = False) -> Friend:
    friend = Friend(name=name, pin_hash=get_pin_hash(FRIEND_PIN), is_admin=is_admin)
    db.add(friend)
    await db.commit()
    await db.refresh(friend)
    return friend


def strava_activity(activity_id: int, **overrides) -> dict:
    """Strava activity detail payload."""
    payload = {
        "id": activity_id,
        "name": "Morning Run",
        "sport_type": "Run",
        "type": "Run",
        "start_date": "2026-10-14T05:30:00Z",
        "start_date_local": "2026-10-14T07:30:00Z",
        "moving_time": 1800,
        "elapsed_time": 1900,
        "distance": 5230.0,
        "average_heartrate": 151.4,
        "calories": 402.6,
    }
    payload.update(overrides)
    return payload


async def create_event(
    db: AsyncSession,
    activity_id: str,
    event_date: date,
    **fields,
) -> FitnessEvent:
    event = FitnessEvent(activity_id=activity_id, event_date=event_date, **fields)
    db.add(event)
    await db.commit()
    await db.refresh(event)
    return event


async def add_participant(
    db: AsyncSession,
    event: FitnessEvent,
    friend: Friend,
    attendance_status: str = "checked_in",
    rsvp_status: str = "going",
) -> FitnessEventParticipant:
    participant = FitnessEventParticipant(
        event_id=event.id,
        friend_id=friend.id,
        rsvp_status=rsvp_status,
        attendance_status=attendance_status,
    )
    db.add(participant)
    await db.commit()
    await db.refresh(participant)
    return participant
