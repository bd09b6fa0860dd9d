"""Group fitness event endpoints."""

from datetime import date, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from fitsquad.api.v1.endpoints.auth import AuthContext, get_auth_context, require_admin
from fitsquad.core.database import get_db
from fitsquad.core.exceptions import PersistenceConflict
from fitsquad.models.event import (
    AttendanceStatus,
    EventCategory,
    FitnessEvent,
    IntensityLevel,
    RsvpStatus,
)
from fitsquad.services.events import EventService, summarize

router = APIRouter()


# -------------------------------------------------------------------------
# Request/Response Models
# -------------------------------------------------------------------------


class FitnessEventCreate(BaseModel):
    activity_id: str = Field(min_length=1, max_length=64)
    event_date: date
    starts_at: datetime | None = None
    event_category: EventCategory = EventCategory.RUN
    intensity_level: IntensityLevel | None = None
    meetup_location: str | None = None
    meetup_lat: float | None = None
    meetup_lng: float | None = None
    meetup_notes: str | None = None
    auto_log_workouts: bool = True
    points_override: int | None = Field(default=None, ge=0)


class FitnessEventUpdate(BaseModel):
    event_date: date | None = None
    starts_at: datetime | None = None
    event_category: EventCategory | None = None
    intensity_level: IntensityLevel | None = None
    meetup_location: str | None = None
    meetup_lat: float | None = None
    meetup_lng: float | None = None
    meetup_notes: str | None = None
    auto_log_workouts: bool | None = None
    points_override: int | None = Field(default=None, ge=0)


class ParticipantResponse(BaseModel):
    id: int
    friend_id: int
    rsvp_status: str
    attendance_status: str
    checked_in_at: datetime | None
    fitness_activity_id: int | None
    bonus_points_awarded: int

    class Config:
        from_attributes = True


class FitnessEventResponse(BaseModel):
    id: int
    activity_id: str
    event_date: date
    starts_at: datetime | None
    event_category: str
    intensity_level: str | None
    meetup_location: str | None
    meetup_lat: float | None
    meetup_lng: float | None
    meetup_notes: str | None
    auto_log_workouts: bool
    points_override: int | None
    participants: list[ParticipantResponse]
    going_count: int = 0
    maybe_count: int = 0
    checked_in_count: int = 0

    class Config:
        from_attributes = True


class RsvpRequest(BaseModel):
    friend_id: int | None = None
    rsvp_status: RsvpStatus


class CheckInRequest(BaseModel):
    friend_id: int | None = None
    attendance_status: AttendanceStatus = AttendanceStatus.CHECKED_IN


class LinkRequest(BaseModel):
    friend_id: int | None = None
    workout_id: int


class LinkResponse(BaseModel):
    linked: bool
    event_id: int
    workout_id: int
    bonus_points: int = 0


def _event_response(event: FitnessEvent) -> FitnessEventResponse:
    overview = summarize(event)
    response = FitnessEventResponse.model_validate(event)
    response.going_count = overview.going_count
    response.maybe_count = overview.maybe_count
    response.checked_in_count = overview.checked_in_count
    return response


async def _get_event_or_404(service: EventService, event_id: int) -> FitnessEvent:
    event = await service.get_event(event_id)
    if event is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Fitness event not found",
        )
    return event


# -------------------------------------------------------------------------
# Event CRUD
# -------------------------------------------------------------------------


@router.post("", response_model=FitnessEventResponse, status_code=status.HTTP_201_CREATED)
async def create_fitness_event(
    request: FitnessEventCreate,
    auth: Annotated[AuthContext, Depends(require_admin)],
    db: AsyncSession = Depends(get_db),
) -> FitnessEventResponse:
    fields = request.model_dump(exclude={"activity_id"})
    try:
        event = await EventService(db).create_event(request.activity_id, **fields)
    except PersistenceConflict as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
    return _event_response(event)


@router.get("", response_model=list[FitnessEventResponse])
async def list_upcoming_events(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
    limit: int = Query(10, ge=1, le=50),
) -> list[FitnessEventResponse]:
    """Events from today onwards, soonest first."""
    overviews = await EventService(db).list_upcoming(limit=limit)
    return [_event_response(o.event) for o in overviews]


@router.get("/{event_id}", response_model=FitnessEventResponse)
async def get_fitness_event(
    event_id: int,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
) -> FitnessEventResponse:
    return _event_response(await _get_event_or_404(EventService(db), event_id))


@router.patch("/{event_id}", response_model=FitnessEventResponse)
async def update_fitness_event(
    event_id: int,
    request: FitnessEventUpdate,
    auth: Annotated[AuthContext, Depends(require_admin)],
    db: AsyncSession = Depends(get_db),
) -> FitnessEventResponse:
    event = await EventService(db).update_event(event_id, **request.model_dump(exclude_unset=True))
    if event is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Fitness event not found",
        )
    return _event_response(event)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_fitness_event(
    event_id: int,
    auth: Annotated[AuthContext, Depends(require_admin)],
    db: AsyncSession = Depends(get_db),
) -> None:
    if not await EventService(db).delete_event(event_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Fitness event not found",
        )


# -------------------------------------------------------------------------
# Participation
# -------------------------------------------------------------------------


@router.post("/{event_id}/rsvp", response_model=ParticipantResponse)
async def rsvp_to_event(
    event_id: int,
    request: RsvpRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
):
    """Set an RSVP; joins the event on first response (201)."""
    service = EventService(db)
    await _get_event_or_404(service, event_id)

    friend_id = auth.acting_friend_id(request.friend_id)
    participant, created = await service.rsvp(event_id, friend_id, request.rsvp_status)

    body = ParticipantResponse.model_validate(participant)
    if created:
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content=body.model_dump(mode="json"),
        )
    return body


@router.post("/{event_id}/check-in", response_model=ParticipantResponse)
async def check_in_to_event(
    event_id: int,
    request: CheckInRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
) -> ParticipantResponse:
    """Mark a participant as checked in (or a no-show)."""
    friend_id = auth.acting_friend_id(request.friend_id)
    participant = await EventService(db).set_attendance(
        event_id, friend_id, request.attendance_status
    )
    if participant is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Friend is not a participant of this event",
        )
    return ParticipantResponse.model_validate(participant)


@router.post("/{event_id}/link", response_model=LinkResponse)
async def link_workout_to_event(
    event_id: int,
    request: LinkRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
) -> LinkResponse:
    """Attach one of the friend's workouts to their participation.

    A participation that already has a workout is left unchanged and the
    response reports ``linked: false``.
    """
    friend_id = auth.acting_friend_id(request.friend_id)
    link = await EventService(db).link_workout(event_id, friend_id, request.workout_id)
    return LinkResponse(
        linked=link is not None,
        event_id=event_id,
        workout_id=request.workout_id,
        bonus_points=link.bonus_points if link else 0,
    )
