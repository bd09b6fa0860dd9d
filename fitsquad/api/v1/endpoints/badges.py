"""Badge catalog and unlock endpoints."""

from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from fitsquad.api.v1.endpoints.auth import AuthContext, get_auth_context
from fitsquad.core.database import get_db
from fitsquad.services.badges import BADGE_DEFINITIONS, BadgeDefinition, BadgeService

router = APIRouter()


class BadgeResponse(BaseModel):
    id: str
    name: str
    description: str
    emoji: str
    category: str
    unlocked: bool = False
    unlocked_at: datetime | None = None
    metadata: dict[str, Any] | None = None


class BadgeCollectionResponse(BaseModel):
    friend_id: int
    unlocked_count: int
    total_count: int
    badges: list[BadgeResponse]


class BadgeCheckResponse(BaseModel):
    new_badges: list[BadgeResponse]


def _definition_response(badge: BadgeDefinition, **extra: Any) -> BadgeResponse:
    return BadgeResponse(
        id=badge.id,
        name=badge.name,
        description=badge.description,
        emoji=badge.emoji,
        category=badge.category.value,
        **extra,
    )


@router.get("", response_model=BadgeCollectionResponse)
async def list_badges(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
    friend_id: int | None = None,
) -> BadgeCollectionResponse:
    """Full catalog, annotated with a friend's unlocks.

    ``friend_id`` may name any squad member: badge collections are public
    within the squad. Only ``/check`` requires acting as that friend.
    """
    target = friend_id if friend_id is not None else auth.acting_friend_id()
    unlocked = {b.badge_type: b for b in await BadgeService(db).list_badges(target)}

    badges = []
    for definition in BADGE_DEFINITIONS:
        record = unlocked.get(definition.id)
        badges.append(
            _definition_response(
                definition,
                unlocked=record is not None,
                unlocked_at=record.unlocked_at if record else None,
                metadata=record.badge_metadata if record else None,
            )
        )

    return BadgeCollectionResponse(
        friend_id=target,
        unlocked_count=sum(b.unlocked for b in badges),
        total_count=len(BADGE_DEFINITIONS),
        badges=badges,
    )


@router.post("/check", response_model=BadgeCheckResponse)
async def check_badges(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
    friend_id: int | None = None,
) -> BadgeCheckResponse:
    """Evaluate the catalog now and unlock anything newly earned."""
    target = auth.acting_friend_id(friend_id)
    new_badges = await BadgeService(db).evaluate_and_unlock(target)

    return BadgeCheckResponse(
        new_badges=[_definition_response(b, unlocked=True) for b in new_badges]
    )
