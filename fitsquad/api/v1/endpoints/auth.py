"""PIN authentication for squad members and the admin."""

import hmac
import logging
from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fitsquad.core.config import get_settings
from fitsquad.core.database import get_db
from fitsquad.core.security import verify_pin
from fitsquad.models.friend import Friend

router = APIRouter()
logger = logging.getLogger(__name__)

ROLE_FRIEND = "friend"
ROLE_ADMIN = "superadmin"


@dataclass(frozen=True)
class AuthContext:
    """Who is calling. ``friend_id`` is None for the admin."""

    friend_id: Optional[int]
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def acting_friend_id(self, requested: Optional[int] = None) -> int:
        """Friend an operation applies to.

        Friends always act for themselves. Admins act for the friend they
        name, or for themselves when they are also a squad member.

        Raises:
            HTTPException: 403 when a friend targets someone else, 400 when
                the PIN-only admin names nobody.
        """
        if self.is_admin:
            target = requested if requested is not None else self.friend_id
            if target is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="friend_id is required for admin requests",
                )
            return target
        if requested is not None and requested != self.friend_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Cannot act on behalf of another friend",
            )
        return self.friend_id


def _is_admin_pin(pin: str) -> bool:
    admin_pin = get_settings().admin_pin
    return bool(admin_pin) and hmac.compare_digest(pin.encode("utf-8"), admin_pin.encode("utf-8"))


async def authenticate(db: AsyncSession, friend_id: Optional[int], pin: str) -> AuthContext:
    """Resolve a PIN (and optional friend id) to an auth context.

    Raises:
        HTTPException: 401 if the PIN does not match.
    """
    if _is_admin_pin(pin):
        return AuthContext(friend_id=None, role=ROLE_ADMIN)

    if friend_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    result = await db.execute(select(Friend).where(Friend.id == friend_id))
    friend = result.scalar_one_or_none()
    if not friend or not friend.pin_hash or not verify_pin(pin, friend.pin_hash):
        logger.info(f"Rejected PIN for friend {friend_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid friend or PIN",
        )

    role = ROLE_ADMIN if friend.is_admin else ROLE_FRIEND
    return AuthContext(friend_id=friend.id, role=role)


async def get_auth_context(
    x_auth_pin: Annotated[str | None, Header()] = None,
    x_friend_id: Annotated[int | None, Header()] = None,
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Authenticate the request from the ``X-Friend-Id``/``X-Auth-Pin`` headers."""
    if not x_auth_pin:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return await authenticate(db, x_friend_id, x_auth_pin)


async def require_admin(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> AuthContext:
    if not auth.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return auth


# -------------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------------


class LoginRequest(BaseModel):
    friend_id: int | None = None
    pin: str


class LoginResponse(BaseModel):
    success: bool
    role: str
    friend_id: int | None
    friend_name: str | None = None


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """Check a PIN and report the resulting role.

    No session is created; clients send the same credentials as headers on
    every request.
    """
    auth = await authenticate(db, request.friend_id, request.pin)

    friend_name = None
    if auth.friend_id is not None:
        friend = await db.get(Friend, auth.friend_id)
        friend_name = friend.name if friend else None

    return LoginResponse(
        success=True,
        role=auth.role,
        friend_id=auth.friend_id,
        friend_name=friend_name,
    )


@router.get("/me", response_model=LoginResponse)
async def get_me(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    friend = await db.get(Friend, auth.friend_id) if auth.friend_id is not None else None
    return LoginResponse(
        success=True,
        role=auth.role,
        friend_id=auth.friend_id,
        friend_name=friend.name if friend else None,
    )
