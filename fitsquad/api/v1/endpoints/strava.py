"""Strava integration endpoints."""

import hmac
import logging
from datetime import datetime, timezone
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from fitsquad.api.v1.endpoints.auth import AuthContext, get_auth_context
from fitsquad.core.config import get_settings
from fitsquad.core.database import get_db
from fitsquad.core.exceptions import ExternalServiceError
from fitsquad.core.security import verify_oauth_state
from fitsquad.services.scoring import round_half_up
from fitsquad.services.strava_sync import StravaSyncService
from fitsquad.services.strava_tokens import StravaTokenManager

router = APIRouter()
settings = get_settings()
logger = logging.getLogger(__name__)


# -------------------------------------------------------------------------
# Response Models
# -------------------------------------------------------------------------


class StravaConnectResponse(BaseModel):
    """Strava OAuth initiation response."""

    auth_url: str
    message: str


class StravaCallbackRequest(BaseModel):
    """OAuth callback data."""

    code: str
    state: str


class StravaCallbackResponse(BaseModel):
    success: bool
    message: str
    athlete_id: int | None = None


class StravaStatusResponse(BaseModel):
    """Strava connection status."""

    connected: bool
    athlete_id: int | None = None
    expires_at: datetime | None = None
    connected_at: datetime | None = None
    last_sync_at: datetime | None = None


class SyncResponse(BaseModel):
    status: str
    success: bool
    message: str
    items_fetched: int
    items_created: int
    items_skipped: int
    items_failed: int
    new_badges: list[str]


class StravaTotals(BaseModel):
    count: int = 0
    distance_km: int = 0
    moving_time_hours: int = 0
    elevation_gain_m: int | None = None


class StravaPeriodTotals(BaseModel):
    runs: StravaTotals
    rides: StravaTotals
    swims: StravaTotals


class StravaStats(BaseModel):
    """Strava activity totals, rounded to whole units."""

    all_time: StravaPeriodTotals
    ytd: StravaPeriodTotals
    recent: StravaPeriodTotals


class StravaAthleteProfile(BaseModel):
    id: int
    username: str | None = None
    firstname: str | None = None
    lastname: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    sex: str | None = None
    premium: bool | None = None
    summit: bool | None = None
    created_at: datetime | None = None
    profile_photo: str | None = None
    weight: float | None = None
    bio: str | None = None


class StravaProfileResponse(BaseModel):
    """Strava athlete profile; ``stats`` is None when Strava did not return them."""

    profile: StravaAthleteProfile
    stats: StravaStats | None = None


# -------------------------------------------------------------------------
# OAuth Endpoints
# -------------------------------------------------------------------------


@router.get("/connect", response_model=StravaConnectResponse)
async def initiate_strava_connect(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
) -> StravaConnectResponse:
    """Build the Strava consent URL for the calling friend."""
    if not settings.strava_client_id or not settings.strava_redirect_uri:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Strava OAuth not configured",
        )

    friend_id = auth.acting_friend_id()
    return StravaConnectResponse(
        auth_url=StravaTokenManager(db).build_authorize_url(friend_id),
        message="Redirect user to auth_url to authorize Strava access",
    )


@router.post("/callback", response_model=StravaCallbackResponse)
async def handle_strava_callback(
    request: StravaCallbackRequest,
    db: AsyncSession = Depends(get_db),
) -> StravaCallbackResponse:
    """Complete the OAuth flow.

    The signed ``state`` issued by ``/connect`` identifies the friend, so the
    browser redirect needs no PIN headers.
    """
    friend_id = _friend_from_state(request.state)
    if friend_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid OAuth state",
        )

    try:
        connection = await StravaTokenManager(db).exchange_code(friend_id, request.code)
    except ExternalServiceError as e:
        logger.warning(f"Strava OAuth exchange failed for friend {friend_id}: status={e.status_code}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="OAuth exchange failed",
        )

    return StravaCallbackResponse(
        success=True,
        message="Strava account connected successfully",
        athlete_id=connection.athlete_id,
    )


@router.get("/status", response_model=StravaStatusResponse)
async def get_strava_status(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
    friend_id: int | None = None,
) -> StravaStatusResponse:
    """Connection state for a friend.

    ``friend_id`` may name any squad member; connection status is shared with
    the squad and never exposes tokens.
    """
    target = friend_id if friend_id is not None else auth.acting_friend_id()
    connection = await StravaTokenManager(db).get_connection(target)
    if connection is None:
        return StravaStatusResponse(connected=False)

    return StravaStatusResponse(
        connected=True,
        athlete_id=connection.athlete_id,
        expires_at=datetime.fromtimestamp(connection.expires_at, tz=timezone.utc),
        connected_at=connection.connected_at,
        last_sync_at=connection.last_sync_at,
    )


@router.delete("/disconnect", status_code=status.HTTP_204_NO_CONTENT)
async def disconnect_strava(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
) -> None:
    """Forget the Strava tokens. Synced workouts are kept."""
    await StravaTokenManager(db).disconnect(auth.acting_friend_id())


# -------------------------------------------------------------------------
# Athlete Profile
# -------------------------------------------------------------------------


@router.get("/profile", response_model=StravaProfileResponse)
async def get_strava_profile(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
    friend_id: int | None = None,
) -> StravaProfileResponse:
    """Strava athlete profile and activity totals for a friend.

    Like ``/status``, ``friend_id`` may name any squad member. Stats are
    optional: if Strava fails to return them the profile is still served.
    """
    target = friend_id if friend_id is not None else auth.acting_friend_id()
    manager = StravaTokenManager(db)
    access_token = await manager.get_valid_token(target)
    if access_token is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No Strava connection found",
        )

    try:
        athlete = await manager.client.get_athlete(access_token)
    except ExternalServiceError as e:
        logger.error(f"Failed to fetch Strava profile for friend {target}: status={e.status_code}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to fetch Strava profile",
        )

    stats = None
    try:
        raw_stats = await manager.client.get_athlete_stats(access_token, athlete["id"])
        stats = _stats_response(raw_stats)
    except ExternalServiceError as e:
        logger.warning(f"Strava stats unavailable for friend {target}: status={e.status_code}")

    return StravaProfileResponse(
        profile=StravaAthleteProfile(
            id=athlete["id"],
            username=athlete.get("username"),
            firstname=athlete.get("firstname"),
            lastname=athlete.get("lastname"),
            city=athlete.get("city"),
            state=athlete.get("state"),
            country=athlete.get("country"),
            sex=athlete.get("sex"),
            premium=athlete.get("premium"),
            summit=athlete.get("summit"),
            created_at=athlete.get("created_at"),
            profile_photo=athlete.get("profile_medium") or athlete.get("profile"),
            weight=athlete.get("weight"),
            bio=athlete.get("bio"),
        ),
        stats=stats,
    )


# -------------------------------------------------------------------------
# Sync Endpoints
# -------------------------------------------------------------------------


@router.post("/sync", response_model=SyncResponse)
async def run_strava_sync(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    db: AsyncSession = Depends(get_db),
    friend_id: int | None = None,
) -> SyncResponse:
    """Pull recent Strava activities for a friend.

    Failures are reported in the body (``status``) rather than as HTTP
    errors, except for a missing connection.
    """
    target = auth.acting_friend_id(friend_id)
    result = await StravaSyncService(db).sync_recent(target)
    if result.status == "not_connected":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.message,
        )

    payload = result.to_dict()
    return SyncResponse(**{k: payload[k] for k in SyncResponse.model_fields})


# -------------------------------------------------------------------------
# Webhook
# -------------------------------------------------------------------------


@router.get("/webhook")
async def verify_strava_webhook(
    hub_mode: str | None = Query(None, alias="hub.mode"),
    hub_verify_token: str | None = Query(None, alias="hub.verify_token"),
    hub_challenge: str | None = Query(None, alias="hub.challenge"),
) -> dict[str, Any]:
    """Strava subscription handshake."""
    expected = settings.strava_webhook_verify_token
    if (
        hub_mode == "subscribe"
        and expected
        and hub_verify_token
        and hmac.compare_digest(hub_verify_token, expected)
    ):
        logger.info("Strava webhook subscription verified")
        return {"hub.challenge": hub_challenge}

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Forbidden",
    )


@router.post("/webhook")
async def receive_strava_webhook(
    event: Annotated[dict[str, Any], Body()],
    db: AsyncSession = Depends(get_db),
) -> dict[str, bool]:
    """Handle a Strava push event.

    Always answers 200 so Strava does not retry; failures are logged.
    """
    if event.get("object_type") == "activity" and event.get("aspect_type") == "create":
        try:
            await StravaSyncService(db).sync_activity(
                int(event["owner_id"]),
                event["object_id"],
            )
        except Exception:
            logger.exception(
                f"Error processing Strava webhook for activity {event.get('object_id')}"
            )
            await db.rollback()

    return {"received": True}


def _totals(raw: dict[str, Any] | None, elevation: bool = True) -> StravaTotals:
    raw = raw or {}
    return StravaTotals(
        count=raw.get("count") or 0,
        distance_km=round_half_up((raw.get("distance") or 0) / 1000),
        moving_time_hours=round_half_up((raw.get("moving_time") or 0) / 3600),
        # Strava reports no elevation for swims
        elevation_gain_m=round_half_up(raw.get("elevation_gain") or 0) if elevation else None,
    )


def _stats_response(stats: dict[str, Any]) -> StravaStats:
    periods = {}
    for period, prefix in (("all_time", "all"), ("ytd", "ytd"), ("recent", "recent")):
        periods[period] = StravaPeriodTotals(
            runs=_totals(stats.get(f"{prefix}_run_totals")),
            rides=_totals(stats.get(f"{prefix}_ride_totals")),
            swims=_totals(stats.get(f"{prefix}_swim_totals"), elevation=False),
        )
    return StravaStats(**periods)


def _friend_from_state(state: str) -> int | None:
    raw_id, _, _ = state.partition(".")
    if not raw_id.isdigit():
        return None
    friend_id = int(raw_id)
    return friend_id if verify_oauth_state(state, friend_id) else None
