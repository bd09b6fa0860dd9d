"""Strava OAuth token lifecycle: exchange, refresh, disconnect."""

import logging
import time
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlencode

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fitsquad.core.config import Settings, get_settings
from fitsquad.core.database import upsert_insert
from fitsquad.core.exceptions import ExternalServiceError
from fitsquad.core.security import sign_oauth_state
from fitsquad.models.strava import StravaConnection
from fitsquad.services.strava_client import StravaClient

logger = logging.getLogger(__name__)


class StravaTokenManager:
    """Keeps each friend's Strava access token usable."""

    def __init__(
        self,
        db: AsyncSession,
        client: Optional[StravaClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.client = client or StravaClient(self.settings)

    async def get_connection(self, friend_id: int) -> Optional[StravaConnection]:
        result = await self.db.execute(
            select(StravaConnection).where(StravaConnection.friend_id == friend_id)
        )
        return result.scalar_one_or_none()

    async def get_connection_by_athlete(self, athlete_id: int) -> Optional[StravaConnection]:
        result = await self.db.execute(
            select(StravaConnection).where(StravaConnection.athlete_id == athlete_id)
        )
        return result.scalars().first()

    async def get_valid_token(self, friend_id: int, now: Optional[float] = None) -> Optional[str]:
        """Return a usable access token, refreshing it first if it is expiring.

        Args:
            friend_id: Friend whose connection to use.
            now: Current epoch seconds (defaults to the wall clock).

        Returns:
            The access token, or None if the friend has no connection or the
            refresh failed. A failed refresh leaves the stored row untouched.
        """
        connection = await self.get_connection(friend_id)
        if connection is None:
            return None

        now = time.time() if now is None else now
        if connection.expires_at > now + self.settings.strava_token_refresh_margin_seconds:
            return connection.access_token

        return await self.refresh(connection)

    async def refresh(self, connection: StravaConnection) -> Optional[str]:
        """Rotate the token pair and persist it in one UPDATE."""
        try:
            tokens = await self.client.refresh_token(connection.refresh_token)
        except ExternalServiceError as e:
            logger.warning(
                f"Strava token refresh failed for friend {connection.friend_id}: "
                f"status={e.status_code}"
            )
            return None

        await self.db.execute(
            update(StravaConnection)
            .where(StravaConnection.id == connection.id)
            .values(
                access_token=tokens["access_token"],
                refresh_token=tokens["refresh_token"],
                expires_at=int(tokens["expires_at"]),
            )
        )
        await self.db.commit()
        await self.db.refresh(connection)

        logger.info(f"Refreshed Strava token for friend {connection.friend_id}")
        return tokens["access_token"]

    async def exchange_code(self, friend_id: int, code: str) -> StravaConnection:
        """Complete the OAuth flow and store the connection.

        Reconnecting replaces the previous token pair and athlete id, restarts
        ``connected_at`` and clears ``last_sync_at``.

        Raises:
            ExternalServiceError: Strava rejected the code or was unreachable.
        """
        tokens = await self.client.exchange_token(code)
        athlete_id = int(tokens["athlete"]["id"])

        values = {
            "access_token": tokens["access_token"],
            "refresh_token": tokens["refresh_token"],
            "expires_at": int(tokens["expires_at"]),
            "athlete_id": athlete_id,
            "scope": tokens.get("scope") or self.settings.strava_scope,
        }
        stmt = upsert_insert(self.db, StravaConnection).values(friend_id=friend_id, **values)
        # Reconnecting starts a fresh connection
        stmt = stmt.on_conflict_do_update(
            index_elements=["friend_id"],
            set_={**values, "connected_at": datetime.now(timezone.utc), "last_sync_at": None},
        )
        await self.db.execute(stmt)
        await self.db.commit()

        connection = await self.get_connection(friend_id)
        # Upsert bypasses the identity map
        await self.db.refresh(connection)
        logger.info(f"Strava connected for friend {friend_id} (athlete {athlete_id})")
        return connection

    async def disconnect(self, friend_id: int) -> bool:
        result = await self.db.execute(
            delete(StravaConnection).where(StravaConnection.friend_id == friend_id)
        )
        await self.db.commit()
        removed = result.rowcount > 0
        if removed:
            logger.info(f"Strava disconnected for friend {friend_id}")
        return removed

    async def update_last_sync(self, friend_id: int, synced_at: Optional[datetime] = None) -> None:
        await self.db.execute(
            update(StravaConnection)
            .where(StravaConnection.friend_id == friend_id)
            .values(last_sync_at=synced_at or datetime.now(timezone.utc))
        )
        await self.db.commit()

    def build_authorize_url(self, friend_id: int) -> str:
        """Strava consent URL whose ``state`` is signed for ``friend_id``."""
        query = urlencode(
            {
                "client_id": self.settings.strava_client_id,
                "redirect_uri": self.settings.strava_redirect_uri,
                "response_type": "code",
                "approval_prompt": "auto",
                "scope": self.settings.strava_scope,
                "state": sign_oauth_state(friend_id),
            }
        )
        return f"{self.settings.strava_oauth_url}/authorize?{query}"
