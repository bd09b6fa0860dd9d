"""Thin async client for the Strava OAuth and activity APIs."""

import logging
import time
from typing import Any, Optional

import httpx

from fitsquad.core.config import Settings, get_settings
from fitsquad.core.exceptions import ExternalServiceError, StravaAuthError
from fitsquad.observability import MetricsBackend, get_metrics_backend

logger = logging.getLogger(__name__)


class StravaClient:
    """Strava HTTP client.

    Each call is timed and reported to the metrics backend under the
    ``strava`` provider. Non-2xx responses raise ``ExternalServiceError``
    (``StravaAuthError`` for 401/403); transport errors are wrapped the same
    way with no status code.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[MetricsBackend] = None,
    ):
        self.settings = settings or get_settings()
        self.metrics = metrics or get_metrics_backend()
        self._http_client = http_client

    async def exchange_token(self, code: str) -> dict[str, Any]:
        """Trade an authorization code for a token pair and athlete info."""
        return await self._oauth_token(
            "oauth_exchange",
            {"code": code, "grant_type": "authorization_code"},
        )

    async def refresh_token(self, refresh_token: str) -> dict[str, Any]:
        """Trade a refresh token for a rotated token pair."""
        return await self._oauth_token(
            "oauth_refresh",
            {"refresh_token": refresh_token, "grant_type": "refresh_token"},
        )

    async def list_activities(self, access_token: str, per_page: int) -> list[dict[str, Any]]:
        """List the athlete's most recent activities, newest first."""
        return await self._request(
            "list_activities",
            "GET",
            f"{self.settings.strava_api_base_url}/athlete/activities",
            headers=_bearer(access_token),
            params={"per_page": per_page},
        )

    async def get_activity(self, access_token: str, activity_id: str | int) -> dict[str, Any]:
        """Fetch one activity's detail."""
        return await self._request(
            "get_activity",
            "GET",
            f"{self.settings.strava_api_base_url}/activities/{activity_id}",
            headers=_bearer(access_token),
        )

    async def get_athlete(self, access_token: str) -> dict[str, Any]:
        """Fetch the authenticated athlete's profile."""
        return await self._request(
            "get_athlete",
            "GET",
            f"{self.settings.strava_api_base_url}/athlete",
            headers=_bearer(access_token),
        )

    async def get_athlete_stats(self, access_token: str, athlete_id: int) -> dict[str, Any]:
        """Fetch recent, year-to-date and all-time totals for an athlete."""
        return await self._request(
            "get_athlete_stats",
            "GET",
            f"{self.settings.strava_api_base_url}/athletes/{athlete_id}/stats",
            headers=_bearer(access_token),
        )

    async def _oauth_token(self, operation: str, grant: dict[str, str]) -> dict[str, Any]:
        if not self.settings.strava_client_id or not self.settings.strava_client_secret:
            raise ExternalServiceError(operation, detail="Strava OAuth not configured")

        return await self._request(
            operation,
            "POST",
            f"{self.settings.strava_oauth_url}/token",
            data={
                "client_id": self.settings.strava_client_id,
                "client_secret": self.settings.strava_client_secret,
                **grant,
            },
        )

    async def _request(self, operation: str, method: str, url: str, **kwargs) -> Any:
        start_time = time.perf_counter()
        status_code = 0
        try:
            if self._http_client is not None:
                response = await self._http_client.request(method, url, **kwargs)
            else:
                async with httpx.AsyncClient(
                    timeout=self.settings.strava_http_timeout_seconds
                ) as client:
                    response = await client.request(method, url, **kwargs)
            status_code = response.status_code
        except httpx.HTTPError as e:
            raise ExternalServiceError(operation, detail=str(e)) from e
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.metrics.observe_external_api("strava", operation, status_code, duration_ms)
            logger.info(
                "Strava API %s status=%s duration_ms=%.2f",
                operation,
                status_code,
                duration_ms,
            )

        if status_code in (401, 403):
            raise StravaAuthError(operation, status_code, response.text[:200])
        if status_code >= 400:
            raise ExternalServiceError(operation, status_code, response.text[:200])
        return response.json()


def _bearer(access_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {access_token}"}
