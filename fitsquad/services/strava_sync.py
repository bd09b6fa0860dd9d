"""Strava activity synchronization.

Pulls a friend's recent Strava activities and drives the new ones through
the workout pipeline. Runs are idempotent: activities already stored under
their Strava id are skipped, so a sync can be re-run after a timeout or
triggered concurrently from the API, the webhook and the worker.
"""

import logging
import time
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fitsquad.core.config import Settings, get_settings
from fitsquad.core.exceptions import ExternalServiceError, StravaAuthError
from fitsquad.models.workout import ActivityCategory, WorkoutSource
from fitsquad.observability import get_metrics_backend
from fitsquad.services.scoring import round_half_up
from fitsquad.services.strava_client import StravaClient
from fitsquad.services.strava_tokens import StravaTokenManager
from fitsquad.services.workouts import RecordedWorkout, WorkoutInput, WorkoutService

logger = logging.getLogger(__name__)

STRAVA_TYPE_MAP: dict[str, ActivityCategory] = {
    "Run": ActivityCategory.RUN,
    "VirtualRun": ActivityCategory.RUN,
    "TrailRun": ActivityCategory.RUN,
    "Ride": ActivityCategory.BIKE,
    "VirtualRide": ActivityCategory.BIKE,
    "EBikeRide": ActivityCategory.BIKE,
    "MountainBikeRide": ActivityCategory.BIKE,
    "GravelRide": ActivityCategory.BIKE,
    "Swim": ActivityCategory.SWIM,
    "Walk": ActivityCategory.WALK,
    "Hike": ActivityCategory.HIKE,
    "WeightTraining": ActivityCategory.GYM,
    "Workout": ActivityCategory.GYM,
    "Yoga": ActivityCategory.YOGA,
    "Pilates": ActivityCategory.YOGA,
    "HighIntensityIntervalTraining": ActivityCategory.HIIT,
    "Crossfit": ActivityCategory.HIIT,
}

STATUS_OK = "ok"
STATUS_NOT_CONNECTED = "not_connected"
STATUS_TOKEN_INVALID = "token_invalid"
STATUS_UNAVAILABLE = "unavailable"

MESSAGE_CAUGHT_UP = "No new activities to sync. All caught up!"
MESSAGE_NOT_CONNECTED = "Strava is not connected"
MESSAGE_TOKEN_INVALID = "Strava authorization expired, please reconnect"
MESSAGE_UNAVAILABLE = "Strava is unavailable right now"


class SyncResult:
    """Result of a sync operation."""

    def __init__(self, friend_id: int):
        self.friend_id = friend_id
        self.status = STATUS_OK
        self.items_fetched = 0
        self.items_created = 0
        self.items_skipped = 0
        self.items_failed = 0
        self.new_badges: list[str] = []
        self.error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == STATUS_OK

    @property
    def message(self) -> str:
        if self.status == STATUS_NOT_CONNECTED:
            return MESSAGE_NOT_CONNECTED
        if self.status == STATUS_TOKEN_INVALID:
            return MESSAGE_TOKEN_INVALID
        if self.status == STATUS_UNAVAILABLE:
            return MESSAGE_UNAVAILABLE
        if self.items_created == 0:
            return MESSAGE_CAUGHT_UP
        noun = "activity" if self.items_created == 1 else "activities"
        return f"Synced {self.items_created} new {noun} from Strava"

    def to_dict(self) -> dict[str, Any]:
        return {
            "friend_id": self.friend_id,
            "status": self.status,
            "success": self.success,
            "message": self.message,
            "items_fetched": self.items_fetched,
            "items_created": self.items_created,
            "items_skipped": self.items_skipped,
            "items_failed": self.items_failed,
            "new_badges": self.new_badges,
            "error": self.error,
        }


def map_strava_type(strava_type: Optional[str]) -> ActivityCategory:
    return STRAVA_TYPE_MAP.get(strava_type or "", ActivityCategory.OTHER)


def strava_activity_to_input(activity: dict[str, Any]) -> WorkoutInput:
    """Convert a Strava activity payload into a workout submission."""
    moving_seconds = activity.get("moving_time") or activity.get("elapsed_time") or 0
    distance_m = activity.get("distance")
    calories = activity.get("calories")
    heart_rate = activity.get("average_heartrate")

    started_at = _parse_strava_time(activity.get("start_date_local") or activity.get("start_date"))
    activity_date = started_at.date() if started_at else date.today()

    return WorkoutInput(
        category=map_strava_type(activity.get("sport_type") or activity.get("type")),
        activity_date=activity_date,
        # Local wall-clock time, tz dropped
        started_at=started_at.replace(tzinfo=None) if started_at else None,
        duration_minutes=max(1, round_half_up(moving_seconds / 60)),
        distance_km=round(distance_m / 1000, 2) if distance_m else None,
        calories=round_half_up(calories) if calories else None,
        heart_rate=round_half_up(heart_rate) if heart_rate else None,
        notes=activity.get("name"),
        source=WorkoutSource.STRAVA,
        external_id=str(activity["id"]),
    )


def _parse_strava_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class StravaSyncService:
    """Reconciles Strava activities into workout records."""

    def __init__(
        self,
        db: AsyncSession,
        client: Optional[StravaClient] = None,
        settings: Optional[Settings] = None,
        workouts: Optional[WorkoutService] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.client = client or StravaClient(self.settings)
        self.tokens = StravaTokenManager(db, client=self.client, settings=self.settings)
        self.workouts = workouts or WorkoutService(db)
        self.metrics = get_metrics_backend()

    async def sync_recent(self, friend_id: int, as_of: Optional[date] = None) -> SyncResult:
        """Ingest a friend's recent Strava activities.

        Failures fetching a single activity's detail are logged and that
        activity is skipped; the rest of the page is still ingested.

        Args:
            friend_id: Friend to sync.
            as_of: Date used for badge evaluation (defaults to today).

        Returns:
            SyncResult describing what happened.
        """
        result = SyncResult(friend_id)
        start_time = time.perf_counter()

        try:
            await self._sync_recent(result, as_of)
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.metrics.observe_sync_job(
                "strava_recent",
                result.status,
                duration_ms,
                items_fetched=result.items_fetched,
                items_created=result.items_created,
                items_skipped=result.items_skipped,
            )
            logger.info(
                "Strava sync finished for friend %s status=%s fetched=%s created=%s skipped=%s failed=%s duration_ms=%.2f",
                friend_id,
                result.status,
                result.items_fetched,
                result.items_created,
                result.items_skipped,
                result.items_failed,
                duration_ms,
            )
        return result

    async def _sync_recent(self, result: SyncResult, as_of: Optional[date]) -> None:
        friend_id = result.friend_id
        connection = await self.tokens.get_connection(friend_id)
        if connection is None:
            result.status = STATUS_NOT_CONNECTED
            return

        access_token = await self.tokens.get_valid_token(friend_id)
        if access_token is None:
            result.status = STATUS_TOKEN_INVALID
            result.error = "token refresh failed"
            return

        try:
            summaries = await self.client.list_activities(
                access_token, self.settings.strava_sync_page_size
            )
        except StravaAuthError as e:
            result.status = STATUS_TOKEN_INVALID
            result.error = str(e)
            return
        except ExternalServiceError as e:
            logger.warning(f"Strava activity list failed for friend {friend_id}: {e}")
            result.status = STATUS_UNAVAILABLE
            result.error = str(e)
            return

        result.items_fetched = len(summaries)

        for summary in summaries:
            external_id = str(summary["id"])
            if await self.workouts.has_external_id(friend_id, external_id):
                result.items_skipped += 1
                continue

            try:
                detail = await self.client.get_activity(access_token, external_id)
            except ExternalServiceError as e:
                logger.warning(f"Skipping Strava activity {external_id} for friend {friend_id}: {e}")
                result.items_failed += 1
                continue

            recorded = await self._ingest(friend_id, detail, as_of)
            if recorded is None:
                # Inserted by a concurrent run
                result.items_skipped += 1
                continue
            result.items_created += 1
            result.new_badges.extend(b.id for b in recorded.new_badges)

        if result.items_created > 0:
            await self.tokens.update_last_sync(friend_id)

    async def sync_activity(
        self,
        athlete_id: int,
        activity_id: int | str,
        as_of: Optional[date] = None,
    ) -> Optional[RecordedWorkout]:
        """Ingest a single activity announced by a Strava webhook event.

        Returns:
            The recorded workout, or None if the athlete is unknown, the
            activity was already stored, or Strava could not be reached.
        """
        connection = await self.tokens.get_connection_by_athlete(athlete_id)
        if connection is None:
            logger.info(f"Ignoring Strava activity {activity_id}: athlete {athlete_id} not connected")
            return None

        friend_id = connection.friend_id
        external_id = str(activity_id)
        if await self.workouts.has_external_id(friend_id, external_id):
            return None

        access_token = await self.tokens.get_valid_token(friend_id)
        if access_token is None:
            return None

        try:
            detail = await self.client.get_activity(access_token, external_id)
        except ExternalServiceError as e:
            logger.warning(f"Webhook fetch of Strava activity {external_id} failed: {e}")
            return None

        recorded = await self._ingest(friend_id, detail, as_of)
        if recorded is not None:
            await self.tokens.update_last_sync(friend_id)
        return recorded

    async def _ingest(
        self,
        friend_id: int,
        activity: dict[str, Any],
        as_of: Optional[date],
    ) -> Optional[RecordedWorkout]:
        data = strava_activity_to_input(activity)
        return await self.workouts.record_workout(friend_id, data, as_of=as_of)
