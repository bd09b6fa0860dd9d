"""Tests for Strava activity synchronization."""

from datetime import date, datetime
from unittest.mock import AsyncMock

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fitsquad.core.exceptions import ExternalServiceError, StravaAuthError
from fitsquad.models import Friend, StravaConnection, WorkoutRecord
from fitsquad.models.workout import ActivityCategory, WorkoutSource
from fitsquad.services.strava_sync import (
    MESSAGE_CAUGHT_UP,
    StravaSyncService,
    SyncResult,
    map_strava_type,
    strava_activity_to_input,
)
from tests.factories import strava_activity

TODAY = date(2026, 10, 14)


async def _count_workouts(db: AsyncSession, friend_id: int) -> int:
    result = await db.execute(
        select(func.count(WorkoutRecord.id)).where(WorkoutRecord.friend_id == friend_id)
    )
    return result.scalar_one()


def _detail_by_id(access_token: str, activity_id: str) -> dict:
    return strava_activity(int(activity_id))


class TestActivityMapping:
    """Tests for converting Strava payloads to workouts."""

    def test_strava_activity_to_input(self):
        data = strava_activity(1001)

        workout = strava_activity_to_input(data)

        assert workout.category == ActivityCategory.RUN
        assert workout.activity_date == TODAY
        assert workout.started_at == datetime(2026, 10, 14, 7, 30)
        assert workout.duration_minutes == 30
        assert workout.distance_km == 5.23
        assert workout.calories == 403
        assert workout.heart_rate == 151
        assert workout.notes == "Morning Run"
        assert workout.source == WorkoutSource.STRAVA
        assert workout.external_id == "1001"

    def test_sport_type_preferred_over_legacy_type(self):
        workout = strava_activity_to_input(strava_activity(1, sport_type="TrailRun", type="Run"))
        assert workout.category == ActivityCategory.RUN

    def test_short_activity_lasts_at_least_a_minute(self):
        workout = strava_activity_to_input(strava_activity(1, moving_time=12, distance=None))
        assert workout.duration_minutes == 1
        assert workout.distance_km is None

    def test_half_minutes_round_up(self):
        workout = strava_activity_to_input(
            strava_activity(1, moving_time=150, calories=402.5, average_heartrate=140.5)
        )
        assert workout.duration_minutes == 3
        assert workout.calories == 403
        assert workout.heart_rate == 141

    def test_type_map(self):
        assert map_strava_type("Ride") == ActivityCategory.BIKE
        assert map_strava_type("WeightTraining") == ActivityCategory.GYM
        assert map_strava_type("Yoga") == ActivityCategory.YOGA
        assert map_strava_type("HighIntensityIntervalTraining") == ActivityCategory.HIIT
        assert map_strava_type("Kitesurf") == ActivityCategory.OTHER
        assert map_strava_type(None) == ActivityCategory.OTHER


class TestSyncResult:
    def test_messages(self):
        result = SyncResult(friend_id=1)
        assert result.message == MESSAGE_CAUGHT_UP

        result.items_created = 1
        assert result.message == "Synced 1 new activity from Strava"

        result.items_created = 3
        assert result.message == "Synced 3 new activities from Strava"
        assert result.to_dict()["success"] is True


class TestSyncRecent:
    """Tests for StravaSyncService.sync_recent."""

    async def test_sync_creates_workouts(
        self,
        db_session: AsyncSession,
        test_friend: Friend,
        strava_connection: StravaConnection,
        mock_strava_client: AsyncMock,
    ):
        """Test that new Strava activities become workouts."""
        mock_strava_client.list_activities.return_value = [strava_activity(1001), strava_activity(1002)]
        mock_strava_client.get_activity.side_effect = _detail_by_id
        service = StravaSyncService(db_session, client=mock_strava_client)

        result = await service.sync_recent(test_friend.id, as_of=TODAY)

        assert result.status == "ok"
        assert result.items_fetched == 2
        assert result.items_created == 2
        assert "first_steps" in result.new_badges
        assert await _count_workouts(db_session, test_friend.id) == 2

        await db_session.refresh(strava_connection)
        assert strava_connection.last_sync_at is not None

    async def test_resync_skips_existing_activities(
        self,
        db_session: AsyncSession,
        test_friend: Friend,
        strava_connection: StravaConnection,
        mock_strava_client: AsyncMock,
    ):
        """Test that the same Strava activity is never stored twice."""
        mock_strava_client.list_activities.return_value = [strava_activity(1001)]
        mock_strava_client.get_activity.side_effect = _detail_by_id
        service = StravaSyncService(db_session, client=mock_strava_client)

        await service.sync_recent(test_friend.id, as_of=TODAY)
        second = await service.sync_recent(test_friend.id, as_of=TODAY)

        assert second.items_created == 0
        assert second.items_skipped == 1
        assert second.message == MESSAGE_CAUGHT_UP
        assert mock_strava_client.get_activity.await_count == 1
        assert await _count_workouts(db_session, test_friend.id) == 1

    async def test_detail_failure_skips_only_that_activity(
        self,
        db_session: AsyncSession,
        test_friend: Friend,
        strava_connection: StravaConnection,
        mock_strava_client: AsyncMock,
    ):
        def detail(access_token: str, activity_id: str) -> dict:
            if activity_id == "1002":
                raise ExternalServiceError("get_activity", 500, "boom")
            return strava_activity(int(activity_id))

        mock_strava_client.list_activities.return_value = [
            strava_activity(1001),
            strava_activity(1002),
            strava_activity(1003),
        ]
        mock_strava_client.get_activity.side_effect = detail
        service = StravaSyncService(db_session, client=mock_strava_client)

        result = await service.sync_recent(test_friend.id, as_of=TODAY)

        assert result.status == "ok"
        assert result.items_created == 2
        assert result.items_failed == 1

    async def test_not_connected(
        self,
        db_session: AsyncSession,
        test_friend: Friend,
        mock_strava_client: AsyncMock,
    ):
        result = await StravaSyncService(db_session, client=mock_strava_client).sync_recent(
            test_friend.id
        )

        assert result.status == "not_connected"
        assert result.success is False
        mock_strava_client.list_activities.assert_not_awaited()

    async def test_rejected_token_reports_token_invalid(
        self,
        db_session: AsyncSession,
        test_friend: Friend,
        strava_connection: StravaConnection,
        mock_strava_client: AsyncMock,
    ):
        mock_strava_client.list_activities.side_effect = StravaAuthError(
            "list_activities", 401, "Authorization Error"
        )

        result = await StravaSyncService(db_session, client=mock_strava_client).sync_recent(
            test_friend.id
        )

        assert result.status == "token_invalid"
        assert result.items_created == 0

    async def test_failed_refresh_reports_token_invalid(
        self,
        db_session: AsyncSession,
        test_friend: Friend,
        strava_connection: StravaConnection,
        mock_strava_client: AsyncMock,
    ):
        strava_connection.expires_at = 0
        await db_session.commit()
        mock_strava_client.refresh_token.side_effect = ExternalServiceError("oauth_refresh", 400)

        result = await StravaSyncService(db_session, client=mock_strava_client).sync_recent(
            test_friend.id
        )

        assert result.status == "token_invalid"
        mock_strava_client.list_activities.assert_not_awaited()

    async def test_strava_outage_reports_unavailable(
        self,
        db_session: AsyncSession,
        test_friend: Friend,
        strava_connection: StravaConnection,
        mock_strava_client: AsyncMock,
    ):
        mock_strava_client.list_activities.side_effect = ExternalServiceError(
            "list_activities", 503, "Service Unavailable"
        )

        result = await StravaSyncService(db_session, client=mock_strava_client).sync_recent(
            test_friend.id
        )

        assert result.status == "unavailable"


class TestSyncActivity:
    """Tests for webhook-driven single activity ingestion."""

    async def test_sync_activity_records_once(
        self,
        db_session: AsyncSession,
        test_friend: Friend,
        strava_connection: StravaConnection,
        mock_strava_client: AsyncMock,
    ):
        mock_strava_client.get_activity.side_effect = _detail_by_id
        service = StravaSyncService(db_session, client=mock_strava_client)

        recorded = await service.sync_activity(strava_connection.athlete_id, 2001, as_of=TODAY)
        again = await service.sync_activity(strava_connection.athlete_id, 2001, as_of=TODAY)

        assert recorded is not None
        assert recorded.workout.external_id == "2001"
        assert recorded.workout.points == 52
        assert again is None
        assert await _count_workouts(db_session, test_friend.id) == 1

    async def test_unknown_athlete_is_ignored(
        self,
        db_session: AsyncSession,
        mock_strava_client: AsyncMock,
    ):
        service = StravaSyncService(db_session, client=mock_strava_client)

        assert await service.sync_activity(999, 2001) is None
        mock_strava_client.get_activity.assert_not_awaited()
