"""Tests for the badge catalog and unlock evaluation."""

from datetime import date, datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fitsquad.models import FitnessBadge, Friend, WorkoutRecord
from fitsquad.models.workout import ActivityCategory
from fitsquad.observability import MetricsCollector
from fitsquad.services.badges import (
    BADGE_DEFINITIONS,
    BadgeService,
    check_badge_unlocks,
    get_badge_info,
    get_badges_by_category,
)
from fitsquad.services.scoring import WorkoutSnapshot

TODAY = date(2026, 10, 14)  # Wednesday


def _workout(
    category: ActivityCategory = ActivityCategory.RUN,
    day: date = TODAY,
    distance_km: float | None = None,
    started_at: datetime | None = None,
) -> WorkoutSnapshot:
    return WorkoutSnapshot(
        category=category,
        activity_date=day,
        duration_minutes=30,
        distance_km=distance_km,
        started_at=started_at,
    )


def _ids(badges) -> set[str]:
    return {b.id for b in badges}


class TestBadgeCatalog:
    def test_catalog_ids_are_unique(self):
        ids = [b.id for b in BADGE_DEFINITIONS]
        assert len(ids) == len(set(ids)) == 16

    def test_lookup_helpers(self):
        assert get_badge_info("5k_runner").name == "5K Runner"
        assert get_badge_info("nope") is None
        assert _ids(get_badges_by_category("streak")) == {
            "hot_streak",
            "lightning_streak",
            "unstoppable",
        }


class TestCheckBadgeUnlocks:
    """Tests for pure badge rule evaluation."""

    def test_first_workout_unlocks_first_steps(self):
        unlocked = check_badge_unlocks([_workout(distance_km=3)], [], TODAY)
        assert _ids(unlocked) == {"first_steps"}

    def test_long_run_unlocks_several_badges_at_once(self):
        unlocked = check_badge_unlocks([_workout(distance_km=10.2)], [], TODAY)
        assert _ids(unlocked) == {"first_steps", "5k_runner", "10k_runner"}

    def test_already_unlocked_badges_are_not_returned(self):
        unlocked = check_badge_unlocks(
            [_workout(distance_km=10.2)],
            ["first_steps", "5k_runner"],
            TODAY,
        )
        assert _ids(unlocked) == {"10k_runner"}

    def test_distance_of_other_category_does_not_count(self):
        unlocked = check_badge_unlocks(
            [_workout(ActivityCategory.BIKE, distance_km=30)], [], TODAY
        )
        assert "5k_runner" not in _ids(unlocked)

    def test_weekly_run_distance_uses_rolling_window(self):
        recent = [_workout(day=TODAY - timedelta(days=n), distance_km=11) for n in range(4)]
        assert "marathon_runner" in _ids(check_badge_unlocks(recent, [], TODAY))

        stale = [_workout(day=TODAY - timedelta(days=n), distance_km=11) for n in (0, 1, 2, 8)]
        assert "marathon_runner" not in _ids(check_badge_unlocks(stale, [], TODAY))

    def test_cumulative_swim_distance(self):
        swims = [
            _workout(ActivityCategory.SWIM, TODAY - timedelta(days=30 * n), distance_km=2.5)
            for n in range(4)
        ]
        assert "ocean_swimmer" in _ids(check_badge_unlocks(swims, [], TODAY))

    def test_gym_session_counts(self):
        sessions = [_workout(ActivityCategory.GYM, TODAY - timedelta(days=n)) for n in range(20)]
        unlocked = _ids(check_badge_unlocks(sessions, [], TODAY))
        assert {"iron_lifter", "beast_mode"} <= unlocked
        assert "diamond_grinder" not in unlocked

    def test_streak_badges(self):
        history = [_workout(day=TODAY - timedelta(days=n)) for n in range(7)]
        unlocked = _ids(check_badge_unlocks(history, [], TODAY))
        assert {"hot_streak", "lightning_streak"} <= unlocked
        assert "unstoppable" not in unlocked

    def test_late_start_unlocks_night_owl(self):
        late = _workout(started_at=datetime(2026, 10, 14, 22, 30))
        unlocked = _ids(check_badge_unlocks([late], ["first_steps"], TODAY))
        assert unlocked == {"night_owl"}

    def test_small_hours_count_as_night_and_early(self):
        small_hours = _workout(started_at=datetime(2026, 10, 14, 4, 45))
        unlocked = _ids(check_badge_unlocks([small_hours], ["first_steps"], TODAY))
        assert unlocked == {"night_owl", "early_bird"}

    def test_unknown_start_time_never_unlocks_time_badges(self):
        unlocked = _ids(check_badge_unlocks([_workout()], [], TODAY))
        assert "night_owl" not in unlocked
        assert "early_bird" not in unlocked

    def test_weekend_warrior(self):
        saturday = date(2026, 10, 10)
        weekends = []
        for week in range(5):
            weekends.append(_workout(day=saturday - timedelta(weeks=week)))
            weekends.append(_workout(day=saturday + timedelta(days=1) - timedelta(weeks=week)))
        assert "weekend_warrior" in _ids(check_badge_unlocks(weekends, [], TODAY))
        assert "weekend_warrior" not in _ids(check_badge_unlocks(weekends[:9], [], TODAY))


class TestBadgeService:
    """Tests for persisted unlocks."""

    async def _add_run(self, db: AsyncSession, friend: Friend, distance_km: float) -> None:
        db.add(
            WorkoutRecord(
                friend_id=friend.id,
                category="run",
                activity_date=TODAY,
                duration_minutes=30,
                distance_km=distance_km,
                points=round(distance_km * 10),
            )
        )
        await db.commit()

    async def test_evaluate_and_unlock_persists_new_badges(
        self,
        db_session: AsyncSession,
        test_friend: Friend,
        metrics: MetricsCollector,
    ):
        """Test that qualifying badges are stored with metadata."""
        await self._add_run(db_session, test_friend, 5.5)
        service = BadgeService(db_session)
        service.metrics = metrics

        unlocked = await service.evaluate_and_unlock(test_friend.id, as_of=TODAY)

        assert _ids(unlocked) == {"first_steps", "5k_runner"}
        stored = await service.list_badges(test_friend.id)
        assert {b.badge_type for b in stored} == {"first_steps", "5k_runner"}
        assert stored[0].badge_metadata["workout_count"] == 1
        assert 'badge_unlocks_total{badge_type="5k_runner"} 1' in metrics.render_prometheus()

    async def test_second_evaluation_unlocks_nothing(
        self,
        db_session: AsyncSession,
        test_friend: Friend,
    ):
        """Test that badges are unlocked at most once per friend."""
        await self._add_run(db_session, test_friend, 5.5)
        service = BadgeService(db_session)

        first = await service.evaluate_and_unlock(test_friend.id, as_of=TODAY)
        second = await service.evaluate_and_unlock(test_friend.id, as_of=TODAY)

        assert len(first) == 2
        assert second == []
        count = await db_session.execute(
            select(func.count(FitnessBadge.id)).where(FitnessBadge.friend_id == test_friend.id)
        )
        assert count.scalar_one() == 2

    async def test_badges_are_per_friend(
        self,
        db_session: AsyncSession,
        test_friend: Friend,
        other_friend: Friend,
    ):
        await self._add_run(db_session, test_friend, 2)
        await self._add_run(db_session, other_friend, 2)
        service = BadgeService(db_session)

        assert _ids(await service.evaluate_and_unlock(test_friend.id, as_of=TODAY)) == {"first_steps"}
        assert _ids(await service.evaluate_and_unlock(other_friend.id, as_of=TODAY)) == {"first_steps"}

    async def test_no_history_unlocks_nothing(
        self,
        db_session: AsyncSession,
        test_friend: Friend,
    ):
        assert await BadgeService(db_session).evaluate_and_unlock(test_friend.id, as_of=TODAY) == []
