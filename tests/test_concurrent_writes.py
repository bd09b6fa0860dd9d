"""Tests for at-most-once writes under concurrent sessions.

Each test races two independent sessions on a file-backed database, the way
the API, the Strava webhook and the sync worker can overlap in production.
"""

import asyncio
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fitsquad.models import FitnessBadge, FitnessEventParticipant, WorkoutRecord
from fitsquad.services.badges import BadgeService
from fitsquad.services.event_linker import EventAutoLinker
from fitsquad.services.strava_sync import strava_activity_to_input
from fitsquad.services.workouts import WorkoutService
from tests.factories import add_participant, create_event, create_friend, strava_activity

TODAY = date(2026, 10, 14)


async def _add_run(db: AsyncSession, friend_id: int, points: int = 50) -> WorkoutRecord:
    workout = WorkoutRecord(
        friend_id=friend_id,
        category="run",
        activity_date=TODAY,
        duration_minutes=30,
        distance_km=5.2,
        points=points,
    )
    db.add(workout)
    await db.commit()
    await db.refresh(workout)
    return workout


class TestConcurrentEventLinks:
    async def test_one_participation_links_once(self, session_factory: async_sessionmaker):
        """Test that two workouts racing for one check-in produce a single bonus."""
        async with session_factory() as setup:
            friend = await create_friend(setup, "Alex")
            event = await create_event(setup, "trip-1-run", TODAY, event_category="run")
            await add_participant(setup, event, friend)
            first = await _add_run(setup, friend.id)
            second = await _add_run(setup, friend.id)

        async with session_factory() as db_a, session_factory() as db_b:
            results = await asyncio.gather(
                EventAutoLinker(db_a).try_link_workout(friend.id, first.id, "run", TODAY),
                EventAutoLinker(db_b).try_link_workout(friend.id, second.id, "run", TODAY),
            )

        assert sorted(results) == [False, True]

        async with session_factory() as check:
            total = await check.execute(
                select(func.sum(WorkoutRecord.points)).where(WorkoutRecord.friend_id == friend.id)
            )
            assert total.scalar_one() == 50 + 50 + 50

            participant = (await check.execute(select(FitnessEventParticipant))).scalar_one()
            winner = first.id if results[0] else second.id
            assert participant.fitness_activity_id == winner
            assert participant.bonus_points_awarded == 50


class TestConcurrentStravaIngest:
    async def test_same_activity_is_recorded_once(self, session_factory: async_sessionmaker):
        """Test that the webhook and a manual sync ingesting one activity store one workout."""
        async with session_factory() as setup:
            friend = await create_friend(setup, "Alex")

        data = strava_activity_to_input(strava_activity(3001))
        async with session_factory() as db_a, session_factory() as db_b:
            results = await asyncio.gather(
                WorkoutService(db_a).record_workout(friend.id, data, as_of=TODAY),
                WorkoutService(db_b).record_workout(friend.id, data, as_of=TODAY),
            )

        recorded = [r for r in results if r is not None]
        assert len(recorded) == 1
        assert recorded[0].workout.external_id == "3001"

        async with session_factory() as check:
            count = await check.execute(
                select(func.count(WorkoutRecord.id)).where(WorkoutRecord.friend_id == friend.id)
            )
            assert count.scalar_one() == 1


class TestConcurrentBadgeUnlocks:
    async def test_badges_unlock_once(self, session_factory: async_sessionmaker):
        async with session_factory() as setup:
            friend = await create_friend(setup, "Alex")
            await _add_run(setup, friend.id)

        async with session_factory() as db_a, session_factory() as db_b:
            results = await asyncio.gather(
                BadgeService(db_a).evaluate_and_unlock(friend.id, TODAY),
                BadgeService(db_b).evaluate_and_unlock(friend.id, TODAY),
            )

        unlocked = [badge.id for result in results for badge in result]
        assert "first_steps" in unlocked
        assert len(unlocked) == len(set(unlocked))

        async with session_factory() as check:
            rows = await check.execute(
                select(FitnessBadge.badge_type).where(FitnessBadge.friend_id == friend.id)
            )
            assert sorted(rows.scalars().all()) == sorted(unlocked)
