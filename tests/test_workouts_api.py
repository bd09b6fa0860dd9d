"""Tests for workout logging endpoints."""

from datetime import date, timedelta

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from fitsquad.models import Friend
from tests.factories import FRIEND_PIN, add_participant, create_event


def _run(**overrides) -> dict:
    payload = {
        "category": "run",
        "activity_date": date.today().isoformat(),
        "duration_minutes": 35,
        "distance_km": 5.5,
    }
    payload.update(overrides)
    return payload


class TestAuthentication:
    async def test_missing_pin_returns_401(self, client: AsyncClient):
        response = await client.get("/api/v1/workouts")
        assert response.status_code == 401

    async def test_wrong_pin_returns_401(self, client: AsyncClient, test_friend: Friend):
        response = await client.get(
            "/api/v1/workouts",
            headers={"X-Friend-Id": str(test_friend.id), "X-Auth-Pin": "0000"},
        )
        assert response.status_code == 401

    async def test_login(self, client: AsyncClient, test_friend: Friend):
        response = await client.post(
            "/api/v1/auth/login",
            json={"friend_id": test_friend.id, "pin": FRIEND_PIN},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["role"] == "friend"
        assert data["friend_name"] == "Alex"

    async def test_admin_pin_login(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/auth/login",
            json={"pin": admin_headers["X-Auth-Pin"]},
        )

        assert response.status_code == 200
        assert response.json()["role"] == "superadmin"
        assert response.json()["friend_id"] is None

    async def test_me(self, client: AsyncClient, auth_headers: dict, test_friend: Friend):
        response = await client.get("/api/v1/auth/me", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["friend_id"] == test_friend.id


class TestCreateWorkout:
    """Tests for manual workout logging."""

    async def test_create_workout(
        self,
        client: AsyncClient,
        auth_headers: dict,
        test_friend: Friend,
    ):
        """Test that points and calories are computed server-side."""
        response = await client.post("/api/v1/workouts", json=_run(), headers=auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["workout"]["friend_id"] == test_friend.id
        assert data["workout"]["points"] == 55
        assert data["workout"]["calories"] == 550
        assert data["workout"]["source"] == "manual"
        assert {b["id"] for b in data["new_badges"]} == {"first_steps", "5k_runner"}
        assert data["linked_event_id"] is None

    async def test_reported_calories_are_kept(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(
            "/api/v1/workouts", json=_run(calories=321), headers=auth_headers
        )

        assert response.status_code == 201
        assert response.json()["workout"]["calories"] == 321

    async def test_invalid_duration_rejected(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(
            "/api/v1/workouts", json=_run(duration_minutes=0), headers=auth_headers
        )
        assert response.status_code == 422

    async def test_unknown_category_rejected(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(
            "/api/v1/workouts", json=_run(category="curling"), headers=auth_headers
        )
        assert response.status_code == 422

    async def test_friend_cannot_log_for_someone_else(
        self,
        client: AsyncClient,
        auth_headers: dict,
        other_friend: Friend,
    ):
        response = await client.post(
            "/api/v1/workouts",
            json=_run(friend_id=other_friend.id),
            headers=auth_headers,
        )
        assert response.status_code == 403

    async def test_admin_logs_for_named_friend(
        self,
        client: AsyncClient,
        admin_headers: dict,
        other_friend: Friend,
    ):
        response = await client.post(
            "/api/v1/workouts",
            json=_run(friend_id=other_friend.id),
            headers=admin_headers,
        )

        assert response.status_code == 201
        assert response.json()["workout"]["friend_id"] == other_friend.id

    async def test_admin_must_name_a_friend(self, client: AsyncClient, admin_headers: dict):
        response = await client.post("/api/v1/workouts", json=_run(), headers=admin_headers)
        assert response.status_code == 400

    async def test_checked_in_event_adds_bonus(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        auth_headers: dict,
        test_friend: Friend,
    ):
        """Test that a workout on a checked-in event day earns the event bonus."""
        event = await create_event(db_session, "trip-park-run", date.today(), event_category="run")
        await add_participant(db_session, event, test_friend)

        response = await client.post("/api/v1/workouts", json=_run(), headers=auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["linked_event_id"] == event.id
        assert data["event_bonus_points"] == 50
        assert data["workout"]["points"] == 105


class TestListAndDeleteWorkouts:
    async def test_list_workouts_paginates(self, client: AsyncClient, auth_headers: dict):
        for offset in range(3):
            day = (date.today() - timedelta(days=offset)).isoformat()
            await client.post(
                "/api/v1/workouts", json=_run(activity_date=day), headers=auth_headers
            )

        response = await client.get(
            "/api/v1/workouts", params={"per_page": 2}, headers=auth_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert len(data["items"]) == 2
        assert data["items"][0]["activity_date"] == date.today().isoformat()

    async def test_feed_includes_friend_names(self, client: AsyncClient, auth_headers: dict):
        await client.post("/api/v1/workouts", json=_run(), headers=auth_headers)

        response = await client.get("/api/v1/workouts/feed", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()[0]["friend_name"] == "Alex"

    async def test_delete_own_workout(self, client: AsyncClient, auth_headers: dict):
        created = await client.post("/api/v1/workouts", json=_run(), headers=auth_headers)
        workout_id = created.json()["workout"]["id"]

        response = await client.delete(f"/api/v1/workouts/{workout_id}", headers=auth_headers)

        assert response.status_code == 204
        listing = await client.get("/api/v1/workouts", headers=auth_headers)
        assert listing.json()["total"] == 0

    async def test_cannot_delete_other_friends_workout(
        self,
        client: AsyncClient,
        auth_headers: dict,
        admin_headers: dict,
        other_friend: Friend,
    ):
        created = await client.post(
            "/api/v1/workouts",
            json=_run(friend_id=other_friend.id),
            headers=admin_headers,
        )
        workout_id = created.json()["workout"]["id"]

        response = await client.delete(f"/api/v1/workouts/{workout_id}", headers=auth_headers)

        assert response.status_code == 404
