"""API v1 router aggregating all endpoint routers.

Auth:
  /api/v1/auth/login, /me

Workouts:
  /api/v1/workouts (log, list, feed, delete)

Gamification:
  /api/v1/leaderboard/weekly, /challenges, /summary
  /api/v1/badges, /badges/check

Strava:
  /api/v1/strava/connect, /callback, /status, /profile, /disconnect, /sync, /webhook

Group events:
  /api/v1/fitness-events (CRUD, rsvp, check-in, link)
"""

from fastapi import APIRouter

from fitsquad.api.v1.endpoints import (
    auth,
    badges,
    events,
    leaderboard,
    strava,
    workouts,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(workouts.router, prefix="/workouts", tags=["workouts"])

# -------------------------------------------------------------------------
# Gamification
# -------------------------------------------------------------------------
api_router.include_router(leaderboard.router, prefix="/leaderboard", tags=["leaderboard"])
api_router.include_router(badges.router, prefix="/badges", tags=["badges"])

# -------------------------------------------------------------------------
# Strava (OAuth, sync, webhook)
# -------------------------------------------------------------------------
api_router.include_router(strava.router, prefix="/strava", tags=["strava"])

# -------------------------------------------------------------------------
# Group fitness events
# -------------------------------------------------------------------------
api_router.include_router(events.router, prefix="/fitness-events", tags=["fitness-events"])
