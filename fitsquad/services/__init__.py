"""Service layer for FitSquad.

Pure scoring rules live in ``scoring``, ``badges``, ``leaderboard`` and
``tiers``; the classes exported here wrap them with persistence.
"""

from fitsquad.services.badges import BadgeService
from fitsquad.services.event_linker import EventAutoLinker
from fitsquad.services.events import EventService
from fitsquad.services.leaderboard import LeaderboardService
from fitsquad.services.strava_sync import StravaSyncService, SyncResult
from fitsquad.services.strava_tokens import StravaTokenManager
from fitsquad.services.workouts import WorkoutService

__all__ = [
    "BadgeService",
    "EventAutoLinker",
    "EventService",
    "LeaderboardService",
    "StravaSyncService",
    "StravaTokenManager",
    "SyncResult",
    "WorkoutService",
]
