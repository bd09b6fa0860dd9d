"""ARQ worker for Strava activity sync.

An external scheduler (or the cron entry below) triggers syncs; nothing is
polled from inside the API process.

Usage:
    arq fitsquad.workers.strava_worker.WorkerSettings

    REDIS_URL=redis://localhost:6379/0 arq fitsquad.workers.strava_worker.WorkerSettings
"""

import logging
from typing import Any
from urllib.parse import urlparse

from arq.connections import RedisSettings
from arq.cron import cron
from sqlalchemy import select

from fitsquad.core.config import get_settings
from fitsquad.core.database import async_session_maker
from fitsquad.models.strava import StravaConnection
from fitsquad.services.strava_sync import StravaSyncService

settings = get_settings()
logger = logging.getLogger(__name__)

QUEUE_NAME = "strava_sync"


def get_redis_settings() -> RedisSettings:
    """Parse Redis URL into RedisSettings."""
    parsed = urlparse(settings.redis_url)
    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        database=int(parsed.path.lstrip("/") or 0),
        password=parsed.password,
    )


async def sync_friend_activities(ctx: dict, friend_id: int) -> dict[str, Any]:
    """Sync one friend's recent Strava activities.

    Args:
        ctx: ARQ context.
        friend_id: Friend to sync.

    Returns:
        The sync result as a dictionary.
    """
    session_factory = ctx.get("session_factory", async_session_maker)
    async with session_factory() as db:
        result = await StravaSyncService(db).sync_recent(friend_id)
    return result.to_dict()


async def sync_all_connections(ctx: dict) -> dict[str, Any]:
    """Sync every connected friend, one after another.

    A failure for one friend is logged and does not stop the others.
    """
    session_factory = ctx.get("session_factory", async_session_maker)
    async with session_factory() as db:
        rows = await db.execute(select(StravaConnection.friend_id).order_by(StravaConnection.friend_id))
        friend_ids = list(rows.scalars().all())

    counts: dict[str, int] = {}
    created = 0
    for friend_id in friend_ids:
        try:
            result = await sync_friend_activities(ctx, friend_id)
        except Exception:
            logger.exception(f"Strava sync crashed for friend {friend_id}")
            counts["error"] = counts.get("error", 0) + 1
            continue
        counts[result["status"]] = counts.get(result["status"], 0) + 1
        created += result["items_created"]

    logger.info(
        f"Strava sync sweep complete: friends={len(friend_ids)}, created={created}, statuses={counts}"
    )
    return {"friends": len(friend_ids), "items_created": created, "statuses": counts}


async def startup(ctx: dict) -> None:
    """Worker startup hook."""
    logger.info("Strava worker starting up")


async def shutdown(ctx: dict) -> None:
    """Worker shutdown hook."""
    logger.info("Strava worker shutting down")


class WorkerSettings:
    """ARQ worker configuration."""

    redis_settings = get_redis_settings()

    functions = [
        sync_friend_activities,
        sync_all_connections,
    ]

    # Hourly safety net for missed webhooks
    cron_jobs = [
        cron(sync_all_connections, minute=15, unique=True),
    ]

    on_startup = startup
    on_shutdown = shutdown

    max_jobs = 4
    job_timeout = 300
    keep_result = 3600
    queue_name = QUEUE_NAME

