"""SAQ queue configuration for background tasks."""

from saq import CronJob, Queue

from linkauth.config import settings

# Main task queue
queue = Queue.from_url(settings.redis_url)


def get_queue_settings() -> dict:
    """Get SAQ queue settings for the worker."""
    # Import here to avoid circular imports
    from linkauth.tasks.maintenance import sweep_expired_tokens

    return {
        "queue": queue,
        "functions": [sweep_expired_tokens],
        "cron_jobs": [CronJob(sweep_expired_tokens, cron=settings.token_sweep_cron)],
        "concurrency": 2,
        "startup": startup,
        "shutdown": shutdown,
    }


async def startup(_ctx: dict) -> None:
    """Called when worker starts."""
    pass


async def shutdown(_ctx: dict) -> None:
    """Called when worker shuts down."""
    from linkauth.database import close_db

    await close_db()
