"""Background worker: runs the hourly magic link sweep via SAQ."""

import asyncio
import logging

from saq import Worker

from linkauth.logging import setup_logging
from linkauth.tasks.queue import get_queue_settings

logger = logging.getLogger(__name__)


def build_worker(concurrency: int | None = None) -> Worker:
    """Create a worker with the queue's functions and cron schedule."""
    queue_settings = get_queue_settings()
    return Worker(
        queue=queue_settings["queue"],
        functions=queue_settings["functions"],
        concurrency=concurrency or queue_settings.get("concurrency", 10),
        cron_jobs=queue_settings.get("cron_jobs"),
        startup=queue_settings.get("startup"),
        shutdown=queue_settings.get("shutdown"),
    )


def main(concurrency: int | None = None) -> None:
    """Run the SAQ worker until interrupted."""
    setup_logging()
    worker = build_worker(concurrency)
    logger.info(f"Starting worker with concurrency={worker.concurrency}")
    asyncio.run(worker.start())


if __name__ == "__main__":
    main()
