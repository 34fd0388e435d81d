"""Maintenance background tasks for cleanup operations."""

import logging
from typing import Any

from linkauth.database import get_session_context
from linkauth.services import accounts
from linkauth.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

# Timeout for maintenance tasks (10 minutes)
MAINTENANCE_TIMEOUT_SECONDS = 10 * 60


async def sweep_expired_tokens(
    ctx: dict[str, Any],
    dry_run: bool = False,
) -> dict[str, Any]:
    """Clear expired magic link tokens from all accounts.

    Runs hourly from the worker's cron schedule. Failures are logged and
    reported in the result; nothing is retried until the next run.

    Args:
        ctx: SAQ context; a ``clock`` entry overrides the time source
        dry_run: If True, only report how many accounts would be cleared

    Returns:
        Dict with sweep results
    """
    clock: Clock = ctx.get("clock") or utc_now
    now = clock()

    async with get_session_context() as session:
        try:
            if dry_run:
                expired = await accounts.count_expired_tokens(session, now)
                cleared = 0
            else:
                cleared = await accounts.sweep_expired_tokens(session, now)
                expired = cleared
                await session.commit()
        except Exception as e:
            error = f"Token sweep failed: {e}"
            logger.exception(error)
            return {"success": False, "error": error}

    if cleared:
        logger.info(f"Cleared {cleared} expired magic links")
    else:
        logger.debug(f"Token sweep found {expired} expired magic links (dry_run={dry_run})")

    return {
        "success": True,
        "dry_run": dry_run,
        "swept_at": now.isoformat(),
        "expired_count": expired,
        "cleared_count": cleared,
    }


# Set SAQ job timeouts
sweep_expired_tokens.timeout = MAINTENANCE_TIMEOUT_SECONDS  # type: ignore[attr-defined]
