"""Background task: evict sessions older than the maximum age."""

import asyncio
import logging
from datetime import timedelta

from qrshare.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)

SWEEP_INTERVAL_SECONDS = 30 * 60
SESSION_MAX_AGE_SECONDS = 60 * 60


async def expiry_reaper(
    registry: SessionRegistry,
    interval_seconds: float | None = None,
    max_age_seconds: float | None = None,
) -> None:
    """Sweep expired sessions on a fixed period.

    Started in lifespan startup, cancelled on shutdown. Expiry is coarse: a
    session can outlive its max age by up to one interval.
    """
    while True:
        interval = SWEEP_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        max_age = SESSION_MAX_AGE_SECONDS if max_age_seconds is None else max_age_seconds

        await asyncio.sleep(interval)
        try:
            evicted = registry.sweep_expired(timedelta(seconds=max_age))
            if evicted:
                logger.info(
                    "expiry_reaper: evicted %d sessions, %d remaining",
                    evicted,
                    registry.session_count,
                )
        except Exception:
            logger.exception("expiry_reaper: sweep error")
