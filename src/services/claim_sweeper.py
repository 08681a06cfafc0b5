"""Release claimed donations that were never picked up."""

import logging
from datetime import UTC, datetime, timedelta

from src.core.config import settings
from src.core.logging import span
from src.services import donation_service


logger = logging.getLogger(__name__)


async def release_expired_claims(
    *,
    now: datetime | None = None,
    grace_period_minutes: int | None = None,
) -> int:
    """Return claims older than the grace period to the available pool.

    This function is called by the scheduler job. Running it twice in a row
    releases nothing the second time.

    Args:
        now: Reference time (defaults to current UTC time)
        grace_period_minutes: Pickup window (defaults to settings.claim_grace_period_minutes)

    Returns:
        Number of donations released
    """
    with span("claim_sweeper.release_expired_claims"):
        now = now or datetime.now(UTC)
        grace = grace_period_minutes if grace_period_minutes is not None else settings.claim_grace_period_minutes
        cutoff = now - timedelta(minutes=grace)

        released = await donation_service.revert_stale_claims(older_than=cutoff)

        if released:
            logger.info("Released %d expired claims (claimed before %s)", released, cutoff.isoformat())
        else:
            logger.debug("No expired claims to release")
        return released


async def release_expired_claims_job() -> None:
    """Scheduler entry point for the expired-claim sweep."""
    await release_expired_claims()
