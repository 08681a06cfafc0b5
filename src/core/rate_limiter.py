"""Rate limiting using a Redis fixed-window counter."""

import logging
from datetime import UTC, datetime

from fastapi import HTTPException

from src.core.config import settings
from src.core.redis_client import redis_client


logger = logging.getLogger(__name__)


class RateLimiter:
    """Per-identifier request limiter backed by Redis. Fails open."""

    async def check_rate_limit(
        self,
        scope: str,
        identifier: str,
        limit: int,
        window_seconds: int,
    ) -> None:
        """Check if request is within rate limit.

        Args:
            scope: Rate limit scope (e.g., 'checkout')
            identifier: Unique identifier (e.g., user email)
            limit: Maximum requests allowed per window
            window_seconds: Time window in seconds

        Raises:
            HTTPException: 429 if the limit is exceeded
        """
        if not redis_client.is_available:
            logger.debug("rate_limit_check_skipped", extra={"reason": "redis_unavailable"})
            return

        now = datetime.now(UTC)
        window_start = int(now.timestamp()) // window_seconds
        key = f"ratelimit:{scope}:{identifier}:{window_start}"

        try:
            count = await redis_client.increment(key)
            if count is None:
                logger.warning("rate_limit_check_failed", extra={"reason": "redis_increment_failed"})
                return

            if count == 1:
                await redis_client.expire(key, window_seconds)

            if count > limit:
                retry_after = window_seconds - (int(now.timestamp()) % window_seconds)
                logger.warning(
                    "rate_limit_exceeded",
                    extra={"scope": scope, "identifier": identifier, "count": count, "limit": limit},
                )
                raise HTTPException(
                    status_code=429,
                    detail="Too many requests",
                    headers={"Retry-After": str(retry_after), "X-RateLimit-Limit": str(limit)},
                )
        except HTTPException:
            raise
        except (RuntimeError, ConnectionError, OSError):
            logger.exception("rate_limit_check_error")
            return

    async def check_checkout_rate_limit(self, user_id: str) -> None:
        """Check per-user checkout rate limit."""
        await self.check_rate_limit(
            scope="checkout",
            identifier=user_id,
            limit=settings.checkout_rate_limit_per_minute,
            window_seconds=60,
        )


# Global rate limiter instance
rate_limiter = RateLimiter()
