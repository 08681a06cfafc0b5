"""Job execution tracking and monitoring for scheduled jobs."""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from src.core.config import constants
from src.core.redis_client import redis_client


logger = logging.getLogger(__name__)

STATUS_TTL_SECONDS = 86400 * 7
DLQ_TTL_SECONDS = 86400 * 30
MAX_ERROR_LENGTH = 500


def _key(job_name: str, field: str) -> str:
    return f"scheduler:job:{job_name}:{field}"


class JobTracker:
    """Track job execution history and health status.

    Uses Redis when it is configured and falls back to process memory.
    """

    def __init__(self) -> None:
        """Initialize job tracker."""
        self._memory_storage: dict[str, dict[str, Any]] = {}
        self._dead_letter_queue: deque[tuple[str, str, str]] = deque(
            maxlen=constants.TRACKER_DEAD_LETTER_QUEUE_MAXLEN
        )

    def _memory(self, job_name: str) -> dict[str, Any]:
        return self._memory_storage.setdefault(job_name, {})

    async def record_job_start(self, job_name: str) -> None:
        """Record job execution start."""
        now = datetime.now(UTC).isoformat()

        if redis_client.is_available:
            await redis_client.set(_key(job_name, "current_run"), now, ttl_seconds=3600)
        else:
            self._memory(job_name)["current_run"] = now

    async def record_job_success(self, job_name: str) -> None:
        """Record successful job execution and reset the failure streak."""
        now = datetime.now(UTC).isoformat()

        if redis_client.is_available:
            await redis_client.set(_key(job_name, "last_success"), now, ttl_seconds=STATUS_TTL_SECONDS)
            await redis_client.set(_key(job_name, "consecutive_failures"), "0", ttl_seconds=STATUS_TTL_SECONDS)
            await redis_client.increment(_key(job_name, "success_count"))
            await redis_client.expire(_key(job_name, "success_count"), STATUS_TTL_SECONDS)
            await redis_client.delete(_key(job_name, "current_run"))
            return

        job_data = self._memory(job_name)
        job_data["last_success"] = now
        job_data["consecutive_failures"] = 0
        job_data["success_count"] = job_data.get("success_count", 0) + 1
        job_data.pop("current_run", None)

    async def record_job_failure(self, job_name: str, error: str) -> int | None:
        """Record failed job execution.

        Returns:
            The number of consecutive failures including this one
        """
        now = datetime.now(UTC).isoformat()
        error = error[:MAX_ERROR_LENGTH]

        if redis_client.is_available:
            await redis_client.set(_key(job_name, "last_failure"), now, ttl_seconds=STATUS_TTL_SECONDS)
            await redis_client.set(_key(job_name, "last_error"), error, ttl_seconds=STATUS_TTL_SECONDS)

            consecutive_failures = await redis_client.increment(_key(job_name, "consecutive_failures"))
            await redis_client.expire(_key(job_name, "consecutive_failures"), STATUS_TTL_SECONDS)

            await redis_client.increment(_key(job_name, "failure_count"))
            await redis_client.expire(_key(job_name, "failure_count"), STATUS_TTL_SECONDS)
            await redis_client.delete(_key(job_name, "current_run"))
            return consecutive_failures

        job_data = self._memory(job_name)
        job_data["last_failure"] = now
        job_data["last_error"] = error
        job_data["consecutive_failures"] = job_data.get("consecutive_failures", 0) + 1
        job_data["failure_count"] = job_data.get("failure_count", 0) + 1
        job_data.pop("current_run", None)
        return job_data["consecutive_failures"]

    async def get_job_status(self, job_name: str) -> dict[str, Any]:
        """Get job execution status.

        Returns:
            Dict with job status information
        """
        if redis_client.is_available:
            fields = [
                "last_success",
                "last_failure",
                "last_error",
                "consecutive_failures",
                "success_count",
                "failure_count",
                "current_run",
            ]
            job_data = {field: await redis_client.get(_key(job_name, field)) for field in fields}
        else:
            job_data = self._memory_storage.get(job_name, {})

        current_run = job_data.get("current_run")
        return {
            "job_name": job_name,
            "last_success": job_data.get("last_success"),
            "last_failure": job_data.get("last_failure"),
            "last_error": job_data.get("last_error"),
            "consecutive_failures": int(job_data.get("consecutive_failures") or 0),
            "success_count": int(job_data.get("success_count") or 0),
            "failure_count": int(job_data.get("failure_count") or 0),
            "currently_running": current_run is not None,
            "current_run_started": current_run,
        }

    async def add_to_dead_letter_queue(self, job_name: str, error: str, context: str) -> None:
        """Add persistently failed job to dead letter queue."""
        timestamp = datetime.now(UTC).isoformat()
        self._dead_letter_queue.append((job_name, error, context))

        logger.error(
            "Job added to dead letter queue",
            extra={"job_name": job_name, "error": error, "context": context, "timestamp": timestamp},
        )

        if redis_client.is_available:
            await redis_client.set(
                f"scheduler:dlq:{job_name}:{timestamp}",
                f"{error} | {context}",
                ttl_seconds=DLQ_TTL_SECONDS,
            )

    def get_dead_letter_queue(self) -> list[dict[str, str]]:
        """Get all items in dead letter queue."""
        return [
            {"job_name": job_name, "error": error, "context": context}
            for job_name, error, context in self._dead_letter_queue
        ]


# Global job tracker instance
job_tracker = JobTracker()


async def retry_job_with_backoff(
    job_func: Callable[[], Awaitable[Any]],
    job_name: str,
    max_retries: int = 3,
    base_delay: float = 2.0,
) -> None:
    """Execute job with retry logic and exponential backoff.

    Never raises: a run that fails every attempt is recorded as a failure, and
    a job that keeps failing is moved to the dead letter queue.

    Args:
        job_func: Async function to execute
        job_name: Name of the job for tracking
        max_retries: Maximum number of attempts
        base_delay: Base delay in seconds for exponential backoff
    """
    await job_tracker.record_job_start(job_name)

    last_error = None
    for attempt in range(max_retries):
        try:
            logger.info("Executing %s (attempt %d/%d)", job_name, attempt + 1, max_retries)
            await job_func()

            await job_tracker.record_job_success(job_name)
            logger.info("%s completed successfully", job_name)
            return

        except Exception as e:
            last_error = str(e)
            logger.error("%s failed on attempt %d/%d: %s", job_name, attempt + 1, max_retries, last_error)

            if attempt < max_retries - 1:
                delay = base_delay**attempt
                logger.info("Retrying %s in %.1fs", job_name, delay)
                await asyncio.sleep(delay)

    error_msg = f"Failed after {max_retries} attempts: {last_error}"
    consecutive_failures = await job_tracker.record_job_failure(job_name, error_msg)

    logger.critical(
        "%s failed after all retry attempts",
        job_name,
        extra={"error": error_msg, "consecutive_failures": consecutive_failures},
    )

    if consecutive_failures and consecutive_failures >= constants.TRACKER_CONSECUTIVE_FAILURE_THRESHOLD:
        await job_tracker.add_to_dead_letter_queue(
            job_name=job_name,
            error=last_error or "Unknown error",
            context=f"Failed {consecutive_failures} consecutive times",
        )
