"""Tests for scheduler job tracking and retry functionality."""

from unittest.mock import AsyncMock, PropertyMock, patch

import pytest

from src.core.config import constants
from src.core.scheduler_tracker import JobTracker, retry_job_with_backoff


JOB = constants.CLAIM_SWEEP_JOB_ID


@pytest.fixture(autouse=True)
def mock_redis_unavailable():
    """Mock redis_client to be unavailable, forcing in-memory storage for all tests."""
    with patch("src.core.scheduler_tracker.redis_client") as mock_redis:
        type(mock_redis).is_available = PropertyMock(return_value=False)
        yield mock_redis


@pytest.fixture
def mock_sleep():
    """Skip backoff delays."""
    with patch("src.core.scheduler_tracker.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


@pytest.fixture
def job_tracker() -> JobTracker:
    """Create a job tracker instance for testing with in-memory storage."""
    return JobTracker()


@pytest.mark.unit
async def test_record_job_start_in_memory(job_tracker: JobTracker) -> None:
    await job_tracker.record_job_start(JOB)

    status = await job_tracker.get_job_status(JOB)
    assert status["currently_running"] is True
    assert status["current_run_started"] is not None


@pytest.mark.unit
async def test_success_resets_failure_streak(job_tracker: JobTracker) -> None:
    """Failures accumulate until a success resets the streak; totals are kept."""
    for error in ("Error 1", "Error 2"):
        await job_tracker.record_job_start(JOB)
        await job_tracker.record_job_failure(JOB, error)

    status = await job_tracker.get_job_status(JOB)
    assert status["consecutive_failures"] == 2
    assert status["last_error"] == "Error 2"
    assert status["currently_running"] is False

    await job_tracker.record_job_start(JOB)
    await job_tracker.record_job_success(JOB)

    status = await job_tracker.get_job_status(JOB)
    assert status["consecutive_failures"] == 0
    assert status["failure_count"] == 2
    assert status["success_count"] == 1
    assert status["last_success"] is not None


@pytest.mark.unit
async def test_record_job_failure_returns_streak(job_tracker: JobTracker) -> None:
    assert await job_tracker.record_job_failure(JOB, "boom") == 1
    assert await job_tracker.record_job_failure(JOB, "boom") == 2


@pytest.mark.unit
async def test_get_job_status_for_job_that_never_ran(job_tracker: JobTracker) -> None:
    status = await job_tracker.get_job_status("nonexistent_job")

    assert status["job_name"] == "nonexistent_job"
    assert status["last_success"] is None
    assert status["consecutive_failures"] == 0
    assert status["success_count"] == 0
    assert status["currently_running"] is False


@pytest.mark.unit
async def test_error_truncation(job_tracker: JobTracker) -> None:
    """Long error messages are truncated to 500 characters."""
    await job_tracker.record_job_failure(JOB, "x" * 1000)

    status = await job_tracker.get_job_status(JOB)
    assert len(status["last_error"]) == 500


@pytest.mark.unit
async def test_dead_letter_queue_max_size(job_tracker: JobTracker) -> None:
    """The dead letter queue keeps only the most recent entries."""
    for i in range(constants.TRACKER_DEAD_LETTER_QUEUE_MAXLEN + 50):
        await job_tracker.add_to_dead_letter_queue(f"job_{i}", f"error_{i}", "context")

    dlq = job_tracker.get_dead_letter_queue()
    assert len(dlq) == constants.TRACKER_DEAD_LETTER_QUEUE_MAXLEN
    assert dlq[-1]["job_name"] == f"job_{constants.TRACKER_DEAD_LETTER_QUEUE_MAXLEN + 49}"


@pytest.mark.unit
async def test_redis_backed_status(mock_redis_unavailable) -> None:
    """With Redis configured, status is read from namespaced keys."""
    type(mock_redis_unavailable).is_available = PropertyMock(return_value=True)
    stored = {
        f"scheduler:job:{JOB}:consecutive_failures": "2",
        f"scheduler:job:{JOB}:success_count": "7",
    }
    mock_redis_unavailable.get = AsyncMock(side_effect=lambda key: stored.get(key))

    status = await JobTracker().get_job_status(JOB)

    assert status["consecutive_failures"] == 2
    assert status["success_count"] == 7
    assert status["currently_running"] is False


@pytest.mark.unit
async def test_retry_job_with_backoff_success_after_retry(mock_sleep: AsyncMock) -> None:
    """A job that recovers within the retry budget is recorded as a success."""
    mock_job = AsyncMock(side_effect=[Exception("Error 1"), Exception("Error 2"), None])

    with patch("src.core.scheduler_tracker.job_tracker") as mock_tracker:
        mock_tracker.record_job_start = AsyncMock()
        mock_tracker.record_job_success = AsyncMock()
        mock_tracker.record_job_failure = AsyncMock()

        await retry_job_with_backoff(mock_job, JOB, max_retries=3)

        assert mock_job.call_count == 3
        mock_tracker.record_job_success.assert_called_once_with(JOB)
        mock_tracker.record_job_failure.assert_not_called()
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]


@pytest.mark.unit
async def test_retry_job_with_backoff_all_retries_exhausted(mock_sleep: AsyncMock) -> None:
    """A job that never succeeds is recorded as a failure and does not raise."""
    mock_job = AsyncMock(side_effect=Exception("Persistent error"))

    with patch("src.core.scheduler_tracker.job_tracker") as mock_tracker:
        mock_tracker.record_job_start = AsyncMock()
        mock_tracker.record_job_failure = AsyncMock(return_value=1)
        mock_tracker.add_to_dead_letter_queue = AsyncMock()

        await retry_job_with_backoff(mock_job, JOB, max_retries=3)

        assert mock_job.call_count == 3
        mock_tracker.record_job_failure.assert_called_once()
        assert "Persistent error" in mock_tracker.record_job_failure.call_args.args[1]
        mock_tracker.add_to_dead_letter_queue.assert_not_called()


@pytest.mark.unit
async def test_retry_job_with_backoff_adds_to_dlq_after_consecutive_failures(mock_sleep: AsyncMock) -> None:
    """A job that keeps failing across runs lands in the dead letter queue."""
    mock_job = AsyncMock(side_effect=Exception("Persistent error"))

    with patch("src.core.scheduler_tracker.job_tracker") as mock_tracker:
        mock_tracker.record_job_start = AsyncMock()
        mock_tracker.record_job_failure = AsyncMock(return_value=constants.TRACKER_CONSECUTIVE_FAILURE_THRESHOLD)
        mock_tracker.add_to_dead_letter_queue = AsyncMock()

        await retry_job_with_backoff(mock_job, JOB, max_retries=2)

        mock_tracker.add_to_dead_letter_queue.assert_called_once()
        assert mock_tracker.add_to_dead_letter_queue.call_args.kwargs["job_name"] == JOB
