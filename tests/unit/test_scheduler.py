"""Tests for scheduler job registration."""

from functools import partial
from unittest.mock import MagicMock, patch

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from src.core import scheduler as scheduler_module
from src.core.config import constants
from src.core.scheduler_tracker import retry_job_with_backoff
from src.services.claim_sweeper import release_expired_claims_job


@pytest.fixture
def mock_scheduler():
    with patch.object(scheduler_module, "scheduler", MagicMock()) as mock:
        yield mock


@pytest.mark.unit
def test_start_scheduler_registers_sweep(mock_scheduler: MagicMock, monkeypatch) -> None:
    """The sweep runs on an interval from settings, one instance at a time."""
    monkeypatch.setattr("src.core.scheduler.settings.claim_sweep_interval_minutes", 7)

    scheduler_module.start_scheduler()

    mock_scheduler.add_job.assert_called_once()
    job = mock_scheduler.add_job.call_args.args[0]
    kwargs = mock_scheduler.add_job.call_args.kwargs

    assert isinstance(job, partial)
    assert job.func is retry_job_with_backoff
    assert job.args == (release_expired_claims_job, constants.CLAIM_SWEEP_JOB_ID)

    trigger = kwargs["trigger"]
    assert isinstance(trigger, IntervalTrigger)
    assert trigger.interval.total_seconds() == 7 * 60
    assert kwargs["id"] == constants.CLAIM_SWEEP_JOB_ID
    assert kwargs["max_instances"] == 1
    assert kwargs["coalesce"] is True
    mock_scheduler.start.assert_called_once()


@pytest.mark.unit
def test_stop_scheduler_when_running(mock_scheduler: MagicMock) -> None:
    mock_scheduler.running = True

    scheduler_module.stop_scheduler()

    mock_scheduler.shutdown.assert_called_once_with(wait=True)


@pytest.mark.unit
def test_stop_scheduler_when_not_running(mock_scheduler: MagicMock) -> None:
    mock_scheduler.running = False

    scheduler_module.stop_scheduler()

    mock_scheduler.shutdown.assert_not_called()
