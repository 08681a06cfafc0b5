"""Tests for configuration validation."""

import pytest
from pydantic import ValidationError

from src.core.config import Settings


def test_defaults_match_claim_lifecycle() -> None:
    """The sweep runs every 5 minutes and releases claims after 150 minutes."""
    settings = Settings(_env_file=None)

    assert settings.claim_sweep_interval_minutes == 5
    assert settings.claim_grace_period_minutes == 150
    assert settings.claim_max_attempts >= 1


def test_claim_timing_is_configurable_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("CLAIM_SWEEP_INTERVAL_MINUTES", "1")
    monkeypatch.setenv("CLAIM_GRACE_PERIOD_MINUTES", "30")

    settings = Settings(_env_file=None)

    assert settings.claim_sweep_interval_minutes == 1
    assert settings.claim_grace_period_minutes == 30


@pytest.mark.parametrize("field", ["claim_sweep_interval_minutes", "claim_grace_period_minutes", "claim_max_attempts"])
def test_non_positive_intervals_rejected(field: str) -> None:
    with pytest.raises(ValidationError, match=field):
        Settings(_env_file=None, **{field: 0})

