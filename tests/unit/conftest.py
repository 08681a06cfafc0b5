"""Pytest configuration and fixtures for unit tests."""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from src.domain.donation import Donation
from src.domain.user import User
from src.models.service_models import PushResult
from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


async def _mock_send_push_notification(**kwargs) -> PushResult:
    """Mock Expo sender that returns success instantly."""
    return PushResult(success=True, ticket_id="mock_ticket_id")


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches src.core.db_client functions to use InMemoryDBClient.

    Also patches the push sender to avoid real HTTP calls and retry delays.
    """
    for name in (
        "create_record",
        "get_record",
        "get_records",
        "update_record",
        "update_record_where",
        "update_records_where",
        "delete_records",
        "list_records",
        "get_first_record",
    ):
        monkeypatch.setattr(f"src.core.db_client.{name}", getattr(in_memory_db, name))

    monkeypatch.setattr("src.interface.push_sender.send_push_notification", _mock_send_push_notification)

    return in_memory_db


@pytest.fixture
def push_outbox(monkeypatch, patched_db) -> list[dict[str, Any]]:
    """Records every push the services try to send."""
    sent: list[dict[str, Any]] = []

    async def _record_push(**kwargs) -> PushResult:
        sent.append(kwargs)
        return PushResult(success=True, ticket_id=f"ticket-{len(sent)}")

    monkeypatch.setattr("src.interface.push_sender.send_push_notification", _record_push)
    return sent


@pytest.fixture
def sample_donation_data() -> dict[str, Any]:
    """Returns a flat donations row for testing."""
    now = datetime.now(UTC)
    return {
        "donor_name": "Asha Rao",
        "email": "donor@example.com",
        "phone_no": "+15550100",
        "food_name": "Vegetable Biryani",
        "food_type": "Veg",
        "food_image": None,
        "quantity": 5,
        "location_name": "Community Kitchen",
        "latitude": 12.9716,
        "longitude": 77.5946,
        "created_date": now - timedelta(hours=1),
        "expiry_date": now + timedelta(days=1),
        "status": "available",
        "claimed_at": None,
        "claimed_by": None,
        "version": 0,
    }


@pytest.fixture
def make_donation(patched_db, sample_donation_data) -> Callable[..., Awaitable[Donation]]:
    """Factory that stores a donation in the in-memory DB."""

    async def _make(**overrides: Any) -> Donation:
        record = await patched_db.create_record("donations", {**sample_donation_data, **overrides})
        return Donation.from_record(record)

    return _make


@pytest.fixture
def make_user(patched_db) -> Callable[..., Awaitable[User]]:
    """Factory that stores a user in the in-memory DB."""

    async def _make(**overrides: Any) -> User:
        data = {
            "name": "Ravi Kumar",
            "email": "receiver@example.com",
            "phone": "+15550111",
            "address": None,
            "push_token": None,
            "latitude": None,
            "longitude": None,
            **overrides,
        }
        record = await patched_db.create_record("users", data)
        return User.from_record(record)

    return _make
