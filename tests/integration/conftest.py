"""Pytest configuration and fixtures for integration tests."""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from src.core import db_client
from src.domain.donation import Donation
from src.domain.user import User
from src.models.service_models import PushResult


@pytest.fixture
def push_outbox(monkeypatch) -> list[dict[str, Any]]:
    """Capture pushes instead of calling the Expo API."""
    sent: list[dict[str, Any]] = []

    async def _record_push(**kwargs) -> PushResult:
        sent.append(kwargs)
        return PushResult(success=True, ticket_id=f"ticket-{len(sent)}")

    monkeypatch.setattr("src.interface.push_sender.send_push_notification", _record_push)
    return sent


@pytest.fixture
def make_donation(sqlite_db) -> Callable[..., Awaitable[Donation]]:
    """Factory that inserts a donation row into the SQLite database."""

    async def _make(**overrides: Any) -> Donation:
        now = datetime.now(UTC)
        data = {
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
            **overrides,
        }
        record = await db_client.create_record(collection="donations", data=data)
        return Donation.from_record(record)

    return _make


@pytest.fixture
def make_user(sqlite_db) -> Callable[..., Awaitable[User]]:
    """Factory that inserts a user row into the SQLite database."""

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
        record = await db_client.create_record(collection="users", data=data)
        return User.from_record(record)

    return _make
