"""Pydantic models for service layer return types.

These models provide type safety at service boundaries, converting database
dictionaries into typed objects with validation.
"""

from pydantic import BaseModel


class NotificationResult(BaseModel):
    """Result of notifying one side of a claim."""

    email: str
    recorded: bool
    pushed: bool
    notification_id: str | None = None
    error: str | None = None


class PushResult(BaseModel):
    """Result of a push delivery attempt."""

    success: bool
    ticket_id: str | None = None
    error: str | None = None
