"""Notification domain models."""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Notification(BaseModel):
    """A persisted in-app notification."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    email: str = Field(..., description="Recipient email")
    push_token: str | None = Field(default=None, description="Expo token the push was addressed to, if any")
    title: str
    message: str
    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    read: bool = False
    timestamp: datetime

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Notification":
        """Build a Notification from a ``notifications`` table row."""
        data = record.get("data") or {}
        if isinstance(data, str):
            data = json.loads(data)
        return cls(
            id=record["id"],
            email=record["email"],
            push_token=record.get("push_token"),
            title=record["title"],
            message=record["message"],
            type=record["type"],
            data=data,
            read=bool(record.get("read")),
            timestamp=record["timestamp"],
        )
