"""User domain models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.domain.donation import Coordinates


class User(BaseModel):
    """User data transfer object (read-only for this service)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="Unique user ID")
    name: str = Field(..., description="Display name of the user")
    email: str = Field(..., description="Email address, the user's identity across the API")
    phone: str | None = None
    address: str | None = None
    push_token: str | None = Field(default=None, description="Expo push token registered by the mobile app")
    coordinates: Coordinates | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "User":
        """Build a User from a ``users`` table row."""
        coordinates = None
        if record.get("latitude") is not None and record.get("longitude") is not None:
            coordinates = Coordinates(latitude=record["latitude"], longitude=record["longitude"])
        return cls(
            id=record["id"],
            name=record["name"],
            email=record["email"],
            phone=record.get("phone"),
            address=record.get("address") or None,
            push_token=record.get("push_token") or None,
            coordinates=coordinates,
        )
