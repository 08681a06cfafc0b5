"""Donation domain models and enums."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class DonationStatus(StrEnum):
    """Lifecycle status of a donation.

    available -> claimed when the remaining quantity reaches zero;
    claimed -> available when the expiry sweep releases a stale claim;
    claimed -> completed is set outside this service.
    """

    AVAILABLE = "available"
    CLAIMED = "claimed"
    COMPLETED = "completed"


class Coordinates(BaseModel):
    """Geographic point in decimal degrees."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class Donation(BaseModel):
    """Donation data transfer object."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="Unique donation ID")
    donor_name: str = Field(..., description="Display name of the donor")
    email: str = Field(..., description="Donor email, used to route donor notifications")
    phone_no: str = Field(..., description="Donor phone number")
    food_name: str
    food_type: str
    food_image: str | None = None
    quantity: int = Field(..., ge=0, description="Remaining servings")
    location_name: str
    coordinates: Coordinates
    created_date: datetime
    expiry_date: datetime = Field(..., description="When the food spoils (unrelated to claim expiry)")
    status: DonationStatus = DonationStatus.AVAILABLE
    claimed_at: datetime | None = None
    claimed_by: str | None = None
    version: int = Field(default=0, ge=0, description="Optimistic concurrency counter")

    @model_validator(mode="after")
    def validate_claim_fields(self) -> "Donation":
        """Claim fields must be set exactly while the donation is claimed."""
        has_claim = self.claimed_at is not None and self.claimed_by is not None
        has_partial_claim = (self.claimed_at is None) != (self.claimed_by is None)

        if has_partial_claim:
            msg = "claimed_at and claimed_by must be set together"
            raise ValueError(msg)
        if self.status == DonationStatus.CLAIMED and not has_claim:
            msg = "A claimed donation must record when and by whom it was claimed"
            raise ValueError(msg)
        if self.status == DonationStatus.AVAILABLE and has_claim:
            msg = "An available donation cannot carry claim fields"
            raise ValueError(msg)
        return self

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Donation":
        """Build a Donation from a flat ``donations`` table row."""
        return cls(
            id=record["id"],
            donor_name=record["donor_name"],
            email=record["email"],
            phone_no=record["phone_no"],
            food_name=record["food_name"],
            food_type=record["food_type"],
            food_image=record.get("food_image"),
            quantity=record["quantity"],
            location_name=record["location_name"],
            coordinates=Coordinates(latitude=record["latitude"], longitude=record["longitude"]),
            created_date=record["created_date"],
            expiry_date=record["expiry_date"],
            status=record.get("status") or DonationStatus.AVAILABLE,
            claimed_at=record.get("claimed_at") or None,
            claimed_by=record.get("claimed_by") or None,
            version=record.get("version") or 0,
        )
