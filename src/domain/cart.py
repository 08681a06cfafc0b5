"""Cart domain models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.domain.donation import Coordinates


class CartItem(BaseModel):
    """A donation selected for checkout.

    Donation fields are copied at add time for display; checkout always
    revalidates against the live donation.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    donation_id: str
    food_name: str
    food_type: str
    quantity: int = Field(..., description="Servings available when the item was added")
    donor_name: str
    location_name: str
    coordinates: Coordinates
    added_at: datetime

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "CartItem":
        """Build a CartItem from a ``cart_items`` table row."""
        return cls(
            donation_id=record["donation_id"],
            food_name=record["food_name"],
            food_type=record["food_type"],
            quantity=record["quantity"],
            donor_name=record["donor_name"],
            location_name=record["location_name"],
            coordinates=Coordinates(latitude=record["latitude"], longitude=record["longitude"]),
            added_at=record["added_at"],
        )


class Cart(BaseModel):
    """A user's cart, keyed by the user's email."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    items: list[CartItem] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def contains(self, donation_id: str) -> bool:
        """Check whether the donation is already in the cart."""
        return any(item.donation_id == donation_id for item in self.items)
