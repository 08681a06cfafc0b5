"""Pydantic models for creating records in database."""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.domain.donation import Coordinates


class FoodItemCreate(BaseModel):
    """One food item in a donation listing; becomes one donation record."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    food_name: str = Field(..., min_length=1)
    food_type: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0, description="Servings offered")
    expiry_date: datetime
    food_image: str | None = None


class DonationCreate(BaseModel):
    """Pydantic model for a donor's listing of one or more food items."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    donor_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    phone_no: str = Field(..., min_length=1)
    location_name: str = Field(..., min_length=1)
    created_date: datetime
    coordinates: Coordinates
    food_items: list[FoodItemCreate] = Field(..., min_length=1)

    @field_validator("donor_name", "email", "phone_no", "location_name")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject whitespace-only values."""
        v = v.strip()
        if not v:
            raise ValueError("Field cannot be blank")
        return v


class CartItemCreate(BaseModel):
    """Request body identifying a cart line (add and remove)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str = Field(..., min_length=1)
    donation_id: str = Field(..., min_length=1)

    @field_validator("donation_id", mode="before")
    @classmethod
    def coerce_donation_id(cls, v: object) -> object:
        """Accept numeric ids from clients."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class NotificationCreate(BaseModel):
    """Pydantic model for creating a notification record."""

    email: str
    title: str
    message: str
    type: str
    data: dict = Field(default_factory=dict)
    push_token: str | None = None
    read: bool = False
    timestamp: datetime


class PushProbeCreate(BaseModel):
    """Request body for sending a test push to a device."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    email: str = Field(..., min_length=1)
    push_token: str = Field(..., min_length=1, validation_alias=AliasChoices("pushToken", "fcmToken", "push_token"))
