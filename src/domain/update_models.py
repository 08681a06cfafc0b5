"""Update models for database operations."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PushTokenUpdate(BaseModel):
    """Update payload for a user's push token."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    email: str = Field(..., min_length=1)
    push_token: str = Field(..., min_length=1, validation_alias=AliasChoices("pushToken", "fcmToken", "push_token"))


class NotificationOwnerUpdate(BaseModel):
    """Identifies whose notifications a bulk update or delete applies to."""

    email: str = Field(..., min_length=1)
