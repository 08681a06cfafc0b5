"""User HTTP endpoints."""

from typing import Any

from fastapi import APIRouter

from src.domain.update_models import PushTokenUpdate
from src.services import user_service


router = APIRouter(prefix="/api/users", tags=["users"])


@router.put("/push-token")
async def update_push_token(body: PushTokenUpdate) -> dict[str, Any]:
    """Register the Expo push token for a user."""
    user = await user_service.update_push_token(email=body.email, push_token=body.push_token)
    return {"success": True, "message": "Push token updated", "user": user.model_dump(by_alias=True, mode="json")}
