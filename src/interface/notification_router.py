"""Notification feed HTTP endpoints."""

from typing import Any

from fastapi import APIRouter

from src.domain.update_models import NotificationOwnerUpdate
from src.services import notification_service


router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("/user/{email}")
async def get_notifications(email: str) -> dict[str, Any]:
    """List the user's notifications, newest first."""
    notifications = await notification_service.list_notifications(email=email)
    return {"success": True, "notifications": [n.model_dump(by_alias=True, mode="json") for n in notifications]}


@router.put("/mark-all-read")
async def mark_all_read(body: NotificationOwnerUpdate) -> dict[str, Any]:
    """Mark all of the user's notifications as read."""
    count = await notification_service.mark_all_read(email=body.email)
    return {"success": True, "message": f"{count} notifications marked as read"}


@router.delete("/clear-all")
async def clear_all(body: NotificationOwnerUpdate) -> dict[str, Any]:
    """Delete all of the user's notifications."""
    count = await notification_service.clear_all(email=body.email)
    return {"success": True, "message": f"{count} notifications cleared"}


@router.put("/{notification_id}/read")
async def mark_read(notification_id: str, body: NotificationOwnerUpdate) -> dict[str, Any]:
    """Mark one of the user's notifications as read."""
    notification = await notification_service.mark_read(notification_id=notification_id, email=body.email)
    return {"success": True, "notification": notification.model_dump(by_alias=True, mode="json")}
