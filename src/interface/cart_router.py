"""Cart and checkout HTTP endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks
from fastapi.responses import JSONResponse

from src.core.rate_limiter import rate_limiter
from src.domain.claim import CheckoutRequest
from src.domain.create_models import CartItemCreate, PushProbeCreate
from src.interface.push_sender import token_preview
from src.services import cart_service, checkout_service, notification_service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cart", tags=["cart"])


@router.get("/{user_id}")
async def get_cart(user_id: str) -> dict[str, Any]:
    """Get the user's cart, creating an empty one on first access."""
    cart = await cart_service.get_cart(user_id=user_id)
    return cart.model_dump(by_alias=True, mode="json")


@router.post("/add")
async def add_to_cart(body: CartItemCreate) -> dict[str, Any]:
    """Add a donation to the user's cart."""
    cart = await cart_service.add_item(user_id=body.user_id, donation_id=body.donation_id)
    return {"message": "Item added to cart successfully", "cart": cart.model_dump(by_alias=True, mode="json")}


@router.delete("/remove")
async def remove_from_cart(body: CartItemCreate) -> dict[str, Any]:
    """Remove a donation from the user's cart."""
    cart = await cart_service.remove_item(user_id=body.user_id, donation_id=body.donation_id)
    return {"message": "Item removed from cart successfully", "cart": cart.model_dump(by_alias=True, mode="json")}


@router.delete("/clear/{user_id}")
async def clear_cart(user_id: str) -> dict[str, Any]:
    """Remove every item from the user's cart."""
    cart = await cart_service.clear_cart(user_id=user_id)
    return {"message": "Cart cleared successfully", "cart": cart.model_dump(by_alias=True, mode="json")}


@router.post("/checkout")
async def checkout(body: CheckoutRequest, background_tasks: BackgroundTasks) -> dict[str, Any]:
    """Claim the requested servings and clear the cart.

    Claim notifications are sent after the response, so delivery problems
    never affect the checkout result.
    """
    if body.user_id:
        await rate_limiter.check_checkout_rate_limit(body.user_id)

    result = await checkout_service.checkout(user_id=body.user_id, claims=body.claims)
    background_tasks.add_task(checkout_service.dispatch_claim_notifications, result)
    return result.model_dump(by_alias=True, mode="json")


@router.post("/test-notification", response_model=None)
async def test_notification(body: PushProbeCreate) -> dict[str, Any] | JSONResponse:
    """Send a test push to a device and record it in the user's feed."""
    logger.info("Testing notification for %s (%s)", body.email, token_preview(body.push_token))
    result = await notification_service.send_test_notification(email=body.email, push_token=body.push_token)

    if not result.success:
        return JSONResponse(
            status_code=502,
            content={"success": False, "message": "Failed to send test notification", "error": result.error},
        )

    return {
        "success": True,
        "message": "Test notification sent successfully",
        "email": body.email,
        "pushTokenPreview": token_preview(body.push_token),
    }
