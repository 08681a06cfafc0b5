"""Service layer: inventory, carts, checkout, notifications and the claim sweep."""

from src.services import (
    cart_service,
    checkout_service,
    claim_sweeper,
    donation_service,
    notification_service,
    user_service,
)


__all__ = [
    "cart_service",
    "checkout_service",
    "claim_sweeper",
    "donation_service",
    "notification_service",
    "user_service",
]
