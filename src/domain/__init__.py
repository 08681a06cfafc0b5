"""Domain models and DTOs."""

from src.domain.cart import Cart, CartItem
from src.domain.claim import (
    CheckoutRequest,
    CheckoutResult,
    ClaimLineResult,
    ClaimOutcome,
    ClaimRequest,
    SkipReason,
)
from src.domain.create_models import CartItemCreate, DonationCreate, FoodItemCreate, PushProbeCreate
from src.domain.donation import Coordinates, Donation, DonationStatus
from src.domain.notification import Notification
from src.domain.update_models import NotificationOwnerUpdate, PushTokenUpdate
from src.domain.user import User


__all__ = [
    "Cart",
    "CartItem",
    "CartItemCreate",
    "CheckoutRequest",
    "CheckoutResult",
    "ClaimLineResult",
    "ClaimOutcome",
    "ClaimRequest",
    "Coordinates",
    "Donation",
    "DonationCreate",
    "DonationStatus",
    "FoodItemCreate",
    "Notification",
    "NotificationOwnerUpdate",
    "PushProbeCreate",
    "PushTokenUpdate",
    "SkipReason",
    "User",
]
