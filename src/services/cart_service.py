"""Cart service: per-user selection of donations to claim."""

import logging
from datetime import UTC, datetime
from typing import Any

from src.core import db_client
from src.core.errors import DonationExpiredError, DuplicateCartItemError, NotFoundError
from src.core.logging import span
from src.domain.cart import Cart, CartItem
from src.services import donation_service


logger = logging.getLogger(__name__)

CARTS = "carts"
CART_ITEMS = "cart_items"


def _owner_filter(user_id: str) -> str:
    return f'user_id = "{db_client.sanitize_param(user_id)}"'


async def _find_cart_record(user_id: str) -> dict[str, Any] | None:
    return await db_client.get_first_record(collection=CARTS, filter_query=_owner_filter(user_id))


async def _get_or_create_cart_record(user_id: str) -> dict[str, Any]:
    record = await _find_cart_record(user_id)
    if record is not None:
        return record

    try:
        record = await db_client.create_record(collection=CARTS, data={"user_id": user_id})
        logger.info("Created cart for %s", user_id)
        return record
    except db_client.DuplicateRecordError:
        # Another request created it first
        record = await _find_cart_record(user_id)
        if record is None:
            raise
        return record


async def _touch(cart_record: dict[str, Any]) -> None:
    await db_client.update_record(
        collection=CARTS,
        record_id=cart_record["id"],
        data={"updated": datetime.now(UTC)},
    )


async def _load_cart(cart_record: dict[str, Any]) -> Cart:
    item_records = await db_client.list_all_records(
        collection=CART_ITEMS,
        filter_query=_owner_filter(cart_record["user_id"]),
        sort="added_at",
    )
    return Cart(
        user_id=cart_record["user_id"],
        items=[CartItem.from_record(r) for r in item_records],
        created_at=cart_record.get("created"),
        updated_at=cart_record.get("updated"),
    )


async def find_cart(*, user_id: str) -> Cart | None:
    """Return the user's cart without creating one."""
    record = await _find_cart_record(user_id)
    if record is None:
        return None
    return await _load_cart(record)


async def get_cart(*, user_id: str) -> Cart:
    """Return the user's cart, creating an empty one on first access."""
    with span("cart_service.get_cart"):
        record = await _get_or_create_cart_record(user_id)
        return await _load_cart(record)


async def add_item(*, user_id: str, donation_id: str, now: datetime | None = None) -> Cart:
    """Add a donation to the user's cart.

    The donation's display fields are copied into the cart line.

    Raises:
        NotFoundError: If the donation does not exist
        DonationExpiredError: If the food is past its expiry date
        DuplicateCartItemError: If the donation is already in the cart
    """
    now = now or datetime.now(UTC)

    with span("cart_service.add_item"):
        donation = await donation_service.get_donation(donation_id=donation_id)
        if donation.expiry_date < now:
            raise DonationExpiredError(f"Donation {donation_id} expired on {donation.expiry_date.isoformat()}")

        cart_record = await _get_or_create_cart_record(user_id)
        cart = await _load_cart(cart_record)
        if cart.contains(donation.id):
            raise DuplicateCartItemError("Item already exists in cart")

        try:
            await db_client.create_record(
                collection=CART_ITEMS,
                data={
                    "user_id": user_id,
                    "donation_id": donation.id,
                    "food_name": donation.food_name,
                    "food_type": donation.food_type,
                    "quantity": donation.quantity,
                    "donor_name": donation.donor_name,
                    "location_name": donation.location_name,
                    "latitude": donation.coordinates.latitude,
                    "longitude": donation.coordinates.longitude,
                    "added_at": now,
                },
            )
        except db_client.DuplicateRecordError as e:
            raise DuplicateCartItemError("Item already exists in cart") from e

        await _touch(cart_record)
        logger.info("Added donation %s to cart of %s", donation.id, user_id)
        return await _load_cart(cart_record)


async def remove_item(*, user_id: str, donation_id: str) -> Cart:
    """Remove a donation from the user's cart. Removing an absent item is a no-op.

    Raises:
        NotFoundError: If the user has no cart
    """
    with span("cart_service.remove_item"):
        cart_record = await _find_cart_record(user_id)
        if cart_record is None:
            raise NotFoundError("Cart not found")

        removed = await db_client.delete_records(
            collection=CART_ITEMS,
            filter_query=f'{_owner_filter(user_id)} && donation_id = "{db_client.sanitize_param(donation_id)}"',
        )
        await _touch(cart_record)
        logger.info("Removed donation %s from cart of %s (%d rows)", donation_id, user_id, removed)
        return await _load_cart(cart_record)


async def clear_cart(*, user_id: str) -> Cart:
    """Remove every item from the user's cart in one statement.

    Raises:
        NotFoundError: If the user has no cart
    """
    with span("cart_service.clear_cart"):
        cart_record = await _find_cart_record(user_id)
        if cart_record is None:
            raise NotFoundError("Cart not found")

        removed = await db_client.delete_records(collection=CART_ITEMS, filter_query=_owner_filter(user_id))
        await _touch(cart_record)
        logger.info("Cleared cart of %s (%d items)", user_id, removed)
        return await _load_cart(cart_record)
