"""Donation inventory service: listing, lookup and claim writes."""

import logging
from datetime import UTC, datetime

from src.core import db_client
from src.core.config import settings
from src.core.errors import ConcurrentUpdateError, DonationUnavailableError, InvalidRequestError, NotFoundError
from src.core.logging import span
from src.domain.create_models import DonationCreate
from src.domain.donation import Donation, DonationStatus


logger = logging.getLogger(__name__)

COLLECTION = "donations"


async def create_donations(*, listing: DonationCreate) -> list[Donation]:
    """Create one donation record per food item in a donor's listing.

    Args:
        listing: Validated listing with shared donor and location fields

    Returns:
        The created donations, in the order the items were submitted
    """
    with span("donation_service.create_donations"):
        created = []
        for item in listing.food_items:
            record = await db_client.create_record(
                collection=COLLECTION,
                data={
                    "donor_name": listing.donor_name,
                    "email": listing.email,
                    "phone_no": listing.phone_no,
                    "food_name": item.food_name,
                    "food_type": item.food_type,
                    "food_image": item.food_image,
                    "quantity": item.quantity,
                    "location_name": listing.location_name,
                    "latitude": listing.coordinates.latitude,
                    "longitude": listing.coordinates.longitude,
                    "created_date": listing.created_date,
                    "expiry_date": item.expiry_date,
                    "status": DonationStatus.AVAILABLE,
                    "version": 0,
                },
            )
            created.append(Donation.from_record(record))

        logger.info("Created %d donations for %s", len(created), listing.email)
        return created


async def get_donation(*, donation_id: str) -> Donation:
    """Get donation by ID.

    Raises:
        NotFoundError: If the donation does not exist
    """
    try:
        record = await db_client.get_record(collection=COLLECTION, record_id=donation_id)
    except db_client.RecordNotFoundError as e:
        raise NotFoundError(f"Donation not found: {donation_id}") from e
    return Donation.from_record(record)


async def list_donations() -> list[Donation]:
    """List every donation regardless of status."""
    with span("donation_service.list_donations"):
        records = await db_client.list_all_records(collection=COLLECTION)
        return [Donation.from_record(r) for r in records]


async def list_donations_by_donor_email(*, email: str) -> list[Donation]:
    """List donations whose donor email contains ``email`` (case-insensitive)."""
    with span("donation_service.list_donations_by_donor_email"):
        records = await db_client.list_all_records(
            collection=COLLECTION,
            filter_query=f'email ~ "{db_client.sanitize_param(email)}"',
        )
        logger.debug("Found %d donations matching donor email %s", len(records), email)
        return [Donation.from_record(r) for r in records]


async def get_donations_by_ids(*, donation_ids: list[str]) -> dict[str, Donation]:
    """Fetch donations in one batch read, keyed by id. Unknown ids are absent."""
    records = await db_client.get_records(collection=COLLECTION, record_ids=donation_ids)
    return {r["id"]: Donation.from_record(r) for r in records}


async def apply_claim(
    *,
    donation_id: str,
    servings: int,
    claimer: str,
    now: datetime | None = None,
    snapshot: Donation | None = None,
) -> Donation:
    """Claim servings from a donation with a compare-and-swap on its version.

    Requests larger than the remaining quantity are clamped to it. When the
    remaining quantity reaches zero the donation becomes claimed by ``claimer``.
    The write only lands if the version read is still current; otherwise the
    donation is re-read and the claim retried.

    Args:
        donation_id: Donation to claim from
        servings: Number of servings requested (must be at least 1)
        claimer: Email of the claiming user
        now: Claim time (defaults to current UTC time)
        snapshot: Already-fetched donation to use for the first attempt

    Returns:
        The donation as written

    Raises:
        InvalidRequestError: If servings is below 1
        NotFoundError: If the donation does not exist
        DonationUnavailableError: If no servings are left to claim
        ConcurrentUpdateError: If every attempt lost a race
    """
    if servings < 1:
        raise InvalidRequestError(f"Servings must be at least 1, got {servings}")

    now = now or datetime.now(UTC)
    current = snapshot

    with span("donation_service.apply_claim"):
        for attempt in range(1, settings.claim_max_attempts + 1):
            if current is None:
                current = await get_donation(donation_id=donation_id)

            if current.status != DonationStatus.AVAILABLE or current.quantity == 0:
                raise DonationUnavailableError(f"Donation {donation_id} has no servings left")

            new_quantity = max(0, current.quantity - servings)
            data: dict[str, object] = {"quantity": new_quantity}
            if new_quantity == 0:
                data.update(status=DonationStatus.CLAIMED, claimed_at=now, claimed_by=claimer)

            try:
                record = await db_client.update_record_where(
                    collection=COLLECTION,
                    record_id=donation_id,
                    data=data,
                    filter_query=f'version = "{current.version}"',
                    increments={"version": 1},
                )
            except db_client.RecordNotFoundError as e:
                raise NotFoundError(f"Donation not found: {donation_id}") from e

            if record is not None:
                updated = Donation.from_record(record)
                logger.info(
                    "Claimed %d servings of donation %s for %s (remaining: %d)",
                    current.quantity - new_quantity,
                    donation_id,
                    claimer,
                    updated.quantity,
                )
                return updated

            logger.info("Version conflict on donation %s (attempt %d), re-reading", donation_id, attempt)
            current = None

    raise ConcurrentUpdateError(
        f"Donation {donation_id} changed concurrently {settings.claim_max_attempts} times in a row"
    )


async def revert_stale_claims(*, older_than: datetime) -> int:
    """Release every claim made at or before ``older_than`` back to available.

    The status and age checks are evaluated inside a single UPDATE, so a
    donation claimed after the cutoff is never touched. Quantity is left as is.

    Returns:
        Number of donations released
    """
    with span("donation_service.revert_stale_claims"):
        cutoff = db_client.format_timestamp(older_than)
        return await db_client.update_records_where(
            collection=COLLECTION,
            filter_query=f'status = "{DonationStatus.CLAIMED}" && claimed_at <= "{cutoff}"',
            data={"status": DonationStatus.AVAILABLE, "claimed_at": None, "claimed_by": None},
            increments={"version": 1},
        )
