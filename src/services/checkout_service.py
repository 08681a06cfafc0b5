"""Checkout: reconcile a user's claims against the donation inventory."""

import logging
from datetime import UTC, datetime

from src.core.errors import ConcurrentUpdateError, DonationUnavailableError, InvalidRequestError, NotFoundError
from src.core.logging import log_with_user_context, span
from src.domain.claim import CheckoutResult, ClaimLineResult, ClaimRequest, SkipReason
from src.domain.donation import Donation
from src.services import cart_service, donation_service, notification_service


logger = logging.getLogger(__name__)

CHECKOUT_SUCCESS_MESSAGE = "Checkout successful! Donations updated."


def _summary_message(results: list[ClaimLineResult], applied: int) -> str:
    if applied == len(results):
        return CHECKOUT_SUCCESS_MESSAGE
    return f"Checkout completed. {applied} of {len(results)} claims applied; see results for skipped items."


async def _apply_line(
    *,
    claim: ClaimRequest,
    donations: dict[str, Donation],
    user_id: str,
    now: datetime,
) -> ClaimLineResult:
    if not claim.donation_id:
        return ClaimLineResult.skipped(claim, SkipReason.MISSING_DONATION_ID)
    servings = claim.whole_servings()
    if servings is None or servings < 1:
        return ClaimLineResult.skipped(claim, SkipReason.INVALID_SERVINGS)

    snapshot = donations.get(claim.donation_id)
    if snapshot is None:
        return ClaimLineResult.skipped(claim, SkipReason.DONATION_NOT_FOUND)

    try:
        updated = await donation_service.apply_claim(
            donation_id=claim.donation_id,
            servings=servings,
            claimer=user_id,
            now=now,
            snapshot=snapshot,
        )
    except NotFoundError:
        return ClaimLineResult.skipped(claim, SkipReason.DONATION_NOT_FOUND)
    except DonationUnavailableError:
        return ClaimLineResult.skipped(claim, SkipReason.DONATION_UNAVAILABLE)
    except ConcurrentUpdateError:
        return ClaimLineResult.skipped(claim, SkipReason.CONCURRENT_UPDATE)

    # Later lines for the same donation must start from what this line wrote
    donations[claim.donation_id] = updated
    return ClaimLineResult.applied(claim, updated, fully_claimed=updated.quantity == 0)


async def checkout(
    *,
    user_id: str | None,
    claims: list[ClaimRequest] | None,
    now: datetime | None = None,
) -> CheckoutResult:
    """Claim servings for every line of a checkout and clear the user's cart.

    Lines are reconciled independently: a line that cannot be applied is
    skipped with a reason and the rest still commit. Each applied line is
    committed on its own before the next one runs. Claims are not matched
    against the cart contents; the cart only has to be non-empty.

    Args:
        user_id: Email of the claiming user
        claims: Requested (donation, servings) lines
        now: Claim time (defaults to current UTC time)

    Returns:
        CheckoutResult with the full inventory, the cleared cart and one result per line

    Raises:
        InvalidRequestError: If user_id is missing, claims are empty or the cart is empty.
            Nothing has been changed in that case.
        db_client.DatabaseError: If the store fails mid-checkout. Lines before the
            failure may already be committed.
    """
    if not user_id:
        raise InvalidRequestError("User ID is required")
    if not claims:
        raise InvalidRequestError("Claims are required")

    now = now or datetime.now(UTC)

    with span("checkout_service.checkout"):
        cart = await cart_service.find_cart(user_id=user_id)
        if cart is None or not cart.items:
            raise InvalidRequestError("Cart is empty")

        donation_ids = [c.donation_id for c in claims if c.donation_id]
        donations = await donation_service.get_donations_by_ids(donation_ids=donation_ids)

        results = []
        for claim in claims:
            result = await _apply_line(claim=claim, donations=donations, user_id=user_id, now=now)
            if result.reason is not None:
                logger.warning(
                    "Skipped checkout line donation=%s servings=%s reason=%s",
                    claim.donation_id,
                    claim.servings,
                    result.reason,
                )
            results.append(result)

        cleared_cart = await cart_service.clear_cart(user_id=user_id)
        inventory = await donation_service.list_donations()

        applied = sum(1 for r in results if r.reason is None)
        log_with_user_context(
            logger, "info", "checkout_completed", user_id=user_id, applied=applied, lines=len(results)
        )

        return CheckoutResult(
            message=_summary_message(results, applied),
            user_id=user_id,
            donations=inventory,
            cart=cleared_cart,
            results=results,
        )


async def dispatch_claim_notifications(result: CheckoutResult) -> None:
    """Notify donor and recipient for every applied checkout line.

    Runs after the checkout has been committed. Never raises.
    """
    with span("checkout_service.dispatch_claim_notifications"):
        for line in result.applied_lines:
            if line.donation is None:
                continue
            try:
                await notification_service.notify_claim(donation=line.donation, claimer_email=result.user_id)
            except Exception:
                logger.exception("Claim notification failed for donation %s", line.donation_id)
