"""Unit tests for checkout_service."""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from src.core.errors import ConcurrentUpdateError, InvalidRequestError
from src.domain.claim import ClaimOutcome, ClaimRequest, SkipReason
from src.domain.donation import DonationStatus
from src.services import cart_service, checkout_service, donation_service


USER = "receiver@example.com"


@pytest.fixture
def notify_calls(monkeypatch) -> AsyncMock:
    """Replace notify_claim so dispatch can be observed."""
    mock = AsyncMock(return_value=[])
    monkeypatch.setattr("src.services.notification_service.notify_claim", mock)
    return mock


async def _fill_cart(user_id: str, *donation_ids: str) -> None:
    for donation_id in donation_ids:
        await cart_service.add_item(user_id=user_id, donation_id=donation_id)


@pytest.mark.unit
class TestCheckoutValidation:
    """Top-level validation happens before anything is written."""

    async def test_missing_user_id(self, patched_db):
        """A checkout without a user is rejected."""
        with pytest.raises(InvalidRequestError, match="User ID is required"):
            await checkout_service.checkout(user_id=None, claims=[ClaimRequest(donation_id="1", servings=1)])

    @pytest.mark.parametrize("claims", [None, []])
    async def test_missing_claims(self, patched_db, claims):
        """A checkout without claims is rejected."""
        with pytest.raises(InvalidRequestError, match="Claims are required"):
            await checkout_service.checkout(user_id=USER, claims=claims)

    async def test_no_cart(self, make_donation):
        """A user who never created a cart cannot check out."""
        donation = await make_donation()

        with pytest.raises(InvalidRequestError, match="Cart is empty"):
            await checkout_service.checkout(user_id=USER, claims=[ClaimRequest(donation_id=donation.id, servings=1)])

    async def test_empty_cart_leaves_inventory_untouched(self, make_donation):
        """An empty cart is rejected and no donation changes."""
        donation = await make_donation(quantity=5)
        await cart_service.get_cart(user_id=USER)

        with pytest.raises(InvalidRequestError, match="Cart is empty"):
            await checkout_service.checkout(user_id=USER, claims=[ClaimRequest(donation_id=donation.id, servings=2)])

        current = await donation_service.get_donation(donation_id=donation.id)
        assert current.quantity == 5
        assert current.version == donation.version


@pytest.mark.unit
class TestCheckout:
    """Tests for the per-line reconciliation."""

    async def test_full_and_partial_claims(self, make_donation):
        """Each line is applied against its own donation."""
        full = await make_donation(quantity=5)
        partial = await make_donation(quantity=5)
        await _fill_cart(USER, full.id, partial.id)
        now = datetime.now(UTC)

        result = await checkout_service.checkout(
            user_id=USER,
            claims=[ClaimRequest(donation_id=full.id, servings=5), ClaimRequest(donation_id=partial.id, servings=2)],
            now=now,
        )

        assert result.message == checkout_service.CHECKOUT_SUCCESS_MESSAGE
        assert [r.outcome for r in result.results] == [ClaimOutcome.APPLIED, ClaimOutcome.APPLIED]
        assert result.results[0].fully_claimed is True
        assert result.results[1].remaining_quantity == 3

        inventory = {d.id: d for d in result.donations}
        assert inventory[full.id].status == DonationStatus.CLAIMED
        assert inventory[full.id].claimed_by == USER
        assert inventory[full.id].claimed_at == now
        assert inventory[partial.id].quantity == 3
        assert inventory[partial.id].status == DonationStatus.AVAILABLE

    async def test_unknown_donation_is_skipped_and_others_commit(self, make_donation):
        """A line for a donation that does not exist is skipped; the rest still apply."""
        donation = await make_donation(quantity=4)
        await _fill_cart(USER, donation.id)

        result = await checkout_service.checkout(
            user_id=USER,
            claims=[ClaimRequest(donation_id="9999", servings=1), ClaimRequest(donation_id=donation.id, servings=1)],
        )

        assert result.results[0].outcome == ClaimOutcome.SKIPPED
        assert result.results[0].reason == SkipReason.DONATION_NOT_FOUND
        assert result.results[1].outcome == ClaimOutcome.APPLIED
        assert result.cart.items == []
        assert "1 of 2 claims applied" in result.message

        current = await donation_service.get_donation(donation_id=donation.id)
        assert current.quantity == 3

    @pytest.mark.parametrize(
        ("claim", "reason"),
        [
            (ClaimRequest(donation_id=None, servings=1), SkipReason.MISSING_DONATION_ID),
            (ClaimRequest(donation_id="", servings=1), SkipReason.MISSING_DONATION_ID),
            (ClaimRequest(donation_id="1000", servings=0), SkipReason.INVALID_SERVINGS),
            (ClaimRequest(donation_id="1000", servings=None), SkipReason.INVALID_SERVINGS),
            (ClaimRequest(donation_id="1000", servings=1.5), SkipReason.INVALID_SERVINGS),
            (ClaimRequest(donation_id="1000", servings="plenty"), SkipReason.INVALID_SERVINGS),
        ],
    )
    async def test_invalid_lines_are_skipped(self, make_donation, claim, reason):
        """Malformed lines are skipped with a reason and the cart is still cleared."""
        donation = await make_donation(quantity=2)
        await _fill_cart(USER, donation.id)

        result = await checkout_service.checkout(user_id=USER, claims=[claim])

        assert result.results[0].reason == reason
        assert result.cart.items == []
        current = await donation_service.get_donation(donation_id=donation.id)
        assert current.quantity == 2

    async def test_non_integer_servings_skip_only_that_line(self, make_donation):
        """A fractional line is skipped while a whole-number string line still commits."""
        first = await make_donation(quantity=4)
        second = await make_donation(quantity=4)
        await _fill_cart(USER, first.id, second.id)

        result = await checkout_service.checkout(
            user_id=USER,
            claims=[
                ClaimRequest(donation_id=first.id, servings=2.5),
                ClaimRequest(donation_id=second.id, servings="3"),
            ],
        )

        assert [r.reason for r in result.results] == [SkipReason.INVALID_SERVINGS, None]
        assert (await donation_service.get_donation(donation_id=first.id)).quantity == 4
        assert (await donation_service.get_donation(donation_id=second.id)).quantity == 1

    async def test_claimed_donation_is_skipped_as_unavailable(self, make_donation):
        """A donation that is already claimed yields an unavailable skip."""
        donation = await make_donation(quantity=1)
        await donation_service.apply_claim(donation_id=donation.id, servings=1, claimer="first@example.com")
        await _fill_cart(USER, donation.id)

        result = await checkout_service.checkout(
            user_id=USER, claims=[ClaimRequest(donation_id=donation.id, servings=1)]
        )

        assert result.results[0].reason == SkipReason.DONATION_UNAVAILABLE
        assert result.applied_lines == []

    async def test_concurrent_update_is_skipped(self, make_donation, monkeypatch):
        """Exhausted retries on one line do not abort the checkout."""
        donation = await make_donation()
        await _fill_cart(USER, donation.id)
        monkeypatch.setattr(
            "src.services.donation_service.apply_claim",
            AsyncMock(side_effect=ConcurrentUpdateError("busy")),
        )

        result = await checkout_service.checkout(
            user_id=USER, claims=[ClaimRequest(donation_id=donation.id, servings=1)]
        )

        assert result.results[0].reason == SkipReason.CONCURRENT_UPDATE
        assert result.cart.items == []

    async def test_repeated_lines_for_same_donation(self, make_donation):
        """Two lines for one donation both apply, the second from the first's result."""
        donation = await make_donation(quantity=5)
        await _fill_cart(USER, donation.id)

        result = await checkout_service.checkout(
            user_id=USER,
            claims=[
                ClaimRequest(donation_id=donation.id, servings=2),
                ClaimRequest(donation_id=donation.id, servings=2),
            ],
        )

        assert [r.remaining_quantity for r in result.results] == [3, 1]
        current = await donation_service.get_donation(donation_id=donation.id)
        assert current.quantity == 1
        assert current.version == donation.version + 2

    async def test_claims_need_not_match_cart(self, make_donation):
        """Only a non-empty cart is required; claims are not checked against it."""
        in_cart = await make_donation(food_name="In cart")
        elsewhere = await make_donation(food_name="Elsewhere", quantity=3)
        await _fill_cart(USER, in_cart.id)

        result = await checkout_service.checkout(
            user_id=USER, claims=[ClaimRequest(donation_id=elsewhere.id, servings=1)]
        )

        assert result.results[0].outcome == ClaimOutcome.APPLIED

    async def test_returns_full_inventory(self, make_donation):
        """The response lists every donation, not only the claimed ones."""
        claimed = await make_donation()
        await make_donation(food_name="Untouched")
        await _fill_cart(USER, claimed.id)

        result = await checkout_service.checkout(
            user_id=USER, claims=[ClaimRequest(donation_id=claimed.id, servings=1)]
        )

        assert len(result.donations) == 2

    async def test_concurrent_checkouts_for_last_serving(self, make_donation, notify_calls):
        """Two users checking out the last serving: one applies, one is skipped, one notification."""
        donation = await make_donation(quantity=1)
        await _fill_cart("a@example.com", donation.id)
        await _fill_cart("b@example.com", donation.id)

        results = await asyncio.gather(
            checkout_service.checkout(
                user_id="a@example.com", claims=[ClaimRequest(donation_id=donation.id, servings=1)]
            ),
            checkout_service.checkout(
                user_id="b@example.com", claims=[ClaimRequest(donation_id=donation.id, servings=1)]
            ),
        )
        for result in results:
            await checkout_service.dispatch_claim_notifications(result)

        applied = [line for result in results for line in result.applied_lines]
        assert len(applied) == 1
        notify_calls.assert_awaited_once()

        current = await donation_service.get_donation(donation_id=donation.id)
        assert current.quantity == 0
        assert current.status == DonationStatus.CLAIMED


@pytest.mark.unit
class TestDispatchClaimNotifications:
    """Tests for post-commit notification dispatch."""

    async def test_notifies_every_applied_line(self, make_donation, notify_calls):
        """Partial and full claims both notify; skipped lines do not."""
        full = await make_donation(quantity=1)
        partial = await make_donation(quantity=5)
        await _fill_cart(USER, full.id, partial.id)

        result = await checkout_service.checkout(
            user_id=USER,
            claims=[
                ClaimRequest(donation_id=full.id, servings=1),
                ClaimRequest(donation_id=partial.id, servings=1),
                ClaimRequest(donation_id="9999", servings=1),
            ],
        )
        await checkout_service.dispatch_claim_notifications(result)

        assert notify_calls.await_count == 2
        notified = [call.kwargs["donation"].id for call in notify_calls.await_args_list]
        assert notified == [full.id, partial.id]
        assert all(call.kwargs["claimer_email"] == USER for call in notify_calls.await_args_list)

    async def test_notification_failure_is_absorbed(self, make_donation, monkeypatch):
        """A crashing notifier never propagates out of dispatch."""
        first = await make_donation()
        second = await make_donation()
        await _fill_cart(USER, first.id, second.id)
        failing = AsyncMock(side_effect=[RuntimeError("push exploded"), []])
        monkeypatch.setattr("src.services.notification_service.notify_claim", failing)

        result = await checkout_service.checkout(
            user_id=USER,
            claims=[ClaimRequest(donation_id=first.id, servings=1), ClaimRequest(donation_id=second.id, servings=1)],
        )
        await checkout_service.dispatch_claim_notifications(result)

        assert failing.await_count == 2
