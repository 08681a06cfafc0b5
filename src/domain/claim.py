"""Claim request and checkout result models."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.domain.cart import Cart
from src.domain.donation import Donation


class ClaimOutcome(StrEnum):
    """Outcome of a single checkout line."""

    APPLIED = "applied"
    SKIPPED = "skipped"


class SkipReason(StrEnum):
    """Why a checkout line was not applied."""

    INVALID_SERVINGS = "invalid_servings"
    MISSING_DONATION_ID = "missing_donation_id"
    DONATION_NOT_FOUND = "donation_not_found"
    DONATION_UNAVAILABLE = "donation_unavailable"
    CONCURRENT_UPDATE = "concurrent_update"


class ClaimRequest(BaseModel):
    """One line of a checkout: how many servings of which donation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    donation_id: str | None = None
    servings: int | float | str | None = None

    @field_validator("donation_id", mode="before")
    @classmethod
    def coerce_donation_id(cls, v: object) -> object:
        """Accept numeric ids from clients."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    def whole_servings(self) -> int | None:
        """Requested servings as an int, or None when missing or not a whole number."""
        value = self.servings
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                return None
        if isinstance(value, float):
            return int(value) if value.is_integer() else None
        return value


class CheckoutRequest(BaseModel):
    """Checkout request body."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str | None = None
    claims: list[ClaimRequest] | None = None


class ClaimLineResult(BaseModel):
    """Per-line checkout result, returned to the caller."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    donation_id: str | None
    servings: int | float | str | None
    outcome: ClaimOutcome
    reason: SkipReason | None = None
    remaining_quantity: int | None = None
    fully_claimed: bool = False
    donation: Donation | None = Field(default=None, exclude=True)

    @classmethod
    def applied(cls, claim: ClaimRequest, donation: Donation, *, fully_claimed: bool) -> "ClaimLineResult":
        return cls(
            donation_id=claim.donation_id,
            servings=claim.servings,
            outcome=ClaimOutcome.APPLIED,
            remaining_quantity=donation.quantity,
            fully_claimed=fully_claimed,
            donation=donation,
        )

    @classmethod
    def skipped(cls, claim: ClaimRequest, reason: SkipReason) -> "ClaimLineResult":
        return cls(
            donation_id=claim.donation_id,
            servings=claim.servings,
            outcome=ClaimOutcome.SKIPPED,
            reason=reason,
        )


class CheckoutResult(BaseModel):
    """Outcome of a checkout: full inventory listing, cleared cart and per-line results."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str
    user_id: str
    donations: list[Donation]
    cart: Cart
    results: list[ClaimLineResult]

    @property
    def applied_lines(self) -> list[ClaimLineResult]:
        return [line for line in self.results if line.outcome == ClaimOutcome.APPLIED]
