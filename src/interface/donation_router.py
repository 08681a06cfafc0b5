"""Donation listing HTTP endpoints."""

from typing import Any

from fastapi import APIRouter, status

from src.domain.create_models import DonationCreate
from src.services import donation_service


router = APIRouter(prefix="/api/donations", tags=["donations"])


@router.post("/create-donations", status_code=status.HTTP_201_CREATED)
async def create_donations(body: DonationCreate) -> dict[str, Any]:
    """Create one donation per submitted food item."""
    donations = await donation_service.create_donations(listing=body)
    return {
        "message": "Donations created successfully",
        "donations": [d.model_dump(by_alias=True, mode="json") for d in donations],
    }


@router.get("/get-donations")
async def get_donations() -> dict[str, Any]:
    """List every donation."""
    donations = await donation_service.list_donations()
    return {
        "success": True,
        "count": len(donations),
        "data": [d.model_dump(by_alias=True, mode="json") for d in donations],
    }


@router.get("/user/{email}")
async def get_donations_by_email(email: str) -> list[dict[str, Any]]:
    """List donations by donor email (case-insensitive substring match)."""
    donations = await donation_service.list_donations_by_donor_email(email=email)
    return [d.model_dump(by_alias=True, mode="json") for d in donations]


@router.get("/{donation_id}")
async def get_donation(donation_id: str) -> dict[str, Any]:
    """Get a single donation."""
    donation = await donation_service.get_donation(donation_id=donation_id)
    return donation.model_dump(by_alias=True, mode="json")
