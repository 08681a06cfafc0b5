"""Notification service: claim notifications and the per-user notification feed."""

import logging
from datetime import UTC, datetime
from typing import Any

from src.core import db_client
from src.core.config import constants, settings
from src.core.errors import NotFoundError
from src.core.geo import directions_url, haversine_km
from src.core.logging import span
from src.domain.create_models import NotificationCreate
from src.domain.donation import Donation
from src.domain.notification import Notification
from src.domain.user import User
from src.interface import push_sender
from src.models.service_models import NotificationResult, PushResult
from src.services import user_service


logger = logging.getLogger(__name__)

COLLECTION = "notifications"


def format_pickup_window(minutes: int) -> str:
    """Render a duration in minutes as e.g. "2 hours 30 minutes"."""
    hours, mins = divmod(minutes, 60)
    parts = []
    if hours:
        parts.append(f"{hours} hour{'s' if hours != 1 else ''}")
    if mins or not hours:
        parts.append(f"{mins} minute{'s' if mins != 1 else ''}")
    return " ".join(parts)


def build_donor_message(*, claimer: User | None) -> str:
    """Message telling a donor their donation was claimed."""
    name = claimer.name if claimer and claimer.name else "A user"
    message = f"{name} has claimed your donation. Be available to share the food."
    if claimer and claimer.address:
        message += f"\nReceiver is coming from: {claimer.address}"
    return message


def build_receiver_message(*, donation: Donation, claimer: User | None, grace_period_minutes: int) -> str:
    """Message telling a recipient where and when to pick up their claim."""
    message = f"You have claimed {donation.donor_name}'s donation."
    message += f"\nDonor location: {directions_url(donation.coordinates)}"
    if claimer and claimer.coordinates:
        distance = haversine_km(claimer.coordinates, donation.coordinates)
        message += f"\nDistance: {distance:.2f} km"
    message += f"\nYou have {format_pickup_window(grace_period_minutes)} to pick up the donation."
    return message


async def create_notification(
    *,
    email: str,
    title: str,
    message: str,
    notification_type: str,
    data: dict[str, Any] | None = None,
    push_token: str | None = None,
    now: datetime | None = None,
) -> Notification:
    """Persist a notification record."""
    notification = NotificationCreate(
        email=email,
        push_token=push_token,
        title=title,
        message=message,
        type=notification_type,
        data=data or {},
        timestamp=now or datetime.now(UTC),
    )
    record = await db_client.create_record(collection=COLLECTION, data=notification.model_dump())
    return Notification.from_record(record)


async def _deliver(
    *,
    email: str,
    push_token: str | None,
    title: str,
    message: str,
    notification_type: str,
    data: dict[str, Any],
) -> NotificationResult:
    """Record a notification, then push it when the user has a token. Never raises."""
    notification_id = None
    try:
        notification = await create_notification(
            email=email,
            title=title,
            message=message,
            notification_type=notification_type,
            data=data,
            push_token=push_token,
        )
        notification_id = notification.id
    except Exception as e:
        logger.exception("Failed to record notification for %s", email)
        return NotificationResult(email=email, recorded=False, pushed=False, error=str(e))

    if not push_token:
        logger.info("No push token for %s, notification recorded only", email)
        return NotificationResult(email=email, recorded=True, pushed=False, notification_id=notification_id)

    try:
        push_result = await push_sender.send_push_notification(
            push_token=push_token,
            title=title,
            body=message,
            data={"type": notification_type, **data},
        )
    except Exception as e:
        logger.exception("Push delivery crashed for %s", email)
        return NotificationResult(
            email=email, recorded=True, pushed=False, notification_id=notification_id, error=str(e)
        )

    if not push_result.success:
        logger.error("Failed to push notification to %s: %s", email, push_result.error)

    return NotificationResult(
        email=email,
        recorded=True,
        pushed=push_result.success,
        notification_id=notification_id,
        error=push_result.error,
    )


async def _lookup_user(email: str) -> User | None:
    try:
        return await user_service.get_user_by_email(email=email)
    except Exception:
        logger.exception("User lookup failed for %s", email)
        return None


async def notify_claim(*, donation: Donation, claimer_email: str) -> list[NotificationResult]:
    """Notify the donor and the recipient that a donation was claimed.

    Both sides are handled independently and every failure is logged, not
    raised; the claim itself is already committed.

    Args:
        donation: The donation as written by the claim
        claimer_email: Email of the claiming user

    Returns:
        One NotificationResult per side (donor first)
    """
    with span("notification_service.notify_claim"):
        logger.info("Sending claim notifications for donation=%s claimer=%s", donation.id, claimer_email)

        claimer = await _lookup_user(claimer_email)
        donor = await _lookup_user(donation.email)

        donor_result = await _deliver(
            email=donation.email,
            push_token=donor.push_token if donor else None,
            title=constants.NOTIFICATION_TITLE_DONATION_CLAIMED,
            message=build_donor_message(claimer=claimer),
            notification_type=constants.NOTIFICATION_TYPE_DONATION_CLAIMED,
            data={"donationId": donation.id, "claimedBy": claimer_email},
        )

        receiver_result = await _deliver(
            email=claimer_email,
            push_token=claimer.push_token if claimer else None,
            title=constants.NOTIFICATION_TITLE_DONATION_CLAIMED,
            message=build_receiver_message(
                donation=donation,
                claimer=claimer,
                grace_period_minutes=settings.claim_grace_period_minutes,
            ),
            notification_type=constants.NOTIFICATION_TYPE_DONATION_CLAIMED,
            data={
                "donationId": donation.id,
                "donorEmail": donation.email,
                "mapUrl": directions_url(donation.coordinates),
            },
        )

        results = [donor_result, receiver_result]
        logger.info(
            "Claim notifications for donation %s: %d recorded, %d pushed",
            donation.id,
            sum(1 for r in results if r.recorded),
            sum(1 for r in results if r.pushed),
        )
        return results


async def send_test_notification(*, email: str, push_token: str) -> PushResult:
    """Push a test message to a device and record it in the user's feed."""
    with span("notification_service.send_test_notification"):
        now = datetime.now(UTC)
        title = "Test Notification"
        message = "This is a test notification from the food donation app!"

        result = await push_sender.send_push_notification(
            push_token=push_token,
            title=title,
            body=message,
            data={"type": constants.NOTIFICATION_TYPE_TEST, "timestamp": now.isoformat()},
        )
        await create_notification(
            email=email,
            title=title,
            message=message,
            notification_type=constants.NOTIFICATION_TYPE_TEST,
            data={"timestamp": now.isoformat()},
            push_token=push_token,
            now=now,
        )
        return result


def _owner_filter(email: str) -> str:
    return f'email = "{db_client.sanitize_param(email)}"'


async def list_notifications(*, email: str) -> list[Notification]:
    """List a user's notifications, newest first."""
    records = await db_client.list_all_records(
        collection=COLLECTION,
        filter_query=_owner_filter(email),
        sort="-timestamp",
    )
    return [Notification.from_record(r) for r in records]


async def mark_read(*, notification_id: str, email: str) -> Notification:
    """Mark one of the user's notifications as read.

    Raises:
        NotFoundError: If the notification does not exist or belongs to someone else
    """
    try:
        record = await db_client.update_record_where(
            collection=COLLECTION,
            record_id=notification_id,
            data={"read": True},
            filter_query=_owner_filter(email),
        )
    except db_client.RecordNotFoundError as e:
        raise NotFoundError("Notification not found") from e

    if record is None:
        raise NotFoundError("Notification not found")
    return Notification.from_record(record)


async def mark_all_read(*, email: str) -> int:
    """Mark every unread notification of the user as read. Returns the count."""
    return await db_client.update_records_where(
        collection=COLLECTION,
        filter_query=f'{_owner_filter(email)} && read = "false"',
        data={"read": True},
    )


async def clear_all(*, email: str) -> int:
    """Delete every notification of the user. Returns the count."""
    return await db_client.delete_records(collection=COLLECTION, filter_query=_owner_filter(email))
