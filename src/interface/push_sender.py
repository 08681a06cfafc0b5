"""Expo push notification sender with retry logic."""

import asyncio
import logging
from typing import Any

import httpx

from src.core.config import constants, settings
from src.core.errors import TransientDispatchError
from src.models.service_models import PushResult


logger = logging.getLogger(__name__)


# HTTP status code constants for error handling
HTTP_CLIENT_ERROR_START = 400
HTTP_CLIENT_ERROR_END = 500


def token_preview(push_token: str) -> str:
    """Shorten a push token for logs and API responses."""
    return f"{push_token[: constants.PUSH_TOKEN_PREVIEW_LENGTH]}..."


def _parse_ticket(body: dict[str, Any]) -> PushResult:
    """Interpret an Expo push ticket.

    Expo answers ``{"data": {"status": "ok", "id": ...}}`` on success and
    ``{"data": {"status": "error", "message": ...}}`` or ``{"errors": [...]}``
    when the message was rejected.
    """
    ticket = body.get("data")
    if isinstance(ticket, list):
        ticket = ticket[0] if ticket else None

    if isinstance(ticket, dict) and ticket.get("status") == "ok":
        return PushResult(success=True, ticket_id=ticket.get("id"))

    if isinstance(ticket, dict):
        return PushResult(success=False, error=ticket.get("message") or "Push ticket rejected")

    errors = body.get("errors") or []
    message = errors[0].get("message") if errors and isinstance(errors[0], dict) else None
    return PushResult(success=False, error=message or "Unexpected push response")


async def _post_push(*, payload: dict[str, Any]) -> PushResult:
    """Send a single push request.

    Raises:
        TransientDispatchError: On network failures and 5xx responses.
    """
    headers = {
        "Accept": "application/json",
        "Accept-Encoding": "gzip, deflate",
        "Content-Type": "application/json",
    }
    if settings.expo_access_token:
        headers["Authorization"] = f"Bearer {settings.expo_access_token}"

    try:
        async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as client:
            response = await client.post(settings.expo_push_url, json=payload, headers=headers)
    except httpx.HTTPError as e:
        raise TransientDispatchError(f"Push transport failed: {e!s}") from e

    if response.is_success:
        return _parse_ticket(response.json())

    if HTTP_CLIENT_ERROR_START <= response.status_code < HTTP_CLIENT_ERROR_END:
        return PushResult(success=False, error=f"Client error: {response.text}")

    raise TransientDispatchError(f"Server error: {response.status_code}")


async def send_push_notification(
    *,
    push_token: str,
    title: str,
    body: str,
    data: dict[str, Any] | None = None,
    max_retries: int = constants.PUSH_MAX_RETRIES,
    retry_delay: float = constants.PUSH_RETRY_DELAY_SECONDS,
) -> PushResult:
    """Send a push notification via the Expo push API with retry logic.

    Never raises; delivery problems are reported in the returned PushResult.
    """
    if not push_token:
        return PushResult(success=False, error="Push token is missing")

    payload = {
        "to": push_token,
        "sound": "default",
        "title": title,
        "body": body,
        "data": data or {},
        "priority": "high",
    }

    logger.info("Sending push notification", extra={"token": token_preview(push_token), "title": title})

    for attempt in range(max_retries):
        try:
            result = await _post_push(payload=payload)
        except TransientDispatchError as e:
            logger.warning(
                "Push attempt failed",
                extra={"token": token_preview(push_token), "attempt": attempt + 1, "error": str(e)},
            )
            if attempt < max_retries - 1:
                await asyncio.sleep(retry_delay * (2**attempt))
                continue
            return PushResult(success=False, error=f"Failed after retries: {e!s}")

        if result.success:
            logger.info("Push notification accepted", extra={"ticket_id": result.ticket_id})
        else:
            logger.error("Push notification rejected", extra={"error": result.error})
        return result

    return PushResult(success=False, error="Max retries exceeded")
