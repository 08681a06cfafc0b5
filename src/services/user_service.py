"""User lookups and push token registration."""

import logging

from src.core import db_client
from src.core.errors import NotFoundError
from src.core.logging import span
from src.domain.user import User
from src.interface.push_sender import token_preview


logger = logging.getLogger(__name__)


async def get_user_by_email(*, email: str) -> User | None:
    """Get user by email address.

    Returns:
        The user, or None if no user has this email
    """
    record = await db_client.get_first_record(
        collection="users",
        filter_query=f'email = "{db_client.sanitize_param(email)}"',
    )
    return User.from_record(record) if record else None


async def update_push_token(*, email: str, push_token: str) -> User:
    """Register the Expo push token for the user with this email.

    Raises:
        NotFoundError: If no user has this email
    """
    with span("user_service.update_push_token"):
        user = await get_user_by_email(email=email)
        if user is None:
            raise NotFoundError("User not found")

        record = await db_client.update_record(
            collection="users",
            record_id=user.id,
            data={"push_token": push_token},
        )
        logger.info("Updated push token for %s (%s)", email, token_preview(push_token))
        return User.from_record(record)
