"""Error taxonomy and user-facing error classification."""

from enum import Enum

from pydantic import BaseModel

from src.core.db_client import DatabaseError, RecordNotFoundError


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Request errors
    ERR_INVALID_REQUEST = "ERR_INVALID_REQUEST"
    ERR_DONATION_EXPIRED = "ERR_DONATION_EXPIRED"

    # Lookup errors
    ERR_NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict errors
    ERR_CONFLICT = "ERR_CONFLICT"
    ERR_ALREADY_IN_CART = "ERR_ALREADY_IN_CART"
    ERR_DONATION_UNAVAILABLE = "ERR_DONATION_UNAVAILABLE"
    ERR_CONCURRENT_UPDATE = "ERR_CONCURRENT_UPDATE"

    # Infrastructure errors
    ERR_DISPATCH_FAILED = "ERR_DISPATCH_FAILED"
    ERR_STORE_FAILURE = "ERR_STORE_FAILURE"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


class FoodshareError(Exception):
    """Base class for domain errors surfaced to API callers."""

    code: str = ErrorCode.ERR_UNKNOWN
    status_code: int = 500
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    suggestion: str = "Please try again later."


class InvalidRequestError(FoodshareError):
    """Missing or malformed request fields. No mutation was performed."""

    code = ErrorCode.ERR_INVALID_REQUEST
    status_code = 400
    severity = ErrorSeverity.LOW
    suggestion = "Check the request fields and try again. Nothing was changed."


class DonationExpiredError(InvalidRequestError):
    """The donation's food has passed its expiry date."""

    code = ErrorCode.ERR_DONATION_EXPIRED
    suggestion = "Browse the listings for donations that are still fresh."


class NotFoundError(FoodshareError):
    """A referenced cart, donation or notification does not exist."""

    code = ErrorCode.ERR_NOT_FOUND
    status_code = 404
    severity = ErrorSeverity.LOW
    suggestion = "Refresh the listings and try again."


class ConflictError(FoodshareError):
    """The request conflicts with the current state of a record."""

    code = ErrorCode.ERR_CONFLICT
    status_code = 409
    severity = ErrorSeverity.LOW
    suggestion = "Refresh and try again."


class DuplicateCartItemError(ConflictError):
    """The donation is already in the user's cart."""

    code = ErrorCode.ERR_ALREADY_IN_CART
    suggestion = "The item is already in your cart. Open your cart to check out."


class DonationUnavailableError(ConflictError):
    """The donation has no servings left to claim."""

    code = ErrorCode.ERR_DONATION_UNAVAILABLE
    suggestion = "Someone else claimed the last servings. Browse other donations."


class ConcurrentUpdateError(ConflictError):
    """Optimistic concurrency retries were exhausted for a donation."""

    code = ErrorCode.ERR_CONCURRENT_UPDATE
    suggestion = "The donation is in high demand. Please try again."


class TransientDispatchError(FoodshareError):
    """A push notification could not be delivered. Never propagated past the dispatcher."""

    code = ErrorCode.ERR_DISPATCH_FAILED
    status_code = 502
    severity = ErrorSeverity.LOW


def classify_error_with_response(exception: Exception) -> ErrorResponse:
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised while handling a request

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    if isinstance(exception, FoodshareError):
        return ErrorResponse(
            code=exception.code,
            message=str(exception) or "The request could not be completed.",
            suggestion=exception.suggestion,
            severity=exception.severity,
        )

    if isinstance(exception, RecordNotFoundError):
        return ErrorResponse(
            code=ErrorCode.ERR_NOT_FOUND,
            message="The requested record was not found.",
            suggestion=NotFoundError.suggestion,
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, DatabaseError):
        return ErrorResponse(
            code=ErrorCode.ERR_STORE_FAILURE,
            message="A storage error occurred. Some changes may already have been applied.",
            suggestion="Refresh to see the current state before retrying.",
            severity=ErrorSeverity.HIGH,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, contact support.",
        severity=ErrorSeverity.MEDIUM,
    )


def http_status_for(exception: Exception) -> int:
    """Map an exception to the HTTP status code returned to the client."""
    if isinstance(exception, FoodshareError):
        return exception.status_code

    if isinstance(exception, RecordNotFoundError):
        return 404
    return 500
