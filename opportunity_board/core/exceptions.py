"""Custom exceptions for the application."""

import logging
import re

from fastapi import status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

_UNKNOWN_FIELD_RE = re.compile(
    r'Unknown field name:\s*\\?"([^"\\]+)\\?"', re.IGNORECASE
)


class BoardError(Exception):
    """Base exception for opportunity board errors.

    ``expose`` marks messages that are safe to return to the client as-is.
    Everything else is replaced by the endpoint's fallback message.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    expose: bool = False

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        expose: bool | None = None,
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if expose is not None:
            self.expose = expose
        super().__init__(self.message)


class InvalidPayloadError(BoardError):
    """Raised when an inbound payload fails validation."""

    status_code = status.HTTP_400_BAD_REQUEST
    expose = True


class AbuseDetectedError(InvalidPayloadError):
    """Raised when a submission trips the bot heuristics."""


class InvalidIdempotencyKeyError(InvalidPayloadError):
    """Raised when an idempotency key is not a safe token."""


class RateLimitExceededError(BoardError):
    """Raised when a client has used up its request window."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    expose = True

    def __init__(self, message: str, retry_after: int):
        self.retry_after = retry_after
        super().__init__(message)


class ConfigurationError(BoardError):
    """Raised when required settings are missing."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(
            f"Missing Airtable env vars: {', '.join(missing) or 'unknown'}"
        )


class AirtableAPIError(BoardError):
    """Raised when an Airtable request fails."""

    def __init__(self, status_code: int, detail: str, operation: str = "request"):
        self.upstream_status = status_code
        self.detail = detail
        self.operation = operation
        super().__init__(f"Airtable {operation} failed ({status_code}): {detail}")


class UnknownFieldError(AirtableAPIError):
    """Raised when Airtable rejects a write naming a field it does not know."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        operation: str = "request",
        field_name: str | None = None,
    ):
        self.field_name = field_name
        super().__init__(status_code, detail, operation)


class AttachmentUploadError(AirtableAPIError):
    """Raised when the content API response does not describe an attachment."""


def parse_unknown_field(detail: str) -> str | None:
    """Extract the field name from an Airtable unknown-field error body."""
    match = _UNKNOWN_FIELD_RE.search(detail or "")
    return match.group(1) if match else None


def is_unknown_field_error(detail: str) -> bool:
    if not detail:
        return False
    return "UNKNOWN_FIELD_NAME" in detail or parse_unknown_field(detail) is not None


def error_response(
    exc: Exception,
    *,
    context: str,
    fallback_message: str,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Log an error and render the client-facing ``{"error": ...}`` body."""
    if isinstance(exc, BoardError):
        status_code = exc.status_code
        message = exc.message if exc.expose else fallback_message
    else:
        message = fallback_message

    if status_code >= 500:
        logger.error(f"Error in {context}: {exc}", exc_info=exc)
    else:
        logger.warning(f"Rejected request to {context}: {exc}")

    return JSONResponse(
        status_code=status_code,
        content={"error": message},
        headers=headers,
    )
