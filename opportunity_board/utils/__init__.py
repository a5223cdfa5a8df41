"""Utility functions."""

from opportunity_board.utils.validators import (
    resolve_idempotency_key,
    validate_application_payload,
    validate_idempotency_key,
    validate_upload_payload,
)

__all__ = [
    "resolve_idempotency_key",
    "validate_application_payload",
    "validate_idempotency_key",
    "validate_upload_payload",
]
