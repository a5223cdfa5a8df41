"""Core application components."""

from opportunity_board.core.config import Settings, settings
from opportunity_board.core.exceptions import (
    AirtableAPIError,
    BoardError,
    InvalidPayloadError,
)

__all__ = [
    "AirtableAPIError",
    "BoardError",
    "InvalidPayloadError",
    "Settings",
    "settings",
]
