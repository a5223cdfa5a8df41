"""Application services."""

from opportunity_board.services.application_service import (
    ApplicationService,
    create_application_service,
)

__all__ = ["ApplicationService", "create_application_service"]
