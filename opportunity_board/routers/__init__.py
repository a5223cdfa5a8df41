"""API routers."""

from opportunity_board.routers.applications import router as applications_router
from opportunity_board.routers.jobs import router as jobs_router
from opportunity_board.routers.uploads import router as uploads_router

__all__ = ["applications_router", "jobs_router", "uploads_router"]
