"""Opportunity Board - job listings and applications backed by Airtable."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from opportunity_board.core.config import settings
from opportunity_board.dependencies import close_shared_state
from opportunity_board.routers import applications_router, jobs_router, uploads_router

log_level = settings.log_level.upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(f"Starting with {settings.state_backend} state backend")
    missing = settings.missing_airtable_settings("jobs", "people", "applications")
    if missing:
        logger.warning(f"Airtable is not fully configured, missing: {missing}")

    yield

    logger.info("Shutting down...")
    await close_shared_state()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Opportunity Board",
    description="Job listings and applications backed by Airtable",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(jobs_router)
app.include_router(applications_router)
app.include_router(uploads_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "opportunity-board",
    }
