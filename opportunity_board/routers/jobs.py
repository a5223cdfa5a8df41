"""API routes for the job listing."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from opportunity_board.core.config import Settings
from opportunity_board.core.exceptions import ConfigurationError, error_response
from opportunity_board.dependencies import get_airtable_client, get_settings
from opportunity_board.schemas.jobs import JobsResponse
from opportunity_board.services.airtable_client import AirtableClient
from opportunity_board.services.job_service import create_job_service

router = APIRouter(prefix="/api", tags=["jobs"])

CONTEXT = "/api/jobs"


@router.get("/jobs", response_model=JobsResponse)
async def list_jobs(
    settings: Settings = Depends(get_settings),
    client: AirtableClient = Depends(get_airtable_client),
):
    """List open roles from the roles table."""
    try:
        service = create_job_service(client, settings)
        jobs = await service.list_jobs()
    except ConfigurationError as e:
        return error_response(e, context=CONTEXT, fallback_message=e.message)
    except Exception as e:
        return error_response(
            e, context=CONTEXT, fallback_message="Airtable request failed"
        )

    return JSONResponse(content=JobsResponse(jobs=jobs).model_dump(by_alias=True))
