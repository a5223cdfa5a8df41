"""API routes for application submissions."""

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from opportunity_board.core.config import Settings
from opportunity_board.core.exceptions import (
    InvalidPayloadError,
    RateLimitExceededError,
    error_response,
)
from opportunity_board.dependencies import (
    get_airtable_client,
    get_applications_rate_limiter,
    get_idempotency_coordinator,
    get_settings,
)
from opportunity_board.schemas.application import SubmitResponse
from opportunity_board.services.airtable_client import AirtableClient
from opportunity_board.services.application_service import create_application_service
from opportunity_board.services.idempotency import IdempotencyCoordinator
from opportunity_board.services.rate_limiter import RateLimiter, client_identifier
from opportunity_board.utils.validators import (
    resolve_idempotency_key,
    validate_application_payload,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["applications"])

CONTEXT = "/api/applications"
FALLBACK_MESSAGE = "Failed to submit application"
RATE_LIMIT_MESSAGE = "Too many requests. Please try again shortly."


async def read_json(request: Request):
    """Parse the request body, rejecting anything that is not JSON."""
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidPayloadError("Invalid JSON payload.")


@router.post("/applications", response_model=SubmitResponse)
async def submit_application(
    request: Request,
    limiter: RateLimiter = Depends(get_applications_rate_limiter),
    settings: Settings = Depends(get_settings),
    client: AirtableClient = Depends(get_airtable_client),
    coordinator: IdempotencyCoordinator = Depends(get_idempotency_coordinator),
):
    """Submit an application with its resume attachment."""
    try:
        decision = await limiter.check(client_identifier(request))
    except Exception as e:
        return error_response(e, context=CONTEXT, fallback_message=FALLBACK_MESSAGE)

    headers = decision.headers()
    if not decision.allowed:
        return error_response(
            RateLimitExceededError(RATE_LIMIT_MESSAGE, decision.retry_after),
            context=CONTEXT,
            fallback_message=RATE_LIMIT_MESSAGE,
            headers=headers,
        )

    try:
        payload = await read_json(request)
        idempotency_key = resolve_idempotency_key(
            request.headers.get("x-idempotency-key"), payload
        )
        submission = validate_application_payload(payload)

        service = create_application_service(client, coordinator, settings)
        result = await service.submit(submission, idempotency_key)
    except Exception as e:
        return error_response(
            e, context=CONTEXT, fallback_message=FALLBACK_MESSAGE, headers=headers
        )

    body = SubmitResponse(result=result)
    return JSONResponse(content=body.model_dump(by_alias=True), headers=headers)
