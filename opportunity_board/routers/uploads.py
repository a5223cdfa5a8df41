"""Local upload sidecar routes."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from opportunity_board.core.config import Settings
from opportunity_board.core.exceptions import RateLimitExceededError, error_response
from opportunity_board.dependencies import (
    get_settings,
    get_upload_rate_limiter,
    get_upload_storage,
)
from opportunity_board.routers.applications import read_json
from opportunity_board.schemas.upload import UploadResponse
from opportunity_board.services.local_storage import (
    InvalidPathError,
    LocalUploadStorage,
)
from opportunity_board.services.rate_limiter import RateLimiter, client_identifier
from opportunity_board.utils.validators import validate_upload_payload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"])

CONTEXT = "/api/upload"
RATE_LIMIT_MESSAGE = "Too many upload attempts. Please try again shortly."


def public_base_url(request: Request, settings: Settings) -> str:
    if settings.site_url:
        return settings.site_url.rstrip("/")
    host = request.headers.get("host")
    if not host:
        return ""
    protocol = request.headers.get("x-forwarded-proto") or request.url.scheme
    return f"{protocol}://{host}"


@router.post("/api/upload", response_model=UploadResponse)
async def upload_file(
    request: Request,
    limiter: RateLimiter = Depends(get_upload_rate_limiter),
    storage: LocalUploadStorage = Depends(get_upload_storage),
    settings: Settings = Depends(get_settings),
):
    """Store a data-URL encoded file locally and return its public URL."""
    try:
        decision = await limiter.check(client_identifier(request))
    except Exception as e:
        return error_response(e, context=CONTEXT, fallback_message="Upload failed")

    headers = decision.headers()
    if not decision.allowed:
        return error_response(
            RateLimitExceededError(RATE_LIMIT_MESSAGE, decision.retry_after),
            context=CONTEXT,
            fallback_message="Rate limit exceeded",
            headers=headers,
        )

    try:
        upload = validate_upload_payload(await read_json(request))
        stored_name = await storage.save(upload.filename, upload.base64)
    except Exception as e:
        return error_response(
            e, context=CONTEXT, fallback_message="Upload failed", headers=headers
        )

    body = UploadResponse(
        url=f"{public_base_url(request, settings)}/uploads/{stored_name}",
        filename=stored_name,
        mime_type=upload.mime_type,
    )
    return JSONResponse(content=body.model_dump(by_alias=True), headers=headers)


@router.get("/uploads/{file_path:path}")
async def get_uploaded_file(
    file_path: str,
    storage: LocalUploadStorage = Depends(get_upload_storage),
):
    """Serve a previously uploaded file."""
    try:
        data = await storage.read(file_path)
    except InvalidPathError:
        logger.warning(f"Rejected upload path {file_path!r}")
        return JSONResponse(status_code=400, content={"error": "Invalid path"})
    except OSError:
        return JSONResponse(status_code=404, content={"error": "File not found"})

    return Response(
        content=data,
        media_type=storage.content_type(file_path),
        headers={"Cache-Control": "public, max-age=3600"},
    )
