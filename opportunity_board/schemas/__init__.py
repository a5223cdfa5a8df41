"""Pydantic schemas for request/response validation."""

from opportunity_board.schemas.application import (
    ApplicationSubmission,
    AttachmentInput,
    PersonDetails,
    SubmissionResult,
    SubmitResponse,
)
from opportunity_board.schemas.jobs import Job, JobsResponse
from opportunity_board.schemas.upload import UploadPayload, UploadResponse

__all__ = [
    "ApplicationSubmission",
    "AttachmentInput",
    "Job",
    "JobsResponse",
    "PersonDetails",
    "SubmissionResult",
    "SubmitResponse",
    "UploadPayload",
    "UploadResponse",
]
