"""Schemas for application submissions and responses."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_CANDIDATE_STATUS = "1a - Applicant"
APPLICATION_STATUS = "1a - Applicant"
APPLICATION_SOURCE = "Opportunity Board"
WHY_FIELD = "Why are you interested in or qualified for this job?"


class CamelModel(BaseModel):
    """Base model serialized with the camelCase keys the frontend uses."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class PersonDetails(CamelModel):
    """Applicant details after sanitization."""

    full_name: str
    email_address: str
    normalized_email: str
    phone_number: str
    age: str
    gender: str
    country_of_origin: str
    country_of_living: str
    education: str
    profession: str
    jamati_experience: str
    linked_in: str | None = None
    jurisdiction: str | None = None
    candidate_status: str = DEFAULT_CANDIDATE_STATUS


class AttachmentInput(CamelModel):
    """A resume file carried inline as base64."""

    filename: str
    content_type: str
    base64: str
    size_bytes: int = Field(..., gt=0, exclude=True)


class SubmissionAttachments(CamelModel):
    cv_resume: AttachmentInput


class ApplicationSubmission(CamelModel):
    """A fully validated application request, ready for the write path."""

    person: PersonDetails
    job_id: str | None = None
    job_title: str | None = None
    extras: dict[str, str]
    attachments: SubmissionAttachments


class SubmissionResult(CamelModel):
    """Records produced (or found) for one submission."""

    person_record_id: str
    application_record: dict[str, Any]


class SubmitResponse(CamelModel):
    """Response for a successful submission."""

    ok: bool = True
    result: SubmissionResult


class ErrorResponse(BaseModel):
    """Client-facing error body."""

    error: str
