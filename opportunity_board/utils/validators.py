"""Validation of inbound application and upload payloads.

Everything that reaches the Airtable write path passes through here first.
Failures raise :class:`InvalidPayloadError` with a message naming the field,
and nothing in this module performs I/O.
"""

import base64
import binascii
import re
import unicodedata
from pathlib import PurePosixPath
from typing import Any

from opportunity_board.core.exceptions import (
    AbuseDetectedError,
    InvalidIdempotencyKeyError,
    InvalidPayloadError,
)
from opportunity_board.schemas.application import (
    APPLICATION_SOURCE,
    APPLICATION_STATUS,
    DEFAULT_CANDIDATE_STATUS,
    WHY_FIELD,
    ApplicationSubmission,
    AttachmentInput,
    PersonDetails,
    SubmissionAttachments,
)
from opportunity_board.schemas.upload import UploadPayload

WORD_LIMIT = 100
MAX_ATTACHMENT_BYTES = 5 * 1024 * 1024
MAX_BASE64_LENGTH = 20_000_000
MIN_FILL_TIME_MS = 1500

ALLOWED_EXTENSIONS = {".pdf", ".doc", ".docx", ".txt"}
ALLOWED_CONTENT_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
}

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")
_WHITESPACE_RE = re.compile(r"\s+")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_IDEMPOTENCY_KEY_RE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")
_DATA_URL_RE = re.compile(r"^data:([^;,]+)((?:;[^;,]*)*);base64,(.+)$", re.DOTALL)
_UNSAFE_FILENAME_RE = re.compile(r"[^\w.\-]+")

# (payload key, label, max length)
_REQUIRED_PERSON_FIELDS = (
    ("fullName", "Full Name", 160),
    ("emailAddress", "Email", 320),
    ("phoneNumber", "Phone", 64),
    ("age", "Age", 32),
    ("gender", "Gender", 64),
    ("countryOfOrigin", "Country of Origin", 120),
    ("countryOfLiving", "Current Country", 120),
    ("education", "Academic / Professional Education", 4000),
    ("profession", "Current Profession / Occupation", 4000),
    ("jamatiExperience", "Jamati Experience", 4000),
)
_WORD_LIMITED_FIELDS = ("education", "profession", "jamatiExperience")


def sanitize_text(value: str) -> str:
    """NFKC-normalize, replace control characters and collapse whitespace."""
    text = unicodedata.normalize("NFKC", value)
    text = _CONTROL_CHARS_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def count_words(text: str) -> int:
    return len(text.split())


def _require_object(value: Any, message: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise InvalidPayloadError(message)
    return value


def _require_string(value: Any, label: str, max_length: int = 512) -> str:
    if not isinstance(value, str):
        raise InvalidPayloadError(f"{label} is required.")
    text = sanitize_text(value)
    if not text:
        raise InvalidPayloadError(f"{label} is required.")
    if len(text) > max_length:
        raise InvalidPayloadError(f"{label} is too long.")
    return text


def _optional_string(value: Any, max_length: int = 512) -> str | None:
    if not isinstance(value, str):
        return None
    text = sanitize_text(value)
    if not text:
        return None
    return text[:max_length]


def _enforce_word_limit(text: str, label: str) -> None:
    if count_words(text) > WORD_LIMIT:
        raise InvalidPayloadError(f"{label} must be {WORD_LIMIT} words or fewer.")


def normalize_email(email: str) -> str:
    normalized = sanitize_text(email).lower()
    if not _EMAIL_RE.match(normalized):
        raise InvalidPayloadError("Email format is invalid.")
    return normalized


def normalize_content_type(value: str) -> str:
    return value.lower().split(";")[0].strip()


def file_extension(filename: str) -> str:
    return PurePosixPath(filename).suffix.lower()


def decoded_size(payload: str, label: str = "CV / Resume") -> int:
    """Byte length of a base64 payload, rejecting anything undecodable."""
    compact = "".join(payload.split())
    try:
        size = len(base64.b64decode(compact, validate=True))
    except (binascii.Error, ValueError):
        raise InvalidPayloadError(f"{label} payload is invalid.")
    if size <= 0:
        raise InvalidPayloadError(f"{label} payload is invalid.")
    if size > MAX_ATTACHMENT_BYTES:
        raise InvalidPayloadError(f"{label} must be 5MB or smaller.")
    return size


def _check_file_type(filename: str, content_type: str, label: str) -> str:
    if file_extension(filename) not in ALLOWED_EXTENSIONS:
        raise InvalidPayloadError(f"{label} file type is not allowed.")
    normalized = normalize_content_type(content_type)
    if normalized not in ALLOWED_CONTENT_TYPES:
        raise InvalidPayloadError(f"{label} content type is not allowed.")
    return normalized


def validate_attachment(value: Any) -> AttachmentInput:
    record = _require_object(value, "CV / Resume attachment is required.")
    filename = _require_string(record.get("filename"), "CV / Resume filename", 255)
    content_type = _require_string(
        record.get("contentType"), "CV / Resume content type", 255
    )
    if not isinstance(record.get("base64"), str) or not record["base64"].strip():
        raise InvalidPayloadError("CV / Resume payload is required.")
    payload = "".join(record["base64"].split())
    if len(payload) > MAX_BASE64_LENGTH:
        raise InvalidPayloadError("CV / Resume payload is too long.")

    if "/" in filename or "\\" in filename:
        raise InvalidPayloadError("CV / Resume filename is invalid.")

    content_type = _check_file_type(filename, content_type, "CV / Resume")
    size = decoded_size(payload)

    return AttachmentInput(
        filename=filename,
        content_type=content_type,
        base64=payload,
        size_bytes=size,
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def check_bot_signals(payload: dict[str, Any]) -> None:
    """Reject honeypot hits and forms submitted faster than a person could."""
    meta = payload.get("meta")
    if not isinstance(meta, dict):
        return

    website = meta.get("website")
    if isinstance(website, str) and website.strip():
        raise AbuseDetectedError("Automated submission detected.")

    started = meta.get("formStartedAt")
    submitted = meta.get("submittedAt")
    if _is_number(started) and _is_number(submitted):
        elapsed_ms = submitted - started
        if 0 <= elapsed_ms < MIN_FILL_TIME_MS:
            raise AbuseDetectedError("Please wait a moment before submitting.")


def validate_application_payload(payload: Any) -> ApplicationSubmission:
    """Turn an untyped JSON body into an :class:`ApplicationSubmission`."""
    body = _require_object(payload, "Invalid application payload.")
    check_bot_signals(body)

    person_raw = _require_object(body.get("person"), "Person details are required.")
    fields: dict[str, str] = {}
    for key, label, max_length in _REQUIRED_PERSON_FIELDS:
        fields[key] = _require_string(person_raw.get(key), label, max_length)

    normalized_email = normalize_email(fields["emailAddress"])
    for key, label, _ in _REQUIRED_PERSON_FIELDS:
        if key in _WORD_LIMITED_FIELDS:
            _enforce_word_limit(fields[key], label)

    extras_raw = _require_object(
        body.get("extras"), "Application details are required."
    )
    why_text = _require_string(extras_raw.get(WHY_FIELD), WHY_FIELD, 4000)
    _enforce_word_limit(why_text, WHY_FIELD)

    attachments_raw = _require_object(
        body.get("attachments"), "CV / Resume attachment is required."
    )
    cv_resume = validate_attachment(attachments_raw.get("cvResume"))

    person = PersonDetails(
        full_name=fields["fullName"],
        email_address=fields["emailAddress"],
        normalized_email=normalized_email,
        phone_number=fields["phoneNumber"],
        age=fields["age"],
        gender=fields["gender"],
        country_of_origin=fields["countryOfOrigin"],
        country_of_living=fields["countryOfLiving"],
        education=fields["education"],
        profession=fields["profession"],
        jamati_experience=fields["jamatiExperience"],
        linked_in=_optional_string(person_raw.get("linkedIn"), 512),
        jurisdiction=_optional_string(person_raw.get("jurisdiction"), 120),
        candidate_status=_optional_string(person_raw.get("candidateStatus"), 128)
        or DEFAULT_CANDIDATE_STATUS,
    )

    # Status and Source are always ours, whatever the client sent.
    extras = {
        "Status": APPLICATION_STATUS,
        "Source": APPLICATION_SOURCE,
        WHY_FIELD: why_text,
    }

    return ApplicationSubmission(
        person=person,
        job_id=_optional_string(body.get("jobId"), 128),
        job_title=_optional_string(body.get("jobTitle"), 256),
        extras=extras,
        attachments=SubmissionAttachments(cv_resume=cv_resume),
    )


def validate_idempotency_key(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidIdempotencyKeyError("Idempotency key must be a string.")
    key = sanitize_text(value)
    if not key:
        return None
    if not _IDEMPOTENCY_KEY_RE.match(key):
        raise InvalidIdempotencyKeyError("Idempotency key format is invalid.")
    return key


def resolve_idempotency_key(header_value: str | None, payload: Any) -> str | None:
    """Pick the idempotency key: header first, then ``idempotencyKey`` in the body."""
    if header_value is not None and header_value.strip():
        return validate_idempotency_key(header_value)
    if isinstance(payload, dict):
        return validate_idempotency_key(payload.get("idempotencyKey"))
    return None


def sanitize_filename(filename: str) -> str:
    return _UNSAFE_FILENAME_RE.sub("_", filename)


def validate_upload_payload(payload: Any) -> UploadPayload:
    """Validate a ``{filename, dataUrl}`` body for the local upload sidecar."""
    body = _require_object(payload, "Invalid upload payload.")
    filename = _require_string(body.get("filename"), "Filename", 255)
    data_url = body.get("dataUrl")
    if not isinstance(data_url, str):
        raise InvalidPayloadError("Invalid data URL.")
    match = _DATA_URL_RE.match(data_url.strip())
    if match is None:
        raise InvalidPayloadError("Invalid data URL.")

    mime_type = _check_file_type(filename, match.group(1), "File")
    payload_b64 = "".join(match.group(3).split())
    if len(payload_b64) > MAX_BASE64_LENGTH:
        raise InvalidPayloadError("File payload is too long.")
    decoded_size(payload_b64, "File")

    return UploadPayload(filename=filename, mime_type=mime_type, base64=payload_b64)
