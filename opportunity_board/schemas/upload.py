"""Schemas for the local upload sidecar."""

from opportunity_board.schemas.application import CamelModel


class UploadPayload(CamelModel):
    """A decoded ``{filename, dataUrl}`` upload body."""

    filename: str
    mime_type: str
    base64: str


class UploadResponse(CamelModel):
    url: str
    filename: str
    mime_type: str
