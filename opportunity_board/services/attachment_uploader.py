"""Resume upload through the Airtable content API."""

import logging
from typing import Any

from opportunity_board.core.exceptions import AirtableAPIError, AttachmentUploadError
from opportunity_board.schemas.application import AttachmentInput
from opportunity_board.services.airtable_client import AirtableClient

logger = logging.getLogger(__name__)


def _is_attachment_list(value: Any) -> bool:
    return isinstance(value, list) and bool(value) and isinstance(value[0], dict)


def extract_attachment(data: Any, field_name: str) -> dict[str, Any]:
    """Pick the uploaded attachment out of a content API response.

    The response is either ``{"attachment": {...}}``, a bare attachment, or
    a record whose ``fields`` hold the attachment list, keyed by the field
    name or by a field id we cannot predict.
    """
    if not isinstance(data, dict):
        raise AttachmentUploadError(
            502, "Unexpected response body", "attachment upload"
        )

    chosen = data["attachment"] if isinstance(data.get("attachment"), dict) else data
    fields = data.get("fields")
    if isinstance(fields, dict):
        # Newly uploaded files are appended, so the last entry is ours.
        target = fields.get(field_name)
        if _is_attachment_list(target):
            chosen = target[-1]
        else:
            for value in fields.values():
                if _is_attachment_list(value) and "url" in value[-1]:
                    chosen = value[-1]
                    break

    url = chosen.get("url")
    if not isinstance(url, str) or not url:
        keys = ",".join(chosen.keys())
        field_keys = ",".join(fields.keys()) if isinstance(fields, dict) else ""
        raise AttachmentUploadError(
            502,
            "Attachment upload response missing url "
            f"(keys: {keys}; fieldKeys: {field_keys})",
            "attachment upload",
        )
    return chosen


def as_patch_item(value: Any) -> dict[str, str] | None:
    """Reduce an attachment object to the shape Airtable accepts on PATCH."""
    if not isinstance(value, dict):
        return None
    attachment_id = value.get("id")
    if isinstance(attachment_id, str) and attachment_id.strip():
        return {"id": attachment_id}
    url = value.get("url")
    if isinstance(url, str) and url.strip():
        item = {"url": url}
        filename = value.get("filename")
        if isinstance(filename, str) and filename.strip():
            item["filename"] = filename
        return item
    return None


class AttachmentUploader:
    """Uploads files into an attachment field and links them back additively."""

    def __init__(self, client: AirtableClient, table: str):
        self.client = client
        self.table = table

    async def upload(
        self, record_id: str, field_name: str, attachment: AttachmentInput
    ) -> dict[str, Any]:
        data = await self.client.upload_attachment(
            record_id,
            field_name,
            content_type=attachment.content_type,
            file_base64=attachment.base64,
            filename=attachment.filename,
        )
        descriptor = extract_attachment(data, field_name)
        logger.info(f"Uploaded {attachment.filename} to record {record_id}")
        return descriptor

    async def link(
        self, record_id: str, field_name: str, descriptor: dict[str, Any]
    ) -> bool:
        """Append ``descriptor`` to the record's attachment field.

        The upload has already stored the file, so failures here are logged
        and reported as ``False`` rather than raised.
        """
        try:
            record = await self.client.get_record(self.table, record_id)
            current = (record.get("fields") or {}).get(field_name)
            if not isinstance(current, list):
                current = []
            items = [item for item in map(as_patch_item, current) if item]
            uploaded = as_patch_item(descriptor)
            if uploaded and uploaded not in items:
                items.append(uploaded)
            if not items:
                return True

            await self.client.update_record(
                self.table, record_id, {field_name: items}
            )
            return True
        except AirtableAPIError as e:
            logger.warning(f"Airtable attachment patch warning for {record_id}: {e}")
            return False
