"""Async client for the Airtable REST and content APIs."""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from opportunity_board.core.config import Settings
from opportunity_board.core.exceptions import (
    AirtableAPIError,
    UnknownFieldError,
    is_unknown_field_error,
    parse_unknown_field,
)

logger = logging.getLogger(__name__)


def escape_formula_value(value: str) -> str:
    """Escape a value for use inside a single-quoted formula literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class AirtableClient:
    """Airtable API client.

    Every method raises :class:`AirtableAPIError` on non-2xx responses,
    timeouts and connection failures. Write errors naming an unknown field
    raise :class:`UnknownFieldError` instead.
    """

    API_BASE = "https://api.airtable.com/v0"
    CONTENT_BASE = "https://content.airtable.com/v0"

    def __init__(
        self,
        token: str,
        base_id: str,
        *,
        api_base: str = API_BASE,
        content_base: str = CONTENT_BASE,
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_id = base_id
        self.api_base = api_base.rstrip("/")
        self.content_base = content_base.rstrip("/")
        self.client = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {token}"},
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "AirtableClient":
        return cls(
            settings.airtable_token,
            settings.airtable_base_id,
            api_base=settings.airtable_api_url,
            content_base=settings.airtable_content_url,
            timeout=settings.airtable_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        await self.client.aclose()

    def table_url(self, table: str) -> str:
        return f"{self.api_base}/{self.base_id}/{quote(table, safe='')}"

    async def _request(
        self, method: str, url: str, operation: str, **kwargs
    ) -> dict[str, Any]:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"Airtable {operation} timed out: {e!s}")
            raise AirtableAPIError(504, f"Timed out: {e!s}", operation)
        except httpx.RequestError as e:
            logger.error(f"Airtable {operation} network error: {e!s}")
            raise AirtableAPIError(503, f"Network error: {e!s}", operation)

        if response.is_error:
            detail = response.text[:2000]
            if is_unknown_field_error(detail):
                raise UnknownFieldError(
                    response.status_code,
                    detail,
                    operation,
                    field_name=parse_unknown_field(detail),
                )
            raise AirtableAPIError(response.status_code, detail, operation)

        try:
            return response.json()
        except ValueError as e:
            raise AirtableAPIError(
                response.status_code, f"Invalid JSON response: {e!s}", operation
            )

    async def list_records(
        self,
        table: str,
        *,
        formula: str | None = None,
        view: str | None = None,
        max_records: int | None = None,
        page_size: int | None = None,
        offset: str | None = None,
    ) -> dict[str, Any]:
        """Fetch one page of records."""
        params: dict[str, Any] = {}
        if formula:
            params["filterByFormula"] = formula
        if view:
            params["view"] = view
        if max_records:
            params["maxRecords"] = max_records
        if page_size:
            params["pageSize"] = min(page_size, 100)
        if offset:
            params["offset"] = offset

        return await self._request(
            "GET", self.table_url(table), f"{table} query", params=params
        )

    async def list_all_records(
        self, table: str, *, view: str | None = None, formula: str | None = None
    ) -> list[dict[str, Any]]:
        """Fetch every page of records, following Airtable's offset cursor."""
        records: list[dict[str, Any]] = []
        offset = None
        while True:
            page = await self.list_records(
                table, view=view, formula=formula, page_size=100, offset=offset
            )
            records.extend(page.get("records", []))
            offset = page.get("offset")
            if not offset:
                return records

    async def find_first(self, table: str, formula: str) -> dict[str, Any] | None:
        page = await self.list_records(table, formula=formula, max_records=1)
        records = page.get("records") or []
        return records[0] if records else None

    async def get_record(self, table: str, record_id: str) -> dict[str, Any]:
        return await self._request(
            "GET", f"{self.table_url(table)}/{record_id}", f"{table} read"
        )

    async def create_record(
        self, table: str, fields: dict[str, Any]
    ) -> dict[str, Any] | None:
        data = await self._request(
            "POST",
            self.table_url(table),
            f"{table} create",
            json={"records": [{"fields": fields}]},
        )
        records = data.get("records") or []
        return records[0] if records else None

    async def update_record(
        self, table: str, record_id: str, fields: dict[str, Any]
    ) -> dict[str, Any] | None:
        data = await self._request(
            "PATCH",
            self.table_url(table),
            f"{table} update",
            json={"records": [{"id": record_id, "fields": fields}]},
        )
        records = data.get("records") or []
        return records[0] if records else None

    async def upload_attachment(
        self,
        record_id: str,
        field_name: str,
        *,
        content_type: str,
        file_base64: str,
        filename: str,
    ) -> dict[str, Any]:
        url = (
            f"{self.content_base}/{self.base_id}/{record_id}/"
            f"{quote(field_name, safe='')}/uploadAttachment"
        )
        return await self._request(
            "POST",
            url,
            "attachment upload",
            json={
                "contentType": content_type,
                "file": file_base64,
                "filename": filename,
            },
        )
