"""Creates application records while tolerating drift in the table schema.

Column names in the Applications table are configured in Airtable, not
here, so the writer works through an ordered list of candidate layouts.
When Airtable names an unknown field, that field is dropped and the write
is retried.
"""

import itertools
import logging
from dataclasses import dataclass
from typing import Any

from opportunity_board.core.exceptions import AirtableAPIError, UnknownFieldError
from opportunity_board.services.airtable_client import (
    AirtableClient,
    escape_formula_value,
)

logger = logging.getLogger(__name__)

PERSON_FIELD_FALLBACKS = ("People",)
JOB_LINK_FIELDS = ("GE Roles",)
IDEMPOTENCY_FIELD_FALLBACKS = ("Idempotency Key", "Idempotency key", "idempotency_key")


@dataclass(frozen=True)
class WriteAttempt:
    """One combination of link and key column names to try."""

    person_field: str
    job_field: str | None = None
    idempotency_field: str | None = None

    @property
    def link_fields(self) -> set[str]:
        return {
            name
            for name in (self.person_field, self.job_field, self.idempotency_field)
            if name
        }


@dataclass
class WrittenApplication:
    record: dict[str, Any]
    created: bool


def _unique(names) -> list[str]:
    seen: list[str] = []
    for name in names:
        if name and name not in seen:
            seen.append(name)
    return seen


class ApplicationWriter:
    """Writes application records linked to a person and, optionally, a role."""

    def __init__(
        self,
        client: AirtableClient,
        table: str,
        person_field: str = "Person",
        idempotency_field: str | None = None,
    ):
        self.client = client
        self.table = table
        self.person_fields = _unique([person_field, *PERSON_FIELD_FALLBACKS])
        self.idempotency_fields = _unique(
            [idempotency_field, *IDEMPOTENCY_FIELD_FALLBACKS]
        )

    def attempts(self, has_job: bool, has_key: bool) -> list[WriteAttempt]:
        """Candidate layouts in the order they are tried."""
        job_options = [*JOB_LINK_FIELDS, None] if has_job else [None]
        key_options = [*self.idempotency_fields, None] if has_key else [None]
        return [
            WriteAttempt(person, job, key)
            for person, job, key in itertools.product(
                self.person_fields, job_options, key_options
            )
        ]

    async def find_by_idempotency_key(self, key: str) -> dict[str, Any] | None:
        """Look for an application already written under ``key``.

        A 422 from the query means the column does not exist under that
        name, so the next candidate is tried. Any other failure propagates
        rather than risk writing a duplicate.
        """
        literal = escape_formula_value(key)
        for field in self.idempotency_fields:
            try:
                record = await self.client.find_first(
                    self.table, f"({{{field}}} = '{literal}')"
                )
            except AirtableAPIError as e:
                if e.upstream_status != 422:
                    raise
                logger.debug(f"Idempotency lookup on {field!r} failed: {e}")
                continue
            if record:
                return record
        return None

    async def create(
        self,
        person_id: str,
        job_id: str | None = None,
        extra_fields: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> WrittenApplication:
        if idempotency_key:
            existing = await self.find_by_idempotency_key(idempotency_key)
            if existing:
                logger.info(
                    f"Application {existing.get('id')} already exists for "
                    f"idempotency key {idempotency_key}"
                )
                return WrittenApplication(record=existing, created=False)

        base_fields = {
            name: value
            for name, value in (extra_fields or {}).items()
            if value is not None and not (isinstance(value, str) and not value.strip())
        }
        has_job = bool(job_id and job_id.strip())
        removed: set[str] = set()
        last_error: AirtableAPIError | None = None

        for attempt in self.attempts(has_job, bool(idempotency_key)):
            if attempt.link_fields & removed:
                continue
            fields = dict(base_fields)
            fields[attempt.person_field] = [person_id]
            if attempt.job_field:
                fields[attempt.job_field] = [job_id]
            if attempt.idempotency_field:
                fields[attempt.idempotency_field] = idempotency_key

            record, error = await self._write_narrowing(attempt, fields, removed)
            if record is not None:
                return WrittenApplication(record=record, created=True)
            last_error = error

        logger.error(f"Every field layout for {self.table} was rejected")
        if last_error is None:
            raise AirtableAPIError(
                422, "No field layout accepted", f"{self.table} create"
            )
        raise last_error

    async def _write_narrowing(
        self, attempt: WriteAttempt, fields: dict[str, Any], removed: set[str]
    ) -> tuple[dict[str, Any] | None, UnknownFieldError | None]:
        """Write ``fields`` for one attempt, dropping unknown optional fields.

        Returns ``(record, None)`` on success, or ``(None, error)`` once the
        attempt cannot continue because a link column is unknown or Airtable
        did not say which field it rejected.
        """
        for name in removed:
            fields.pop(name, None)

        while True:
            try:
                record = await self.client.create_record(self.table, fields)
            except UnknownFieldError as e:
                unknown = e.field_name
                if unknown:
                    removed.add(unknown)
                if not unknown or unknown not in fields:
                    return None, e
                if unknown in attempt.link_fields:
                    logger.warning(f"Field {unknown!r} unknown, trying next layout")
                    return None, e
                logger.warning(f"Field {unknown!r} unknown, retrying without it")
                fields.pop(unknown)
                continue

            if record is None:
                raise AirtableAPIError(
                    502, "No record returned", f"{self.table} create"
                )
            logger.info(
                f"Created application {record.get('id')} via {attempt.person_field!r}"
            )
            return record, None
