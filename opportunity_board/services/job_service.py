"""Job listing read path."""

import logging
from typing import Any

from opportunity_board.core.config import Settings
from opportunity_board.core.exceptions import ConfigurationError
from opportunity_board.schemas.jobs import Job
from opportunity_board.services.airtable_client import AirtableClient
from opportunity_board.utils.formatting import (
    as_optional_text,
    as_string_list,
    bucket_from_months,
    parse_duration_months,
    split_bullets,
)

logger = logging.getLogger(__name__)


def _text(fields: dict[str, Any], name: str) -> str | None:
    value = fields.get(name)
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def normalize_job(record: dict[str, Any]) -> Job:
    """Map a roles table record to a :class:`Job`."""
    fields = record.get("fields") or {}
    duration_months = parse_duration_months(fields.get("Duration (Months)"))
    duration_category = as_optional_text(
        fields.get("Duration Categories")
    ) or bucket_from_months(duration_months)

    return Job(
        id=record["id"],
        role_title=_text(fields, "Role Title") or "",
        role_status=_text(fields, "Displayed Status"),
        programme_area=_text(fields, "Programme / Functional Area"),
        team_vertical=_text(fields, "Team/Vertical"),
        location_base=_text(fields, "Location / Base"),
        work_type=_text(fields, "Work Type"),
        role_type=_text(fields, "Role Type"),
        start_date=_text(fields, "Start Date"),
        duration_months=duration_months,
        duration_category=duration_category,
        purpose_short=_text(fields, "Purpose of the Role copy"),
        key_responsibilities=split_bullets(fields.get("Key Responsibilities")),
        required_qualifications=as_string_list(
            fields.get("10. Required Qualifications")
        ),
        other_qualifications=as_optional_text(fields.get("Other")),
        preferred_qualifications=as_string_list(
            fields.get("Preferred Qualifications")
        ),
        additional_qualifications=as_optional_text(
            fields.get("Additional Skill Notes")
        ),
        time_commitment=_text(fields, "Estimated Time Commitment copy"),
        languages_required=as_string_list(fields.get("Languages Required")),
        other_languages=_text(fields, "OTHER LANGUAGES"),
    )


class JobService:
    """Reads open roles from the roles table."""

    def __init__(self, client: AirtableClient, table: str, view: str | None = None):
        self.client = client
        self.table = table
        self.view = view

    async def list_jobs(self) -> list[Job]:
        records = await self.client.list_all_records(self.table, view=self.view)
        jobs = []
        for record in records:
            if not record.get("id"):
                logger.warning("Skipping role record without id")
                continue
            jobs.append(normalize_job(record))
        logger.info(f"Loaded {len(jobs)} roles from {self.table}")
        return jobs


def create_job_service(client: AirtableClient, settings: Settings) -> JobService:
    missing = settings.missing_airtable_settings("jobs")
    if missing:
        raise ConfigurationError(missing)
    return JobService(
        client, settings.airtable_jobs_table, view=settings.airtable_jobs_view
    )
