"""Application submission pipeline."""

import logging

from opportunity_board.core.config import Settings
from opportunity_board.core.exceptions import ConfigurationError
from opportunity_board.schemas.application import (
    ApplicationSubmission,
    SubmissionResult,
)
from opportunity_board.services.airtable_client import AirtableClient
from opportunity_board.services.application_writer import ApplicationWriter
from opportunity_board.services.attachment_uploader import AttachmentUploader
from opportunity_board.services.idempotency import IdempotencyCoordinator
from opportunity_board.services.person_resolver import PersonResolver

logger = logging.getLogger(__name__)


class ApplicationService:
    """Turns a validated submission into People and Applications records."""

    def __init__(
        self,
        person_resolver: PersonResolver,
        writer: ApplicationWriter,
        uploader: AttachmentUploader,
        coordinator: IdempotencyCoordinator[SubmissionResult],
        attachment_field: str = "CV / Resume",
    ):
        self.person_resolver = person_resolver
        self.writer = writer
        self.uploader = uploader
        self.coordinator = coordinator
        self.attachment_field = attachment_field

    async def submit(
        self, submission: ApplicationSubmission, idempotency_key: str | None = None
    ) -> SubmissionResult:
        """Submit once per idempotency key; repeats get the first result."""
        return await self.coordinator.run(
            idempotency_key, lambda: self._write(submission, idempotency_key)
        )

    async def _write(
        self, submission: ApplicationSubmission, idempotency_key: str | None
    ) -> SubmissionResult:
        person_id = await self.person_resolver.resolve(submission.person)

        written = await self.writer.create(
            person_id,
            job_id=submission.job_id,
            extra_fields=submission.extras,
            idempotency_key=idempotency_key,
        )
        record = written.record

        # A reused record only needs the upload if an earlier attempt died
        # before attaching the resume.
        attached = (record.get("fields") or {}).get(self.attachment_field)
        if written.created or not attached:
            cv_resume = submission.attachments.cv_resume
            descriptor = await self.uploader.upload(
                record["id"], self.attachment_field, cv_resume
            )
            await self.uploader.link(record["id"], self.attachment_field, descriptor)
        else:
            logger.info(
                f"Skipping attachment upload for existing application {record['id']}"
            )

        return SubmissionResult(person_record_id=person_id, application_record=record)


def create_application_service(
    client: AirtableClient,
    coordinator: IdempotencyCoordinator[SubmissionResult],
    settings: Settings,
) -> ApplicationService:
    """Factory function to create ApplicationService with dependencies."""
    missing = settings.missing_airtable_settings("people", "applications")
    if missing:
        raise ConfigurationError(missing)

    return ApplicationService(
        person_resolver=PersonResolver(client, settings.airtable_people_table),
        writer=ApplicationWriter(
            client,
            settings.airtable_applications_table,
            person_field=settings.airtable_applications_person_field,
            idempotency_field=settings.airtable_applications_idempotency_field,
        ),
        uploader=AttachmentUploader(client, settings.airtable_applications_table),
        coordinator=coordinator,
        attachment_field=settings.airtable_applications_attachment_field,
    )
