"""Find-or-create for applicant records, keyed by normalized email."""

import logging

from opportunity_board.core.exceptions import AirtableAPIError
from opportunity_board.schemas.application import PersonDetails
from opportunity_board.services.airtable_client import (
    AirtableClient,
    escape_formula_value,
)

logger = logging.getLogger(__name__)

NORMALIZED_EMAIL_FIELD = "normalized email"
EMAIL_FIELD = "Email Address"

# People table column for each PersonDetails attribute, in write order.
PERSON_COLUMNS = (
    ("full_name", "Full Name"),
    ("candidate_status", "Candidate Status"),
    ("email_address", EMAIL_FIELD),
    ("phone_number", "Phone Number (incl. Country Code)"),
    ("linked_in", "LinkedIn Profile Link (if available)"),
    ("age", "Age"),
    ("gender", "Gender"),
    ("country_of_origin", "Country of Birth"),
    ("country_of_living", "Country of Living (Current Location)"),
    ("jurisdiction", "Jurisdiction"),
    ("education", "Academic / Professional Education"),
    ("profession", "Current Profession / Occupation"),
    ("jamati_experience", "Jamati Experience"),
)


def person_fields(person: PersonDetails) -> dict[str, str]:
    """Column values for a new person record.

    Blank values are left out: single-select columns would otherwise grow
    an empty option.
    """
    fields = {}
    for attribute, column in PERSON_COLUMNS:
        value = getattr(person, attribute)
        if isinstance(value, str) and value.strip():
            fields[column] = value.strip()
    return fields


class PersonResolver:
    """Resolves an applicant to a People record id, creating one if needed."""

    def __init__(self, client: AirtableClient, table: str):
        self.client = client
        self.table = table

    async def find_by_email(self, normalized_email: str) -> dict | None:
        literal = escape_formula_value(normalized_email)

        try:
            record = await self.client.find_first(
                self.table, f"({{{NORMALIZED_EMAIL_FIELD}}} = '{literal}')"
            )
            if record:
                return record
        except AirtableAPIError as e:
            logger.warning(
                f"Normalized email lookup failed, falling back to {EMAIL_FIELD}: {e}"
            )

        return await self.client.find_first(
            self.table, f"(LOWER({{{EMAIL_FIELD}}}) = '{literal}')"
        )

    async def resolve(self, person: PersonDetails) -> str:
        """Return the id of the person's record. Existing records are never updated."""
        normalized = person.normalized_email.strip().lower()
        existing = await self.find_by_email(normalized)
        if existing:
            logger.info(f"Reusing person record {existing['id']}")
            return existing["id"]

        created = await self.client.create_record(self.table, person_fields(person))
        if not created or not created.get("id"):
            raise AirtableAPIError(502, "No record returned", f"{self.table} create")
        logger.info(f"Created person record {created['id']}")
        return created["id"]
