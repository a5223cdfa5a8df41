"""Schemas for the job listing read path."""

from opportunity_board.schemas.application import CamelModel


class Job(CamelModel):
    """An open role as shown on the board."""

    id: str
    role_title: str = ""
    role_status: str | None = None
    programme_area: str | None = None
    team_vertical: str | None = None
    location_base: str | None = None
    work_type: str | None = None
    role_type: str | None = None
    start_date: str | None = None
    duration_months: int | float | None = None
    duration_category: str = "TBD"
    purpose_short: str | None = None
    key_responsibilities: list[str] = []
    required_qualifications: list[str] = []
    other_qualifications: str | None = None
    preferred_qualifications: list[str] = []
    additional_qualifications: str | None = None
    time_commitment: str | None = None
    languages_required: list[str] = []
    other_languages: str | None = None


class JobsResponse(CamelModel):
    jobs: list[Job]
