"""Application configuration management."""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Airtable
    airtable_token: str = ""
    airtable_base_id: str = ""
    airtable_api_url: str = "https://api.airtable.com/v0"
    airtable_content_url: str = "https://content.airtable.com/v0"
    airtable_jobs_table: str = Field(
        default="",
        validation_alias=AliasChoices("airtable_jobs_table", "airtable_geroles_table"),
    )
    airtable_people_table: str = ""
    airtable_applications_table: str = ""
    airtable_applications_person_field: str = "Person"
    airtable_applications_attachment_field: str = "CV / Resume"
    airtable_applications_idempotency_field: str | None = None
    airtable_jobs_view: str | None = None
    airtable_timeout_seconds: float = Field(default=20.0, gt=0, le=120)

    # Rate limiting
    applications_rate_limit: int = Field(default=8, ge=1)
    applications_rate_window_ms: int = Field(default=60_000, ge=1000)
    upload_rate_limit: int = Field(default=5, ge=1)
    upload_rate_window_ms: int = Field(default=60_000, ge=1000)
    rate_limit_max_buckets: int = Field(default=10_000, ge=1)

    # Idempotency
    idempotency_ttl_seconds: int = Field(default=600, ge=1)
    idempotency_max_entries: int = Field(default=5000, ge=1)

    # Shared state
    state_backend: Literal["memory", "redis"] = Field(
        default="memory",
        description="Where rate-limit buckets and idempotency results live",
    )
    redis_url: str = "redis://localhost:6379/0"

    # Local uploads
    upload_dir: Path = Path("uploads")
    site_url: str | None = None

    log_level: str = "INFO"
    cors_origins: str = "*"

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def cors_origin_list(self) -> list[str]:
        return [item.strip() for item in self.cors_origins.split(",") if item.strip()]

    def missing_airtable_settings(self, *tables: str) -> list[str]:
        """Names of the Airtable env vars that must be set but are empty."""
        required = {
            "AIRTABLE_TOKEN": self.airtable_token,
            "AIRTABLE_BASE_ID": self.airtable_base_id,
        }
        table_vars = {
            "jobs": ("AIRTABLE_GEROLES_TABLE", self.airtable_jobs_table),
            "people": ("AIRTABLE_PEOPLE_TABLE", self.airtable_people_table),
            "applications": (
                "AIRTABLE_APPLICATIONS_TABLE",
                self.airtable_applications_table,
            ),
        }
        for table in tables:
            env_name, value = table_vars[table]
            required[env_name] = value
        return [name for name, value in required.items() if not value]


settings = Settings()
