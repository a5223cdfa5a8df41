"""Pytest configuration and fixtures."""

import base64
import itertools
import json
import os
import re
import sys
from urllib.parse import unquote

import httpx
import pytest

# Make the package importable without installing it
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set test environment variables before importing app modules
os.environ.setdefault("AIRTABLE_TOKEN", "test-token")
os.environ.setdefault("AIRTABLE_BASE_ID", "appTest")
os.environ.setdefault("AIRTABLE_GEROLES_TABLE", "Roles")
os.environ.setdefault("AIRTABLE_PEOPLE_TABLE", "People")
os.environ.setdefault("AIRTABLE_APPLICATIONS_TABLE", "Applications")
os.environ["STATE_BACKEND"] = "memory"

from opportunity_board.core.config import Settings  # noqa: E402
from opportunity_board.schemas.application import WHY_FIELD  # noqa: E402
from opportunity_board.services.airtable_client import AirtableClient  # noqa: E402

RESUME_BYTES = b"%PDF-1.4\n% resume of a test applicant\n"
RESUME_BASE64 = base64.b64encode(RESUME_BYTES).decode()

_FIELD_RE = re.compile(r"\{([^}]+)\}")
_LITERAL_RE = re.compile(r"'((?:[^'\\]|\\.)*)'")


def _unescape(literal: str) -> str:
    return re.sub(r"\\(.)", r"\1", literal)


class FakeAirtable:
    """Airtable REST and content APIs backed by dicts, served via MockTransport.

    ``columns`` optionally restricts which field names a table accepts.
    Writes or formulas naming anything else fail the way Airtable does.
    ``responses`` queues canned responses that are returned before routing.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.tables: dict[str, dict[str, dict]] = {
            "Roles": {},
            "People": {},
            "Applications": {},
        }
        self.columns: dict[str, set[str]] = {}
        self.responses: list[httpx.Response] = []
        self._ids = itertools.count(1)

    def add_record(self, table: str, fields: dict, record_id: str | None = None):
        record_id = record_id or f"rec{table[:3]}{next(self._ids)}"
        record = {
            "id": record_id,
            "createdTime": "2024-01-01T00:00:00.000Z",
            "fields": dict(fields),
        }
        self.tables.setdefault(table, {})[record_id] = record
        return record

    def requests_to(self, method: str, host: str = "api.airtable.com"):
        return [r for r in self.requests if r.method == method and r.url.host == host]

    def created_fields(self, table: str) -> list[dict]:
        """Field payloads of every create request sent to ``table``."""
        return [
            json.loads(r.content)["records"][0]["fields"]
            for r in self.requests_to("POST")
            if unquote(r.url.raw_path.decode().split("?")[0].split("/")[3]) == table
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            return self.responses.pop(0)

        parts = request.url.raw_path.decode().split("?")[0].split("/")
        if request.url.host == "content.airtable.com":
            return self._upload(request, parts[3], unquote(parts[4]))

        table = unquote(parts[3])
        if len(parts) > 4:
            return self._get(table, parts[4])
        if request.method == "GET":
            return self._list(request, table)
        if request.method == "POST":
            return self._create(request, table)
        if request.method == "PATCH":
            return self._update(request, table)
        return httpx.Response(405, json={"error": "METHOD_NOT_ALLOWED"})

    def _known(self, table: str, name: str) -> bool:
        allowed = self.columns.get(table)
        return allowed is None or name in allowed

    def _list(self, request: httpx.Request, table: str) -> httpx.Response:
        records = list(self.tables.get(table, {}).values())
        formula = request.url.params.get("filterByFormula")
        if formula:
            field = _FIELD_RE.search(formula).group(1)
            if not self._known(table, field):
                return httpx.Response(
                    422,
                    json={
                        "error": {
                            "type": "INVALID_FILTER_BY_FORMULA",
                            "message": f"Unknown field names: {field.lower()}",
                        }
                    },
                )
            literal = _unescape(_LITERAL_RE.search(formula).group(1))
            lowered = formula.startswith("(LOWER(")

            def matches(record):
                value = record["fields"].get(field)
                if not isinstance(value, str):
                    return False
                return (value.lower() if lowered else value) == literal

            records = [r for r in records if matches(r)]
        max_records = request.url.params.get("maxRecords")
        if max_records:
            records = records[: int(max_records)]
        return httpx.Response(200, json={"records": records})

    def _create(self, request: httpx.Request, table: str) -> httpx.Response:
        fields = json.loads(request.content)["records"][0]["fields"]
        for name in fields:
            if not self._known(table, name):
                return httpx.Response(
                    422,
                    json={
                        "error": {
                            "type": "UNKNOWN_FIELD_NAME",
                            "message": f'Unknown field name: "{name}"',
                        }
                    },
                )
        return httpx.Response(200, json={"records": [self.add_record(table, fields)]})

    def _update(self, request: httpx.Request, table: str) -> httpx.Response:
        change = json.loads(request.content)["records"][0]
        record = self.tables[table].get(change["id"])
        if record is None:
            return httpx.Response(404, json={"error": "NOT_FOUND"})
        record["fields"].update(change["fields"])
        return httpx.Response(200, json={"records": [record]})

    def _get(self, table: str, record_id: str) -> httpx.Response:
        record = self.tables.get(table, {}).get(record_id)
        if record is None:
            return httpx.Response(404, json={"error": "NOT_FOUND"})
        return httpx.Response(200, json=record)

    def _upload(
        self, request: httpx.Request, record_id: str, field_name: str
    ) -> httpx.Response:
        body = json.loads(request.content)
        record = next(
            (t[record_id] for t in self.tables.values() if record_id in t), None
        )
        if record is None:
            return httpx.Response(404, json={"error": "NOT_FOUND"})
        attachment = {
            "id": f"att{next(self._ids)}",
            "url": f"https://dl.airtable.test/{body['filename']}",
            "filename": body["filename"],
            "size": len(base64.b64decode(body["file"])),
            "type": body["contentType"],
        }
        record["fields"].setdefault(field_name, []).append(attachment)
        # The content API keys fields by id, not by name.
        return httpx.Response(
            200,
            json={
                "id": record_id,
                "createdTime": record["createdTime"],
                "fields": {"fldCvResume01": list(record["fields"][field_name])},
            },
        )


@pytest.fixture
def fake_airtable():
    """In-memory Airtable backing store."""
    return FakeAirtable()


@pytest.fixture
def airtable_client(fake_airtable):
    """AirtableClient wired to the fake Airtable."""
    return AirtableClient(
        "test-token", "appTest", transport=httpx.MockTransport(fake_airtable)
    )


@pytest.fixture
def test_settings(tmp_path):
    """Fully configured settings with uploads under a temp dir."""
    return Settings(
        airtable_token="test-token",
        airtable_base_id="appTest",
        airtable_jobs_table="Roles",
        airtable_people_table="People",
        airtable_applications_table="Applications",
        upload_dir=tmp_path / "uploads",
        site_url="https://board.example.org",
    )


@pytest.fixture
def resume_attachment():
    """A valid inline resume attachment."""
    return {
        "filename": "resume.pdf",
        "contentType": "application/pdf",
        "base64": RESUME_BASE64,
    }


@pytest.fixture
def application_payload(resume_attachment):
    """A complete application body as the frontend sends it."""
    return {
        "person": {
            "fullName": "Amina Rahimova",
            "emailAddress": "Amina.Rahimova@Example.com",
            "phoneNumber": "+44 20 7946 0958",
            "age": "31",
            "gender": "Female",
            "countryOfOrigin": "Tajikistan",
            "countryOfLiving": "United Kingdom",
            "education": "MSc Development Economics",
            "profession": "Programme officer",
            "jamatiExperience": "Volunteer coordinator for five years",
            "linkedIn": "https://www.linkedin.com/in/amina",
        },
        "jobId": "recRole1",
        "jobTitle": "Programme Analyst",
        "extras": {
            WHY_FIELD: "I have run similar programmes and want to help.",
            "Status": "Hired",
            "Source": "Somewhere else",
        },
        "attachments": {"cvResume": resume_attachment},
    }


@pytest.fixture
def rate_limiters():
    """Fresh in-memory limiters with the default limits."""
    from opportunity_board.services.rate_limiter import RateLimiter

    return {
        "applications": RateLimiter("api:applications", 8, 60_000),
        "upload": RateLimiter("api:upload", 5, 60_000),
    }


@pytest.fixture
def unavailable_rate_limiter():
    """Limiter whose bucket store cannot be reached."""
    from opportunity_board.services.rate_limiter import RateLimiter

    class UnavailableBucketStore:
        async def hit(self, key, limit, window_ms, now_ms):
            raise ConnectionError("Error connecting to redis:6379")

    return RateLimiter("api:applications", 8, 60_000, store=UnavailableBucketStore())


@pytest.fixture
def test_client(test_settings, airtable_client, rate_limiters):
    """TestClient with Airtable, limiters and settings overridden."""
    from fastapi.testclient import TestClient

    from opportunity_board import dependencies
    from opportunity_board.main import app
    from opportunity_board.services.idempotency import IdempotencyCoordinator

    coordinator = IdempotencyCoordinator()
    app.dependency_overrides[dependencies.get_settings] = lambda: test_settings
    app.dependency_overrides[dependencies.get_airtable_client] = (
        lambda: airtable_client
    )
    app.dependency_overrides[dependencies.get_idempotency_coordinator] = (
        lambda: coordinator
    )
    app.dependency_overrides[dependencies.get_applications_rate_limiter] = (
        lambda: rate_limiters["applications"]
    )
    app.dependency_overrides[dependencies.get_upload_rate_limiter] = (
        lambda: rate_limiters["upload"]
    )

    yield TestClient(app)

    app.dependency_overrides.clear()
