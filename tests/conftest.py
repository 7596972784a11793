"""Shared pytest fixtures – uses async SQLite for fast in-memory tests."""

from __future__ import annotations

import os

# Must be set before ertc_webhook.config is imported anywhere.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("APP_ENV", "test")

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from ertc_webhook.api.server import create_app  # noqa: E402
from ertc_webhook.config import Settings  # noqa: E402
from ertc_webhook.db import Database  # noqa: E402


def sample_payload(
    baseline: dict | None = None,
    comparison: dict | None = None,
    **form_overrides,
) -> dict:
    """A submission shaped like the ERTC intake form."""
    form = {
        "userEmail": "owner@example.com",
        "userId": "user-123",
        "qualifyingQuestions": {"w2_employees_2020": 12, "government_shutdown": "yes"},
        "businessChallenges": {"description": "Dining room closed", "areas": ["dine-in", "events"]},
        "requestedInfo": {
            "business_name": "Corner Bistro",
            "gross_sales_2019": baseline if baseline is not None else {"q1": "10000", "q2": "5000", "q3": "8000"},
            "gross_sales_2021": comparison if comparison is not None else {"q1": "4000", "q2": "5000", "q3": "0"},
        },
        "ownershipStructure": [
            {"owner_name": "Ada Owner", "ownership_percentage": 60},
            {"owner_name": "Bob Partner", "ownership_percentage": 40},
        ],
        "relatives": {
            "has_relatives": "yes",
            "relative_rows": [{"relative_name": "Cy Owner", "relationship": "Son"}],
        },
        "uploadedFiles": {"payroll_reports": [{"name": "payroll.pdf"}]},
    }
    form.update(form_overrides)
    return {"formData": form}


@pytest.fixture
def payload() -> dict:
    return sample_payload()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite://",
        app_env="test",
        forward_webhook_url="",
        max_upload_bytes=1024,
    )


@pytest_asyncio.fixture
async def database():
    """A fresh in-memory database per test."""
    db = Database("sqlite+aiosqlite://", poolclass=StaticPool)
    await db.connect()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def session(database):
    async with database.session() as sess:
        yield sess


@pytest.fixture
def app(settings, database):
    return create_app(settings, database)


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
