"""Pytest configuration and fixtures."""

import itertools
import os
import secrets

import pytest

# Generate a unique test secret for this test run to prevent token forgery
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

# For unit tests, set mock values ONLY if not running integration tests
if not os.environ.get("RUN_INTEGRATION"):
    os.environ.setdefault("STORAGE_BACKEND", "memory")
    os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
    os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
    os.environ.setdefault("JWT_SECRET_KEY", _TEST_JWT_SECRET)
    os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
else:
    # For integration tests, load from .env
    from pathlib import Path

    from dotenv import load_dotenv

    load_dotenv(Path(__file__).parent.parent / ".env", override=True)

from app.auth import create_access_token  # noqa: E402
from app.config import get_settings  # noqa: E402
from app.database import get_marketplace  # noqa: E402
from app.main import app  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from dentipal.jobs.marketplace import Marketplace  # noqa: E402
from dentipal.jobs.storage import CLINIC_PROFILES, CLINICS, PROFESSIONAL_PROFILES, InMemoryGateway  # noqa: E402

from api_helpers import API_NOW, ASSISTANT_USER, CLINIC_ID, CLINIC_USER, HYGIENIST_USER  # noqa: E402


@pytest.fixture
def gateway():
    gw = InMemoryGateway()
    gw.put(CLINICS, {"clinicId": CLINIC_ID, "createdBy": CLINIC_USER, "city": "Adelaide", "state": "SA"})
    gw.put(CLINIC_PROFILES, {"clinicId": CLINIC_ID, "userSub": CLINIC_USER, "practiceType": "Family"})
    gw.put(PROFESSIONAL_PROFILES, {"userSub": HYGIENIST_USER, "role": "dental_hygienist"})
    gw.put(PROFESSIONAL_PROFILES, {"userSub": ASSISTANT_USER, "role": "dental_assistant"})
    return gw


@pytest.fixture
def client(gateway):
    """Create a test client whose engines use a fresh seeded gateway."""
    counter = itertools.count(1)
    marketplace = Marketplace(
        gateway,
        get_settings().marketplace_config(),
        clock=lambda: API_NOW,
        id_factory=lambda: f"id-{next(counter)}",
    )
    app.dependency_overrides[get_marketplace] = lambda: marketplace
    yield TestClient(app)
    app.dependency_overrides.clear()


def _headers(subject: str, groups: list[str]) -> dict[str, str]:
    token = create_access_token(subject, get_settings(), groups=groups)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def clinic_headers():
    """Auth headers for a ClinicAdmin."""
    return _headers(CLINIC_USER, ["ClinicAdmin"])


@pytest.fixture
def hygienist_headers():
    return _headers(HYGIENIST_USER, ["DentalHygienist"])


@pytest.fixture
def assistant_headers():
    return _headers(ASSISTANT_USER, ["DentalAssistant"])
