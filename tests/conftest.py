import os

# Configure the app before it is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_JWT_SECRET"] = "test-jwt-secret"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ.pop("REDIS_URL", None)
os.environ.pop("REDIS_HOST", None)
os.environ.pop("INTAKEQ_API_KEY", None)

from datetime import date, datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402

from app.database import Base, SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models import (  # noqa: E402
    AdminRole,
    Payer,
    Provider,
    ProviderAvailability,
    ProviderPayerNetwork,
    SupervisionRelationship,
)
from app.rate_limiter import reset_rate_limits  # noqa: E402
from app.services.intakeq_service import IntakeQService, get_intakeq_service  # noqa: E402

SUPER_ADMIN_EMAIL = "owner@practice.test"
ADMIN_EMAIL = "admin@practice.test"
VIEWER_EMAIL = "viewer@practice.test"

# 2026-03-02 is a Monday (day_of_week 1)
BOOKING_DATE = date(2026, 3, 2)


def make_token(sub: str, email: str | None = None, expires_in: int = 3600, **claims) -> str:
    payload = {
        "sub": sub,
        "aud": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        **claims,
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, "test-jwt-secret", algorithm="HS256")


def auth_headers(email: str, sub: str = "user-1") -> dict:
    return {"Authorization": f"Bearer {make_token(sub, email)}"}


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    reset_rate_limits()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    # EHR lookups are off unless a test installs its own IntakeQService
    app.dependency_overrides[get_intakeq_service] = lambda: IntakeQService(api_key=None)
    return TestClient(app)


@pytest.fixture
def admin_roles(db):
    db.add_all(
        [
            AdminRole(email=SUPER_ADMIN_EMAIL, role="super_admin", created_by="test"),
            AdminRole(email=ADMIN_EMAIL, role="admin", created_by="test"),
            AdminRole(email=VIEWER_EMAIL, role="viewer", created_by="test"),
        ]
    )
    db.commit()


@pytest.fixture
def super_admin_headers(admin_roles):
    return auth_headers(SUPER_ADMIN_EMAIL, sub="owner-1")


@pytest.fixture
def admin_headers(admin_roles):
    return auth_headers(ADMIN_EMAIL, sub="admin-1")


@pytest.fixture
def viewer_headers(admin_roles):
    return auth_headers(VIEWER_EMAIL, sub="viewer-1")


@pytest.fixture
def practice(db):
    """
    Two attendings in network with a Medicaid payer that requires supervision,
    one resident supervised by the first attending, and Monday schedules.
    """
    attending = Provider(
        first_name="Anne",
        last_name="Attending",
        title="MD",
        role_title="Attending Physician",
        intakeq_practitioner_id="iq-anne",
    )
    attending_two = Provider(first_name="Bob", last_name="Boardcert", title="DO", role_title="Attending Physician")
    resident = Provider(first_name="Rita", last_name="Resident", title="MD", role_title="Resident")
    inactive = Provider(first_name="Ina", last_name="Inactive", is_active=False)
    db.add_all([attending, attending_two, resident, inactive])
    db.flush()

    medicaid = Payer(name="Utah Medicaid", payer_type="medicaid", state="UT", requires_attending=True)
    commercial = Payer(name="Acme Health", payer_type="commercial", state="UT", requires_attending=False)
    db.add_all([medicaid, commercial])
    db.flush()

    db.add_all(
        [
            ProviderPayerNetwork(provider_id=attending.id, payer_id=medicaid.id, effective_date=date(2025, 1, 1)),
            ProviderPayerNetwork(provider_id=attending_two.id, payer_id=medicaid.id, effective_date=date(2025, 1, 1)),
            ProviderPayerNetwork(provider_id=inactive.id, payer_id=medicaid.id, effective_date=date(2025, 1, 1)),
            ProviderPayerNetwork(
                provider_id=attending.id,
                payer_id=commercial.id,
                effective_date=date(2025, 1, 1),
                expiration_date=date(2026, 1, 1),
            ),
            SupervisionRelationship(
                resident_provider_id=resident.id,
                attending_provider_id=attending.id,
                designation="primary",
                effective_date=date(2025, 7, 1),
                status="active",
            ),
            ProviderAvailability(provider_id=attending.id, day_of_week=1, start_time="09:00", end_time="12:00"),
            ProviderAvailability(provider_id=attending_two.id, day_of_week=1, start_time="09:00", end_time="11:00"),
            ProviderAvailability(provider_id=resident.id, day_of_week=1, start_time="10:00:00", end_time="11:30:00"),
            ProviderAvailability(provider_id=inactive.id, day_of_week=1, start_time="08:00", end_time="17:00"),
            # Tuesday only
            ProviderAvailability(provider_id=attending.id, day_of_week=2, start_time="13:00", end_time="17:00"),
        ]
    )
    db.commit()

    return {
        "attending": attending.id,
        "attending_two": attending_two.id,
        "resident": resident.id,
        "inactive": inactive.id,
        "medicaid": medicaid.id,
        "commercial": commercial.id,
    }


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def token_for():
    return make_token
