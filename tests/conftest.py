"""Pytest configuration and fixtures."""

import uuid
from datetime import date, time
from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from clinic_ops.config import Settings
from clinic_ops.core.auth import CurrentUser
from clinic_ops.core.models import (
    Base,
    InsurancePolicy,
    Patient,
    Payer,
    Provider,
    ProviderAvailability,
    ProviderPayerNetwork,
    SupervisionRelationship,
)

# Monday; stored templates use 0 = Sunday so this is day_of_week 1.
SERVICE_DATE = date(2026, 3, 2)
MONDAY = 1

ADMIN_EMAIL = "admin@clinic.example"


# ---------------------------------------------------------------------------
# Auth override for tests: bypass the get_current_user dependency
# ---------------------------------------------------------------------------

ADMIN_USER = CurrentUser(id="admin-user", email=ADMIN_EMAIL, is_admin=True)
PARTNER_USER = CurrentUser(id="partner-user", email="coordinator@partner.example", is_admin=False)


def apply_auth_override(app, user: CurrentUser = ADMIN_USER):
    """Apply get_current_user override to a FastAPI test app."""
    from clinic_ops.api.dependencies import get_current_user
    app.dependency_overrides[get_current_user] = lambda: user
    return app


def make_settings(**overrides) -> Settings:
    values = {
        "database_url": "sqlite+aiosqlite://",
        "admin_emails": [ADMIN_EMAIL],
        "auth_jwt_secret": "test-secret",
        "anthropic_api_key": "",
        "practiceq_api_key": "",
        "resend_api_key": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    return make_settings()


# ---------------------------------------------------------------------------
# Database: in-memory SQLite engine + sessions
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite://", echo=False, poolclass=StaticPool)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as sess:
        yield sess


@pytest_asyncio.fixture
async def clinic(session: AsyncSession):
    """Seed payer P, attending A with an in-network contract, resident R
    supervised by A, a patient with an active policy, and Monday hours.
    """
    payer = Payer(
        name="Blue Shield CA",
        state="CA",
        status_code="approved",
        effective_date=date(2025, 1, 1),
        requires_attending=True,
        allows_supervised=True,
        intakeq_service_id="svc-101",
    )
    attending = Provider(
        first_name="Ada",
        last_name="Attending",
        email="ada@clinic.example",
        role="Attending",
        npi="1234567890",
        pay_rate_cents=15000,
        intakeq_practitioner_id="pq-ada",
        languages=["English", "Spanish"],
    )
    resident = Provider(
        first_name="Riley",
        last_name="Resident",
        email="riley@clinic.example",
        role="Resident",
        pay_rate_cents=9000,
        intakeq_practitioner_id="pq-riley",
    )
    patient = Patient(
        first_name="Pat",
        last_name="Lee",
        email="pat@example.com",
        phone="555-0100",
        date_of_birth=date(1990, 4, 12),
    )
    session.add_all([payer, attending, resident, patient])
    await session.flush()

    contract = ProviderPayerNetwork(
        provider_id=attending.id,
        payer_id=payer.id,
        status="in_network",
        effective_date=date(2025, 1, 1),
    )
    supervision = SupervisionRelationship(
        supervisor_provider_id=attending.id,
        supervisee_provider_id=resident.id,
        payer_id=payer.id,
        start_date=date(2025, 1, 1),
    )
    policy = InsurancePolicy(
        patient_id=patient.id,
        payer_id=payer.id,
        member_id="BS-0001",
        effective_date=date(2025, 1, 1),
    )
    hours = [
        ProviderAvailability(provider_id=pid, day_of_week=MONDAY, start_time=time(9, 0), end_time=time(12, 0))
        for pid in (attending.id, resident.id)
    ]
    session.add_all([contract, supervision, policy, *hours])
    await session.commit()

    return SimpleNamespace(
        payer=payer,
        attending=attending,
        resident=resident,
        patient=patient,
        contract=contract,
        supervision=supervision,
        policy=policy,
    )


# ---------------------------------------------------------------------------
# API client bound to the test database
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def app(session_factory, clinic, settings):
    from clinic_ops.api.app import create_app
    from clinic_ops.core.database import get_db

    async def _override_get_db():
        async with session_factory() as sess:
            try:
                yield sess
                await sess.commit()
            except Exception:
                await sess.rollback()
                raise

    application = create_app(settings)
    application.dependency_overrides[get_db] = _override_get_db
    apply_auth_override(application)
    return application


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def new_id() -> str:
    return str(uuid.uuid4())
