'''
Shared pytest fixtures for the billing tests.

1. TEST_MODE is forced on before academyos_billing is imported.
2. API tests get a TestClient whose lifespan builds an empty in-memory database.
3. Service tests get their own in-memory database, a session on it and every
   service wired to that session.
4. Tenants, students and lessons are seeded with the factories.
'''

import os

# Must happen before the settings module is imported anywhere.
os.environ["TEST_MODE"] = "True"
os.environ.setdefault("DATABASE_URL_PROD", "sqlite+aiosqlite:///:memory:")

import datetime
import pytest
from typing import AsyncGenerator

# --- FastAPI & Testing Imports ---
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine

# --- Constant Imports ----
from tests.constants import (
    TEST_ORG_ID,
    TEST_OTHER_ORG_ID,
    TEST_ACTOR_ID,
    TEST_STUDENT_ID,
    TEST_OTHER_STUDENT_ID,
    TEST_FOREIGN_STUDENT_ID,
    TEST_LESSON_ID,
)
from tests.database import factories

# --- Application Imports ---
from academyos_billing.main import app
from academyos_billing.common.config import settings
from academyos_billing.database.engine import build_engine, build_session_factory
from academyos_billing.database import models as db_models
from academyos_billing.models.tenancy import TenantContext
from academyos_billing.services.student_service import StudentService
from academyos_billing.services.ledger_service import LedgerService
from academyos_billing.services.payment_service import PaymentService
from academyos_billing.services.pricing_service import PricingService
from academyos_billing.services.charge_service import ChargeService
from academyos_billing.services.lesson_service import LessonService
from academyos_billing.services.reconciliation_service import ReconciliationService


@pytest.fixture(scope="session")
def anyio_backend():
    """
    Override the default 'anyio_backend' fixture.
    1. Forces the backend to 'asyncio' (aiosqlite does not run on trio).
    2. Promotes the scope to 'session' (solves 'ScopeMismatch').
    """
    return "asyncio"


# --- 1. API Client ---

@pytest.fixture(scope="function")
def client() -> TestClient:
    """
    Runs the app's lifespan, which creates a brand-new in-memory database
    (TEST_MODE) and its tables. Every test therefore starts empty; API tests
    seed what they need through the API itself.
    """
    assert settings.TEST_MODE is True, \
        "TEST_MODE was not set to True! Check your .env file or environment."

    with TestClient(app) as test_client:
        yield test_client


# --- 2. Function-Scoped Database (For Service Tests) ---

@pytest.fixture(scope="function")
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(db_models.Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """
    A single session on a private in-memory database.
    The factories write through it for the duration of the test.
    """
    session = build_session_factory(db_engine)()
    factories.test_db_session = session
    try:
        yield session
    finally:
        factories.test_db_session = None
        await session.rollback()
        await session.close()


# --- 3. Tenant Fixtures ---

@pytest.fixture(scope="function")
def ctx() -> TenantContext:
    return TenantContext(organization_id=TEST_ORG_ID, actor_id=TEST_ACTOR_ID)

@pytest.fixture(scope="function")
def other_ctx() -> TenantContext:
    """A second organization that must never see the first one's rows."""
    return TenantContext(organization_id=TEST_OTHER_ORG_ID)


# --- 4. SERVICE FIXTURES ---

@pytest.fixture(scope="function")
def student_service(db_session: AsyncSession) -> StudentService:
    return StudentService(db=db_session)

@pytest.fixture(scope="function")
def ledger_service(db_session: AsyncSession, student_service: StudentService) -> LedgerService:
    return LedgerService(db=db_session, student_service=student_service)

@pytest.fixture(scope="function")
def payment_service(
    db_session: AsyncSession,
    student_service: StudentService,
    ledger_service: LedgerService
) -> PaymentService:
    return PaymentService(db=db_session, student_service=student_service, ledger_service=ledger_service)

@pytest.fixture(scope="function")
def pricing_service(db_session: AsyncSession, student_service: StudentService) -> PricingService:
    return PricingService(db=db_session, student_service=student_service)

@pytest.fixture(scope="function")
def charge_service(
    db_session: AsyncSession,
    student_service: StudentService,
    ledger_service: LedgerService,
    payment_service: PaymentService,
    pricing_service: PricingService
) -> ChargeService:
    return ChargeService(
        db=db_session,
        student_service=student_service,
        ledger_service=ledger_service,
        payment_service=payment_service,
        pricing_service=pricing_service
    )

@pytest.fixture(scope="function")
def lesson_service(
    db_session: AsyncSession,
    student_service: StudentService,
    payment_service: PaymentService
) -> LessonService:
    return LessonService(db=db_session, student_service=student_service, payment_service=payment_service)

@pytest.fixture(scope="function")
def reconciliation_service(
    db_session: AsyncSession,
    student_service: StudentService,
    lesson_service: LessonService
) -> ReconciliationService:
    return ReconciliationService(db=db_session, student_service=student_service, lesson_service=lesson_service)


# --- 5. DATA FIXTURES ---

@pytest.fixture(scope="function")
async def test_student_orm(db_session: AsyncSession) -> db_models.Students:
    student = factories.StudentFactory(id=TEST_STUDENT_ID, first_name="Анна", last_name="Смирнова")
    await db_session.flush()
    return student

@pytest.fixture(scope="function")
async def other_student_orm(db_session: AsyncSession) -> db_models.Students:
    """Another student of the same organization."""
    student = factories.StudentFactory(id=TEST_OTHER_STUDENT_ID)
    await db_session.flush()
    return student

@pytest.fixture(scope="function")
async def foreign_student_orm(db_session: AsyncSession) -> db_models.Students:
    """A student that belongs to the other organization."""
    student = factories.StudentFactory(id=TEST_FOREIGN_STUDENT_ID, organization_id=TEST_OTHER_ORG_ID)
    await db_session.flush()
    return student

@pytest.fixture(scope="function")
def make_lesson(db_session: AsyncSession, test_student_orm: db_models.Students):
    """
    Builds an individual lesson for the test student with one weekly session
    per (duration, paid_minutes[, status]) tuple, starting 2025-09-01.
    Returns the lesson and its sessions in date order.
    """
    async def _make_lesson(*slots: tuple, lesson_id=TEST_LESSON_ID):
        lesson = factories.IndividualLessonFactory(id=lesson_id, student_id=test_student_orm.id)
        sessions = []
        for week, slot in enumerate(slots):
            duration, paid_minutes = slot[0], slot[1]
            status = slot[2] if len(slot) > 2 else "scheduled"
            sessions.append(factories.LessonSessionFactory(
                individual_lesson_id=lesson.id,
                lesson_date=datetime.date(2025, 9, 1) + datetime.timedelta(weeks=week),
                duration=duration,
                paid_minutes=paid_minutes,
                status=status
            ))
        await db_session.flush()
        return lesson, sessions

    return _make_lesson
