"""
Pytest configuration and fixtures for testing.

Provides:
- Database fixtures (in-memory SQLite through aiosqlite, fresh per test)
- Reference data: two units and staff for every role
- A TicketService wired to a recording notification sink
- An HTTP client bound to the FastAPI app through ASGITransport

Usage:
    pytest src/backend/tests -v
"""

from typing import AsyncGenerator, Callable, Dict

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.notification_service import NotificationDispatcher
from api.services.ticket_service import TicketService
from app import create_app
from core.config import (
    APISettings,
    DatabaseSettings,
    LoggingSettings,
    SecuritySettings,
    Settings,
    WorkflowSettings,
)
from core.database import close_db, create_engine_from_settings, create_session_factory, init_db
from core.security import CallerIdentity, create_access_token
from db.models import Unit, User
from tests.factories import RecordingSink, UnitFactory, UserFactory, persist

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ============================================================================
# Settings
# ============================================================================

@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment: SQLite, no log files."""
    return Settings(
        api=APISettings(),
        database=DatabaseSettings(url=TEST_DATABASE_URL, create_tables=True),
        security=SecuritySettings(secret_key="test-secret-key-with-enough-length-for-hs256"),
        logging=LoggingSettings(enable_file_logging=False),
        workflow=WorkflowSettings(default_priority="medium", allow_department_verification=True),
    )


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def test_engine(test_settings: Settings):
    """In-memory SQLite engine with all tables created."""
    engine = create_engine_from_settings(test_settings.database)
    await init_db(engine)

    yield engine

    await close_db(engine)


@pytest.fixture
def session_factory(test_engine):
    return create_session_factory(test_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session


# ============================================================================
# Reference Data Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def unit_2(db_session: AsyncSession) -> Unit:
    return await persist(db_session, UnitFactory.create(name="Radiology", code="U2"))


@pytest_asyncio.fixture
async def unit_3(db_session: AsyncSession) -> Unit:
    return await persist(db_session, UnitFactory.create(name="Surgery", code="U3"))


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await persist(db_session, UserFactory.create_admin(name="Alice Admin"))


@pytest_asyncio.fixture
async def manager(db_session: AsyncSession, unit_3: Unit) -> User:
    """Manager of unit 3, Biomedical department."""
    return await persist(
        db_session,
        UserFactory.create_manager(name="Mona Manager", unit_id=unit_3.id, department="Biomedical"),
    )


@pytest_asyncio.fixture
async def other_manager(db_session: AsyncSession, unit_2: Unit) -> User:
    """Manager of unit 2, Facilities department."""
    return await persist(
        db_session,
        UserFactory.create_manager(name="Omar Manager", unit_id=unit_2.id, department="Facilities"),
    )


@pytest_asyncio.fixture
async def employee(db_session: AsyncSession, unit_3: Unit) -> User:
    return await persist(
        db_session,
        UserFactory.create_employee(name="Eve Employee", unit_id=unit_3.id, department="Biomedical"),
    )


@pytest_asyncio.fixture
async def other_employee(db_session: AsyncSession, unit_3: Unit) -> User:
    return await persist(
        db_session,
        UserFactory.create_employee(name="Evan Employee", unit_id=unit_3.id, department="Biomedical"),
    )


@pytest_asyncio.fixture
async def unit_2_employee(db_session: AsyncSession, unit_2: Unit) -> User:
    return await persist(
        db_session,
        UserFactory.create_employee(name="Nadia Nurse", unit_id=unit_2.id, department="Radiology"),
    )


@pytest.fixture
def identity_for() -> Callable[[User], CallerIdentity]:
    """Build the caller identity the auth collaborator would issue for a user."""

    def _identity(user: User) -> CallerIdentity:
        return CallerIdentity(
            id=user.id,
            role=user.role,
            unit_id=user.unit_id,
            department=user.department,
        )

    return _identity


# ============================================================================
# Workflow Fixtures
# ============================================================================

@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def notifier(recording_sink: RecordingSink) -> NotificationDispatcher:
    return NotificationDispatcher([recording_sink])


@pytest.fixture
def ticket_service(test_settings: Settings, notifier: NotificationDispatcher) -> TicketService:
    return TicketService(test_settings.workflow, notifier)


# ============================================================================
# HTTP Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def client(
    test_settings: Settings,
    test_engine,
    session_factory,
    ticket_service: TicketService,
    notifier: NotificationDispatcher,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the API.

    ASGITransport does not run the lifespan, so the state it would set up is
    assigned here against the test engine.
    """
    app = create_app(test_settings)
    app.state.engine = test_engine
    app.state.session_factory = session_factory
    app.state.notifier = notifier
    app.state.ticket_service = ticket_service

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers(test_settings: Settings, identity_for) -> Callable[[User], Dict[str, str]]:
    """Bearer headers for a user."""

    def _headers(user: User) -> Dict[str, str]:
        token = create_access_token(identity_for(user), test_settings.security)
        return {"Authorization": f"Bearer {token}"}

    return _headers
