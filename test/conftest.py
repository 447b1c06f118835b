"""
Test Configuration and Fixtures

This module provides:
- Environment setup before any application module reads settings
- A controllable clock and a scripted payment gateway
- Per-test in-memory SQLite databases for the repository-backed tests
- The HTTP TestClient and bearer tokens for the API tests

Architecture:
- Unit tests (test/**/unit/): pure domain tests and use cases over AsyncMock repos
- Integration tests (test/**/integration/): real repositories on aiosqlite
- API tests (test/**/api/): the FastAPI app from test/test_main.py
"""

# =============================================================================
# CRITICAL: Environment setup MUST happen before any other imports
# Settings are instantiated at import time (src.platform.config.core_setting)
# =============================================================================
import os
from pathlib import Path


def _early_setup_test_environment() -> None:
    """Set test environment variables before any module imports."""
    os.environ['DATABASE_URL_OVERRIDE'] = 'sqlite+aiosqlite:///:memory:'
    os.environ['SWEEPER_ENABLED'] = 'false'
    os.environ.setdefault('SECRET_KEY', 'test_secret_key_for_lifecycle_tests')

    # Create test log directory
    test_log_dir = Path(__file__).parent / 'test_log'
    test_log_dir.mkdir(exist_ok=True)
    os.environ['TEST_LOG_DIR'] = str(test_log_dir)


# Call immediately to set env vars before any imports
_early_setup_test_environment()

from collections.abc import AsyncGenerator, Generator  # noqa: E402
from datetime import datetime, timezone  # noqa: E402
from typing import TYPE_CHECKING, Callable  # noqa: E402

from fastapi.testclient import TestClient  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from uuid_utils.compat import uuid7  # noqa: E402

from src.platform.database.orm_db_setting import Database, create_db_and_tables  # noqa: E402
from src.platform.database.unit_of_work import (  # noqa: E402
    AbstractUnitOfWork,
    SqlAlchemyUnitOfWork,
)
from src.service.ticket_lifecycle.app.service.audit_trail import AuditTrail  # noqa: E402
from src.service.ticket_lifecycle.domain.entity.user_entity import (  # noqa: E402
    CurrentUser,
    UserRole,
)
from src.service.ticket_lifecycle.driven_adapter.repo.audit_log_repo_impl import (  # noqa: E402
    AuditLogRepoImpl,
)
from test.shared.lifecycle_fakes import FakeClock, ScriptedGateway  # noqa: E402


if TYPE_CHECKING:
    from src.service.ticket_lifecycle.driving_adapter.http_controller.auth.jwt_auth import (
        JwtAuth,
    )


# Every model must be imported before create_all
import src.service.ticket_lifecycle.driven_adapter.model  # noqa: E402, F401


# =============================================================================
# Time and users
# =============================================================================
NOW = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture
def buyer() -> CurrentUser:
    return CurrentUser(id=uuid7(), email='buyer@example.com', role=UserRole.CUSTOMER)


@pytest.fixture
def another_buyer() -> CurrentUser:
    return CurrentUser(id=uuid7(), email='another.buyer@example.com', role=UserRole.CUSTOMER)


@pytest.fixture
def organizer() -> CurrentUser:
    return CurrentUser(id=uuid7(), email='organizer@example.com', role=UserRole.ORGANIZER)


@pytest.fixture
def admin() -> CurrentUser:
    return CurrentUser(id=uuid7(), email='admin@example.com', role=UserRole.ADMIN)


# =============================================================================
# Database (one in-memory SQLite database per test)
# =============================================================================
@pytest.fixture
async def database() -> AsyncGenerator[Database, None]:
    engine = create_async_engine(
        'sqlite+aiosqlite:///:memory:', poolclass=StaticPool, echo=False
    )
    await create_db_and_tables(engine=engine)
    yield Database(session_maker=async_sessionmaker(engine, expire_on_commit=False))
    await engine.dispose()


@pytest.fixture
def uow_factory(database: Database) -> Callable[[], AbstractUnitOfWork]:
    def _factory() -> AbstractUnitOfWork:
        return SqlAlchemyUnitOfWork(session_factory=database.session)

    return _factory


@pytest.fixture
def audit_trail(database: Database, clock: FakeClock) -> AuditTrail:
    return AuditTrail(
        audit_log_repo=AuditLogRepoImpl(session_factory=database.session), clock=clock
    )


@pytest.fixture
def gateway() -> ScriptedGateway:
    return ScriptedGateway()


# =============================================================================
# HTTP
# =============================================================================
@pytest.fixture(scope='session')
def client() -> Generator[TestClient, None, None]:
    from test.test_main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(scope='session')
def jwt_auth() -> 'JwtAuth':
    from src.service.ticket_lifecycle.driving_adapter.http_controller.auth.jwt_auth import JwtAuth

    return JwtAuth()


@pytest.fixture
def auth_headers(jwt_auth: 'JwtAuth') -> Callable[[CurrentUser], dict[str, str]]:
    def _headers(user: CurrentUser) -> dict[str, str]:
        return {'Authorization': f'Bearer {jwt_auth.create_jwt_token(user)}'}

    return _headers

