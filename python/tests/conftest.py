"""Pytest configuration and fixtures for Curtain tests.

Test isolation strategy:
- Every test gets its own SQLite database file under tmp_path, created from
  the ORM metadata (set TEST_DATABASE_URL to run against another database)
- The entity catalog is an in-memory StaticEntityCatalog
- Auth tests use authenticated_client with test JWT tokens
"""

import os
import sys
from collections.abc import Generator
from pathlib import Path

os.environ.setdefault("CURTAIN_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from curtain.api.deps import get_db
from curtain.app import create_app, create_principal_loader
from curtain.auth.middleware import AuthMiddleware
from curtain.config import clear_settings_cache
from curtain.db.engine import create_db_engine
from curtain.db.models import Base
from curtain.db.session import create_session_factory
from curtain.services.recompute import RecomputeCoordinator
from tests.factories import create_user
from tests.fixtures import build_library_catalog
from tests.support.catalog import StaticEntityCatalog
from tests.support.test_verifier import MockJwtVerifier


@pytest.fixture(autouse=True)
def _fresh_settings() -> Generator[None, None, None]:
    """Reload settings from the environment for every test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """Create a database engine with the full schema for one test."""
    external_url = os.environ.get("TEST_DATABASE_URL")
    database_url = external_url or f"sqlite:///{tmp_path / 'curtain_test.db'}"

    engine = create_db_engine(database_url)
    Base.metadata.create_all(engine)
    yield engine
    if external_url:
        Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Provide a database session closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def catalog() -> StaticEntityCatalog:
    """An empty in-memory catalog."""
    return StaticEntityCatalog()


@pytest.fixture
def library_catalog() -> StaticEntityCatalog:
    """The sample library from tests.fixtures as an in-memory catalog."""
    return build_library_catalog()


@pytest.fixture
def coordinator(
    session_factory: sessionmaker[Session], library_catalog: StaticEntityCatalog
) -> RecomputeCoordinator:
    return RecomputeCoordinator(session_factory, library_catalog, max_workers=4)


@pytest.fixture
def admin_id(db_session: Session) -> int:
    return create_user(db_session, "admin", role="admin")


@pytest.fixture
def user_id(db_session: Session) -> int:
    return create_user(db_session, "viewer")


@pytest.fixture
def client(
    session_factory: sessionmaker[Session], coordinator: RecomputeCoordinator
) -> Generator[TestClient, None, None]:
    """Provide a FastAPI test client without authentication.

    Suitable for public endpoints and basic functionality.
    """
    app = create_app(
        skip_auth_middleware=True,
        session_factory=session_factory,
        recompute_coordinator=coordinator,
    )
    with TestClient(app) as client:
        yield client


@pytest.fixture
def authenticated_app(
    session_factory: sessionmaker[Session], coordinator: RecomputeCoordinator
):
    """Provide a FastAPI app with auth middleware using the test verifier.

    Routes and principal lookups use the per-test database.
    """
    app = create_app(
        skip_auth_middleware=True,
        session_factory=session_factory,
        recompute_coordinator=coordinator,
    )
    app.add_middleware(
        AuthMiddleware,
        verifier=MockJwtVerifier(),
        principal_loader=create_principal_loader(session_factory),
    )

    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def authenticated_client(authenticated_app) -> Generator[TestClient, None, None]:
    """Provide a FastAPI test client with auth middleware.

    Use auth_headers() to generate valid tokens for requests.
    """
    with TestClient(authenticated_app) as client:
        yield client
