"""
Test configuration and fixtures for Feedback Radar.

- Function-scoped engine (in-memory SQLite unless TEST_DATABASE_URL is set)
  with all tables created, so every test starts from an empty schema
- Session fixture shared by services under test and the API
- TestClient with database and collaborator dependency overrides
- Mock AI judgment and similarity search collaborators
"""

import os

# Settings are read at import time; pin the test environment first.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["DRAMATIQ_BROKER"] = "stub"

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from feedback_radar.api.dependencies import get_judgment_service, get_search_service
from feedback_radar.database import Base, get_db
from feedback_radar.main import app
from tests.fixtures.mocks import MockJudgmentService, MockSearchService


# =============================================================================
# Database Fixtures
# =============================================================================


def get_test_database_url() -> str:
    """
    Get the test database URL.

    Priority:
    1. TEST_DATABASE_URL environment variable
    2. In-memory SQLite shared across the test's connections
    """
    return os.environ.get("TEST_DATABASE_URL", "sqlite://")


@pytest.fixture
def test_engine():
    """
    Create a fresh engine and schema for one test.

    Workflow steps and stores commit on their own, so isolation comes from a
    fresh schema rather than an outer transaction rollback.
    """
    database_url = get_test_database_url()
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(database_url)

    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(test_engine) -> Generator[Session, None, None]:
    """Provide a database session bound to the per-test engine."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    session = TestingSessionLocal()

    yield session

    session.close()


# =============================================================================
# Collaborator Fixtures
# =============================================================================


@pytest.fixture
def mock_judgment() -> MockJudgmentService:
    return MockJudgmentService()


@pytest.fixture
def mock_search() -> MockSearchService:
    return MockSearchService()


# =============================================================================
# TestClient Fixtures
# =============================================================================


@pytest.fixture
def client(
    db: Session, mock_judgment: MockJudgmentService, mock_search: MockSearchService
) -> Generator[TestClient, None, None]:
    """
    TestClient with database and collaborator dependency overrides.

    The database session is injected into the app's get_db dependency.
    """

    def override_get_db():
        try:
            yield db
        finally:
            pass  # Don't close - managed by db fixture

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_judgment_service] = lambda: mock_judgment
    app.dependency_overrides[get_search_service] = lambda: mock_search

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
