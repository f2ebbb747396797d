"""Pytest configuration and fixtures."""

import os

# Set test database URL BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["CCA_AGENT_URL"] = ""

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from clm.db import models  # noqa: F401  registers tables on Base.metadata
from clm.db.models import ContractState
from clm.db.repository import create_contract
from clm.db.session import Base, get_db


@pytest.fixture
def sqlite_db_path(tmp_path):
    return tmp_path / "test.db"


@pytest.fixture(scope="function")
def sqlite_sessionmaker(sqlite_db_path):
    """Create a SQLite database with schema for testing."""
    db_path = sqlite_db_path
    engine = create_engine(f"sqlite:///{db_path}", echo=False)
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    yield SessionLocal
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(sqlite_sessionmaker):
    session = sqlite_sessionmaker()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_contract(sqlite_sessionmaker):
    """Factory committing a contract and returning its id."""

    def _make(state: ContractState = ContractState.draft, **fields) -> str:
        fields.setdefault("organization_id", "org-1")
        fields.setdefault("title", "Contrato de Prestacao de Servicos")
        with sqlite_sessionmaker() as session:
            contract = create_contract(session, state=state, **fields)
            session.commit()
            return contract.id

    return _make


@pytest.fixture
def sample_dates():
    return {
        "term_date": date(2025, 12, 31),
        "renewal_decision_deadline": date(2025, 10, 1),
        "notice_period_days": 60,
    }


@pytest.fixture
def mock_db_session():
    """Create a mock async database session."""
    mock_session = MagicMock()
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)
    mock_session.execute = AsyncMock()
    mock_session.add = MagicMock()
    mock_session.commit = AsyncMock()
    return mock_session


@pytest.fixture
def mock_temporal():
    """Create a mock Temporal client."""
    return AsyncMock()


@pytest.fixture
def api_client(sqlite_sessionmaker, sqlite_db_path, mock_temporal):
    """TestClient whose routes use the test SQLite file through aiosqlite.

    The lifespan is not run; app.state.temporal is the mock client.
    """
    from clm.main import app

    async_engine = create_async_engine(
        f"sqlite+aiosqlite:///{sqlite_db_path}",
        poolclass=NullPool,
    )
    AsyncTestSession = async_sessionmaker(async_engine, expire_on_commit=False)

    async def override_get_db():
        async with AsyncTestSession() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.temporal = mock_temporal
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()
        app.state.temporal = None
