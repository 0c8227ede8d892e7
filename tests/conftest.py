"""
Test configuration and fixtures for the recovery service tests.
"""
import os

from delegated_recovery.core.security import generate_private_key, private_key_to_pem

# The application reads its configuration on import
TEST_PRIVATE_KEY = generate_private_key()
os.environ["RECOVERY_PRIVATE_KEY"] = private_key_to_pem(TEST_PRIVATE_KEY)
os.environ["RECOVERY_ISSUER"] = "https://rp.example.com"
os.environ["RECOVERY_PROVIDER_ISSUER"] = "https://provider.example.com"
os.environ["RECOVERY_PROVIDER_SAVE_TOKEN"] = "https://provider.example.com/recovery/save-token/"
os.environ["RECOVERY_DB_URL"] = "sqlite://"
os.environ["RECOVERY_LOG_TO_FILE"] = "false"
os.environ["RECOVERY_RATE_LIMIT_ENABLED"] = "false"

import re

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from delegated_recovery.core.controller import RecoveryController
from delegated_recovery.core.db.store import InMemoryRecordStore, SqlRecordStore
from delegated_recovery.core.db.tables.base import Base
from delegated_recovery.core.lifecycle import TokenLifecycle
from delegated_recovery.core.token import TokenIssuer

SAVE_TOKEN_URL = "https://provider.example.com/recovery/save-token/"

STATE_INPUT = re.compile(r'name="state" value="([^"]*)"')
TOKEN_INPUT = re.compile(r'name="token" value="([^"]*)"')


def extract_state(html: str) -> str:
    match = STATE_INPUT.search(html)
    assert match, "state input missing from page"
    return match.group(1)


def extract_token(html: str) -> str:
    match = TOKEN_INPUT.search(html)
    assert match, "token input missing from page"
    return match.group(1)


@pytest.fixture(scope="function")
def db_session():
    """Create an isolated test database session for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    Session = sessionmaker(bind=engine, expire_on_commit=False)
    session = Session()

    yield session

    session.close()
    Base.metadata.drop_all(engine)


@pytest.fixture(params=["memory", "sql"])
def store(request, db_session):
    """Run store-backed tests against both record store implementations."""
    if request.param == "memory":
        return InMemoryRecordStore()
    return SqlRecordStore(db_session)


@pytest.fixture
def lifecycle(store):
    return TokenLifecycle(store)


@pytest.fixture
def token_issuer():
    return TokenIssuer(
        private_key=generate_private_key(),
        issuer="https://rp.example.com",
        audience="https://provider.example.com",
    )


@pytest.fixture
def controller(lifecycle, token_issuer):
    return RecoveryController(lifecycle, token_issuer, SAVE_TOKEN_URL)


@pytest.fixture
def client_factory():
    """Factory to create test clients with a specific db session."""

    def create_client(session):
        from delegated_recovery.app import app
        from delegated_recovery.core.db.session import get_db

        def override_get_db():
            yield session

        app.dependency_overrides[get_db] = override_get_db
        return TestClient(app)

    yield create_client

    # Cleanup
    from delegated_recovery.app import app

    app.dependency_overrides.clear()
