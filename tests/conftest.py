"""Pytest configuration and fixtures."""

import hashlib
import os
import secrets

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker

from userapi import models  # noqa: F401
from userapi.database import Base, get_db
from userapi.main import app
from userapi.services.pairs import get_pairs_client
from userapi.stores.user_store import SqlUserStore

VALID_PAIRS = ["btc_eth", "btc_ltc", "eth_ltc"]
NO_MX_DOMAINS = {"no-mx.example"}


class AuthHeaders(dict):
    """Dict subclass that also stores the logged-in user's id and email."""

    def __init__(self, *args, user_id: int | None = None, email: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_id = user_id
        self.email = email


class FakePairsClient:
    """Stands in for the external valid-pairs API."""

    def __init__(self, pairs: list[str] | None = None):
        self.pairs = list(VALID_PAIRS if pairs is None else pairs)
        self.error: Exception | None = None
        self.calls = 0

    async def fetch_valid_pairs(self) -> list[str]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.pairs)


def _sqlite_gen_salt(kind: str) -> str:
    return f"${kind}${secrets.token_hex(8)}$"


def _sqlite_crypt(password: str, salt: str) -> str:
    # Mirrors pgcrypto: the salt prefix of an existing hash reproduces that hash
    prefix = "$".join(salt.split("$")[:3]) + "$"
    return prefix + hashlib.sha256((prefix + password).encode()).hexdigest()


# Use test database - PostgreSQL when DATABASE_URL is set, SQLite locally
if os.getenv("DATABASE_URL"):
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").replace("/userapi", "/userapi_test")
else:
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

if engine.dialect.name == "sqlite":

    @event.listens_for(engine, "connect")
    def register_pgcrypto_functions(dbapi_connection, connection_record):
        dbapi_connection.create_function("gen_salt", 1, _sqlite_gen_salt)
        dbapi_connection.create_function("crypt", 2, _sqlite_crypt)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        from sqlalchemy_utils import create_database, database_exists

        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

        with engine.begin() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS pgcrypto"))

    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture(autouse=True)
def mx_records(monkeypatch):
    """Resolve MX records locally; domains in the returned set have none."""
    domains = set(NO_MX_DOMAINS)
    monkeypatch.setattr(
        "userapi.utils.email.has_mx_record", lambda domain: domain not in domains
    )
    return domains


@pytest.fixture
def pairs_client():
    """Fake valid-pairs API shared by the client and service fixtures."""
    return FakePairsClient()


@pytest.fixture
def store(db):
    return SqlUserStore(db)


@pytest.fixture(scope="function")
def client(db, pairs_client):
    """Create a test client with database and valid-pairs overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_pairs_client] = lambda: pairs_client
    # Startup (connect + migrate) is not run; the overrides supply its resources
    test_client = TestClient(app, raise_server_exceptions=False)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client):
    """Sign up and log in a user, returning bearer headers with user info."""
    email = "test@example.com"
    password = "testpass123"

    response = client.post("/signup", json={"email": email, "password": password})
    assert response.status_code == 200
    user_id = response.json()["id"]

    response = client.post("/login", json={"email": email, "password": password})
    assert response.status_code == 200
    token = response.json()["token"]

    return AuthHeaders({"Authorization": f"Bearer {token}"}, user_id=user_id, email=email)
