"""
Shared fixtures: a fresh SQLite file per test, logged-in TestClients and a
hook that swaps the LLM client for a scripted fake.
"""

import os
from typing import Optional

import pytest

from astrasemi import llm_client
from astrasemi.tests.factories import FakeLLMClient, login, make_user


@pytest.fixture
def sqlalchemy_db(tmp_path):
    """Configure a fresh SQLAlchemy SQLite DB for tests."""
    from astrasemi.db.session import reset_engine, init_db

    old_db_url = os.environ.get("DATABASE_URL")
    db_path = tmp_path / "astrasemi_test.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"
    reset_engine()
    init_db()

    yield

    if old_db_url is not None:
        os.environ["DATABASE_URL"] = old_db_url
    else:
        os.environ.pop("DATABASE_URL", None)
    reset_engine()


@pytest.fixture
def db(sqlalchemy_db):
    """Plain session for service-level tests"""
    from astrasemi.db.session import SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(sqlalchemy_db):
    from fastapi.testclient import TestClient
    from astrasemi.api import app

    return TestClient(app)


@pytest.fixture
def user_client(client):
    """Client logged in as a regular user `alice`"""
    make_user("alice")
    login(client, "alice")
    return client


@pytest.fixture
def admin_client(client):
    """Client logged in as `admin`"""
    make_user("admin", password="admin", role="ADMIN")
    login(client, "admin", password="admin")
    return client


# =============================================================================
# LLM stand-in
# =============================================================================

@pytest.fixture
def fake_llm(monkeypatch):
    """Install a FakeLLMClient: `fake = fake_llm(['{"a": 1}'])`"""

    def install(contents=None, delay: float = 0.0, error: Optional[Exception] = None) -> FakeLLMClient:
        fake = FakeLLMClient(contents, delay=delay, error=error)
        monkeypatch.setattr(llm_client, "get_llm_client", lambda: fake)
        return fake

    return install
