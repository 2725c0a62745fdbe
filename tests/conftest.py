"""
Shared test fixtures.

Every test gets a fresh app bound to a temporary SQLite *file* (not
:memory:) so that threads opening their own connections see the same data.
Tables come from db.create_all(); roles and sports are seeded by create_app.
"""

from __future__ import annotations

import pytest

from app import create_app
from config import TestConfig
from models import db
from tests.factories import PASSWORD


# ── Fixtures ───────────────────────────────────────────────────────────────


@pytest.fixture()
def app(tmp_path):
    class _Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "test.db")

    application = create_app(_Config)
    yield application

    with application.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture()
def ctx(app):
    """An active app context for tests that call the store/search directly."""
    with app.app_context():
        yield app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def login(client):
    """login(email) -> Authorization header dict for that user."""

    def _login(email, password=PASSWORD):
        resp = client.post("/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.get_json()
        return {"Authorization": f"Bearer {resp.get_json()['token']}"}

    return _login
