# tests/conftest.py

from __future__ import annotations

import pytest

from app import create_app
from config import TestConfig
from models import db

from .helpers import bearer, register


@pytest.fixture()
def app():
    """
    Fresh application per test.

    TestConfig points at an in-memory SQLite database, so every test starts
    with empty tables.
    """
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture()
def credentials(app_ctx):
    return app_ctx.extensions["credential_store"]


@pytest.fixture()
def task_store(app_ctx):
    return app_ctx.extensions["task_store"]


@pytest.fixture()
def auth_headers(client) -> dict[str, str]:
    """Headers for a freshly registered user a@x.com."""
    resp = register(client)
    assert resp.status_code == 201
    return bearer(resp.get_json()["token"])
