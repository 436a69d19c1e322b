import sqlite3

import pytest
from fastapi.testclient import TestClient

from reverse_auction.config import Settings
from reverse_auction.main import create_app

SECRET = "test-secret"


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "auction.db"


@pytest.fixture
def settings(db_path):
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{db_path}",
        JWT_SECRET=SECRET,
        PASSWORD_SCHEMES=("plaintext",),
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def store(db_path):
    """Run raw SQL against the test database, bypassing the API."""

    def execute(sql, params=()):
        conn = sqlite3.connect(db_path)
        try:
            rows = conn.execute(sql, params).fetchall()
            conn.commit()
            return rows
        finally:
            conn.close()

    return execute


@pytest.fixture
def make_user(client):
    def _make(username, password="secret", admin=False):
        path = "/admin" if admin else "/signup"
        r = client.post(path, json={"username": username, "password": password})
        assert r.status_code == 201, r.text
        r = client.post("/login", json={"username": username, "password": password})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['token']}"}

    return _make


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def admin(make_user):
    return make_user("root", admin=True)


@pytest.fixture
def make_product(client):
    def _make(headers, title="Office chair", description="ergonomic"):
        r = client.post("/api/products", json={"title": title, "description": description}, headers=headers)
        assert r.status_code == 201, r.text
        return r.json()

    return _make
