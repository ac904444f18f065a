import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from fitrack.app import create_app
from fitrack.config import Settings

STRONG_PASSWORD = "Abcdef1!"


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway SQLite file, with the catalogue seeded."""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'fitrack.db'}",
        secret_key="test-secret",
        seed_catalog=True,
    )


@pytest.fixture()
def app(settings):
    return create_app(settings)


@pytest.fixture()
def db(app):
    return app.state.db


@pytest.fixture()
def auth(app):
    return app.state.auth


@pytest.fixture()
def client(app):
    return TestClient(app, follow_redirects=False)


@pytest.fixture()
def other_client(app):
    return TestClient(app, follow_redirects=False)


@pytest.fixture()
def make_user(auth):
    """Register a user through the auth service and return its session record."""

    def _make(username: str, email: str = "", password: str = STRONG_PASSWORD):
        outcome = auth.register(
            username=username,
            email=email or f"{username}@x.com",
            password=password,
            confirm_password=password,
        )
        assert outcome.success, outcome.errors
        return outcome.session

    return _make


def register(client: TestClient, username: str, email: str = "", password: str = STRONG_PASSWORD):
    return client.post(
        "/auth/register",
        data={
            "username": username,
            "email": email or f"{username}@x.com",
            "password": password,
            "confirm_password": password,
        },
    )
