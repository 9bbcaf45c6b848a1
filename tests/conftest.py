"""
Lab dashboard test configuration

Shared fixtures: an app on in-memory SQLite, logged-in test clients and a
file store double that keeps uploads in memory.
"""

import logging
from datetime import datetime, timezone

import pytest

from labdash import create_app, db
from labdash.models import User
from labdash.storage import FileStore

# Configure logging for tests
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

ADMIN_EMAIL = "admin@test.local"
ADMIN_PASSWORD = "admin-pass"
USER_EMAIL = "user@test.local"
USER_PASSWORD = "user-pass"


class RecordingFileStore(FileStore):
    """Keeps uploads in memory and hands out fake URLs."""

    def __init__(self):
        self.uploads = []
        self.deleted = []

    def upload(self, filename, data, mime_type=None):
        url = f"memory://files/{len(self.uploads) + 1}/{filename}"
        self.uploads.append({"filename": filename, "data": data, "mime_type": mime_type, "url": url})
        return url

    def delete(self, url):
        self.deleted.append(url)


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test",
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "TZ_NAME": "UTC",
        "SCHEDULER_ENABLED": False,
        "UPLOAD_FOLDER": str(tmp_path),
        "ADMIN_EMAIL": ADMIN_EMAIL,
        "ADMIN_PASSWORD": ADMIN_PASSWORD,
    })
    with app.app_context():
        User.create_user(USER_EMAIL, USER_PASSWORD, name="Lab User")
    # left unpushed so every request gets its own app context and g
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def file_store(app):
    store = RecordingFileStore()
    app.extensions["labdash.file_store"] = store
    return store


@pytest.fixture
def anon_client(app):
    return app.test_client()


def _login(app, email, password):
    client = app.test_client()
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def client(app):
    """Client logged in as the seeded admin."""
    return _login(app, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def user_client(app):
    """Client logged in as a regular user."""
    return _login(app, USER_EMAIL, USER_PASSWORD)


@pytest.fixture
def today():
    return datetime.now(timezone.utc).date()


@pytest.fixture
def make_equipment(client):
    def _make(**overrides):
        payload = {"name": "Patient Monitor", "type": "Monitor", "location": "Lab 1"}
        payload.update(overrides)
        resp = client.post("/api/equipment", json=payload)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()
    return _make
