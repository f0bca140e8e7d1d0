"""Pytest configuration and shared fixtures."""
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-for-hs256")

from collections import defaultdict
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from viticult.core.auth import create_access_token, hash_password
from viticult.domain.admin import AdminPrincipal
from viticult.infrastructure.redis import MemoryTokenStore

ADMIN_EMAIL = "admin@viticult.co.uk"
ADMIN_PASSWORD = "Cask-Strength-2024"


@pytest.fixture(scope="session")
def admin_password_hash():
    """bcrypt hash of ``ADMIN_PASSWORD`` (hashed once, bcrypt is slow)."""
    return hash_password(ADMIN_PASSWORD)


@pytest.fixture
def admin_document(admin_password_hash):
    """Stored admin account."""
    return {
        "_id": ObjectId(),
        "email": ADMIN_EMAIL,
        "passwordHash": admin_password_hash,
        "role": "admin",
        "isActive": True,
        "createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }


@pytest.fixture
def collections():
    """One MagicMock per collection name, created on first access."""
    return defaultdict(MagicMock)


@pytest.fixture
def mock_db(collections, admin_document):
    """MagicMock database whose collections come from ``collections``."""
    db = MagicMock()
    db.__getitem__.side_effect = lambda name: collections[name]
    collections["admins"].find_one.return_value = admin_document
    return db


@pytest.fixture
def token_store():
    return MemoryTokenStore()


@pytest.fixture
def mock_notifications():
    """Notification service double; background tasks call it synchronously."""
    return MagicMock()


@pytest.fixture
def admin_token(admin_document):
    return create_access_token(AdminPrincipal(id=str(admin_document["_id"]), email=ADMIN_EMAIL))


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def test_client(mock_db, token_store, mock_notifications):
    """FastAPI test client wired to the mock database and memory store."""
    from main import app
    from viticult.api.deps import get_notifications
    from viticult.infrastructure.mongo import get_database
    from viticult.infrastructure.redis import get_token_store

    app.dependency_overrides[get_database] = lambda: mock_db
    app.dependency_overrides[get_token_store] = lambda: token_store
    app.dependency_overrides[get_notifications] = lambda: mock_notifications
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def authenticated_client(test_client, admin_headers):
    """Test client sending the admin bearer token."""
    test_client.headers.update(admin_headers)
    return test_client


@pytest.fixture
def csrf_headers(authenticated_client):
    """Fresh single-use CSRF header for a state-changing admin request."""
    def _issue():
        response = authenticated_client.get("/api/admin/csrf-token")
        return {"X-CSRF-Token": response.json()["csrfToken"]}
    return _issue
