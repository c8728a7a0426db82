# tests/conftest.py
import pytest
from unittest.mock import MagicMock
from pathlib import Path
from fastapi.testclient import TestClient

# Importing the class here binds the real Settings before the autouse fixture patches it.
from docportal.config import Settings, get_settings
from docportal.api import create_app
from docportal.auth import StaticCredentialAuthenticator
from docportal.storage.memory import InMemoryStorageClient


@pytest.fixture
def mock_settings():
    """
    Provides a mock of the application settings for testing.
    This avoids the need for environment variables during tests.
    """
    settings = MagicMock(spec=Settings)
    settings.STORAGE_PROVIDER = "azure"
    settings.STORAGE_ACCOUNT_NAME = "hrdocsaccount"
    settings.STORAGE_ACCOUNT_KEY = "dGVzdC1rZXk="
    settings.STORAGE_ACCOUNT_URL = None
    settings.STORAGE_CONTAINER_NAME = "hr-documents"
    settings.STORAGE_TIMEOUT_SECONDS = 5
    settings.MAX_UPLOAD_SIZE_BYTES = 2048
    settings.DROPBOX_APP_KEY = "test_key"
    settings.DROPBOX_APP_SECRET = "test_secret"
    settings.DROPBOX_REFRESH_TOKEN_ENV = None
    settings.DROPBOX_REFRESH_TOKEN_FILE = None
    settings.DROPBOX_UPLOAD_CHUNK_SIZE = 1024
    settings.TOKEN_STORAGE_FILE = ".dropbox.token"
    settings.ADMIN_USERNAME = "admin"
    settings.ADMIN_PASSWORD = "s3cret"
    settings.SESSION_TTL_SECONDS = 3600
    settings.APP_HOST = "127.0.0.1"
    settings.APP_PORT = 8000
    settings.cors_origins_list = ["*"]
    settings.LOG_LEVEL = "INFO"
    settings.LOG_FILE = Path("/tmp/docportal-test.log")
    settings.BASE_DIR = Path("/tmp")
    return settings


@pytest.fixture
def mock_storage_client():
    """Fixture for a mock storage client."""
    return MagicMock()


@pytest.fixture(autouse=True)
def patch_settings_class(monkeypatch, mock_settings):
    """
    This autouse fixture automatically replaces the `Settings` class constructor.
    Any part of the app code that calls `Settings()` during a test run will
    receive the `mock_settings` instance instead of a real settings object.
    """
    # The cache on get_settings might hold an instance from an earlier test.
    get_settings.cache_clear()
    monkeypatch.setattr("docportal.config.Settings", lambda *args, **kwargs: mock_settings)
    yield
    get_settings.cache_clear()


@pytest.fixture
def memory_store():
    return InMemoryStorageClient("hr-documents")


@pytest.fixture
def authenticator(mock_settings):
    return StaticCredentialAuthenticator(
        mock_settings.ADMIN_USERNAME,
        mock_settings.ADMIN_PASSWORD,
        mock_settings.SESSION_TTL_SECONDS,
    )


@pytest.fixture
def client(mock_settings, memory_store, authenticator):
    app = create_app(mock_settings, memory_store, authenticator)
    return TestClient(app)


@pytest.fixture
def auth_headers(client):
    response = client.post("/api/login", json={"username": "admin", "password": "s3cret"})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}
