"""Shared fixtures for filehost tests."""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from filehost.config import Settings
from filehost.main import create_app
from filehost.services.file_store import FileStore
from filehost.services.index_persistence import JsonSnapshotPersistence

UPLOAD_KEY = "test-upload-key"


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def storage_root(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def store(storage_root, clock):
    """File store with JSON snapshot persistence under a temp root."""
    file_store = FileStore(
        storage_root,
        persistence=JsonSnapshotPersistence(storage_root / "metadata.json"),
        clock=clock,
    )
    file_store.ensure_storage_layout()
    return file_store


@pytest.fixture
def settings(storage_root):
    return Settings(
        UPLOAD_KEY=UPLOAD_KEY,
        FILE_STORAGE_PATH=str(storage_root),
        INDEX_PERSISTENCE="json",
        MAX_UPLOAD_BYTES=1024 * 1024,
    )


@pytest.fixture
def client(settings):
    """TestClient with the lifespan run, so the store is built and loaded."""
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def upload(client):
    """Upload helper. Returns the raw response."""
    def _upload(name="a.txt", content=b"0123456789", mime="text/plain", key=UPLOAD_KEY):
        return client.post(
            "/api/upload",
            files={"file": (name, content, mime)},
            data={"uploadKey": key},
        )
    return _upload
