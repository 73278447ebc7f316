"""
EggTrack Backend — Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the whole suite.
How:   Every test gets its own Settings pointing at a temp JSON file, so the
       store, the allocator and the full app run against real local storage.

Fixture Hierarchy:
    test_settings  Settings with a temp local file and a known secret
    ├── backend        LocalBackend on that file
    │   └── store      EntryStore
    │       └── allocator
    ├── app            create_app(test_settings)
    │   └── test_client  HTTPX AsyncClient over ASGITransport
    └── make_entry     factory for Entry objects
"""

import os
import tempfile
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Before any eggtrack import: the module-level app must not touch real storage
os.environ["STORAGE_BACKEND"] = "local"
os.environ["LOCAL_STORAGE_PATH"] = os.path.join(
    tempfile.mkdtemp(prefix="eggtrack_test_"), "entries.json"
)
os.environ["ADD_SECRET"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

from eggtrack.config import Settings  # noqa: E402
from eggtrack.schemas.entry import Entry  # noqa: E402
from eggtrack.services.allocator import EggIdAllocator  # noqa: E402
from eggtrack.services.entry_store import EntryStore  # noqa: E402
from eggtrack.storage.local import LocalBackend  # noqa: E402

TEST_SECRET = "s3cret"


@pytest.fixture
def storage_file(tmp_path):
    return tmp_path / "data" / "entries.json"


@pytest.fixture
def test_settings(storage_file):
    return Settings(
        _env_file=None,
        storage_backend="local",
        local_storage_path=str(storage_file),
        add_secret=TEST_SECRET,
        base_url="https://labels.example.com",
        log_level="WARNING",
        rate_limit_requests=1000,
    )


@pytest.fixture
def backend(storage_file):
    return LocalBackend(str(storage_file))


@pytest.fixture
def store(backend):
    return EntryStore(backend)


@pytest.fixture
def allocator(store):
    return EggIdAllocator(store)


@pytest.fixture
def make_entry():
    """
    Factory for Entry objects.

    Usage:
        entry = make_entry("Egg-3", name="Alice")
        marker = make_entry("Egg-10", is_reset=True)
    """

    def _make(egg_id: str = "Egg-1", **fields) -> Entry:
        fields.setdefault("id", str(uuid.uuid4()))
        fields.setdefault("name", "Alice")
        fields.setdefault("cage", "B12")
        fields.setdefault("link", f"https://www.notion.so/{egg_id}")
        return Entry(egg_id=egg_id, **fields)

    return _make


@pytest.fixture
def app(test_settings):
    from eggtrack.main import create_app

    return create_app(test_settings)


@pytest_asyncio.fixture
async def test_client(app):
    """
    HTTPX AsyncClient talking to a fresh app over ASGITransport.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
