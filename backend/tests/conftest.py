"""
FolioScan Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   A real (in-memory SQLite) database per test, a LocalBlobStore in a
       temporary directory, the production service wiring on top, and an
       HTTPX client talking to the FastAPI app through ASGITransport.

Fixture Hierarchy (all function-scoped):
    db_engine ──▶ session_factory (counts opened sessions)
                      └──▶ services (ServiceContainer) ◀── blob_store
                               ├── folder_repo / note_repo
                               └── test_client (app.state wired by hand;
                                   ASGITransport does not run the lifespan)
"""

import io
import os
import tempfile

# Override settings for testing BEFORE any folioscan imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="folioscan_test_")
os.environ["BLOB_BACKEND"] = "local"
os.environ["FIREBASE_CREDENTIALS"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from folioscan.auth import IdentityVerifier, Principal
from folioscan.config import settings
from folioscan.database import Base, build_session_factory
from folioscan.exceptions import AuthenticationError
from folioscan.models.folder import Folder  # noqa: F401
from folioscan.models.note import Note  # noqa: F401
from folioscan.services.container import build_services
from folioscan.services.local_blob_store import LocalBlobStore

OWNER_A = "user-a"
OWNER_B = "user-b"

TOKENS = {
    "token-a": OWNER_A,
    "token-b": OWNER_B,
}

# Smallest JPEG the upload path will accept (SOI + JFIF header + EOI)
JPEG_BYTES = (
    b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00"
    b"\xff\xd9"
)

# 1x1 transparent PNG
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
    b"\x08\x06\x00\x00\x00\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f"
    b"\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)


class CountingSessionFactory:
    """Session factory wrapper recording how many sessions were opened."""

    def __init__(self, factory):
        self._factory = factory
        self.opened = 0

    def __call__(self):
        self.opened += 1
        return self._factory()


class FakeIdentityVerifier(IdentityVerifier):
    """Accepts the fixed tokens in TOKENS and nothing else."""

    async def verify(self, token: str) -> Principal:
        owner_id = TOKENS.get(token)
        if owner_id is None:
            raise AuthenticationError(message="Invalid auth token")
        return Principal(owner_id=owner_id, claims={"uid": owner_id})


def auth_headers(owner_token: str = "token-a") -> dict:
    return {"Authorization": f"Bearer {owner_token}"}


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    """
    Fresh in-memory SQLite database with both tables.

    StaticPool keeps one connection so every session sees the same memory DB.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return CountingSessionFactory(build_session_factory(db_engine))


# ══════════════════════════════════════════════════════════════════════════
# Services
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def blob_store(temp_storage):
    return LocalBlobStore(storage_root=temp_storage)


@pytest.fixture
def services(session_factory, blob_store):
    return build_services(settings, session_factory, blob_store=blob_store)


@pytest.fixture
def folder_repo(services):
    return services.folders


@pytest.fixture
def note_repo(services):
    return services.notes


@pytest.fixture
def sample_image():
    """A fresh readable stream over JPEG_BYTES."""
    return io.BytesIO(JPEG_BYTES)


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(services):
    """
    HTTPX AsyncClient bound to the FastAPI app.

    The container and a fake identity verifier are put on app.state directly.

    Usage:
        async def test_list(test_client):
            response = await test_client.get("/api/v1/folders/root", headers=auth_headers())
    """
    from folioscan.main import app

    app.state.services = services
    app.state.identity_verifier = FakeIdentityVerifier()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    del app.state.services
    del app.state.identity_verifier
