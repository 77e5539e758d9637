import os
import tempfile

# Settings are read at import time, so the environment must be in place first
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdef")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["MODERATOR_USERNAME"] = "moderator"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["MEDIA_ROOT"] = tempfile.mkdtemp(prefix="imoveis-media-")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from app.core.database import build_engine, get_db, init_db  # noqa: E402
from app.main import app  # noqa: E402
from app.utils.file_storage import BlobStore, get_blob_store  # noqa: E402


class FakeBlobStore(BlobStore):
    """In-memory blob store that records every upload and delete."""

    def __init__(self):
        self.uploaded = []
        self.deleted = []

    async def upload(self, data: bytes, content_type: str, extension: str) -> str:
        url = f"https://blobs.test/properties/{len(self.uploaded)}{extension}"
        self.uploaded.append(url)
        return url

    async def delete_one(self, url: str) -> None:
        self.deleted.append(url)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """A fresh SQLite database file per test, schema created the way startup does it."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(bind=engine)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest_asyncio.fixture
async def client(session_factory, blob_store):
    """
    HTTPX AsyncClient bound to the FastAPI app, with the test database and
    the recording blob store swapped in.
    """

    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client

    app.dependency_overrides.clear()

