import os
import uuid

# Must be set before the application modules read their settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_TO_FILE"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["GOOGLE_CLOUD_API_KEY"] = "test-key"
os.environ["ENVIRONMENT"] = "test"

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from sinhala_scribe.api.deps import get_chunk_service  # noqa: E402
from sinhala_scribe.db.base_class import Base  # noqa: E402
from sinhala_scribe.db.session import build_engine, get_db  # noqa: E402
from sinhala_scribe.main import app  # noqa: E402
from sinhala_scribe.models import models  # noqa: E402,F401
from sinhala_scribe.services.chunk_service import ChunkTranscriptionService  # noqa: E402
from tests.utils import FakeProvider, make_token  # noqa: E402


@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def auth_headers(user_id):
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
async def client(session_maker, provider):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_chunk_service] = lambda: ChunkTranscriptionService(provider, api_key="test-key")

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
