import asyncio
import os
import tempfile
from contextlib import asynccontextmanager
from types import SimpleNamespace

_TMP_DIR = tempfile.mkdtemp(prefix="alumnilink-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/default.db"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["COHERE_API_KEY"] = ""

import fakeredis
import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from alumnilink.auth import create_user_token, get_password_hash
from alumnilink.database import create_tables, get_db, get_redis
from alumnilink.main import create_app
from alumnilink.models.user import UserRole
from alumnilink.repositories.user_repository import UserRepository
from alumnilink.services.ai_gateway import AIGateway


class FakeCohere:
    """Stands in for ``cohere.AsyncClient``; replies are consumed in order."""

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls = []

    async def chat(self, message, model, **kwargs):
        self.calls.append({"message": message, "model": model, **kwargs})
        reply = self.replies.pop(0) if self.replies else "Happy to help!"
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(text=reply)


class FakeSocket:
    def __init__(self, fail=False, stall=False):
        self.sent = []
        self.fail = fail
        self.stall = stall

    async def send_text(self, text):
        if self.stall:
            await asyncio.sleep(3600)
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(text)


def _override_get_db(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session
    return _get_db


@pytest.fixture
def engine(tmp_path):
    return create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(engine, session_factory):
    await create_tables(engine)
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db, session_factory):
    counter = {"n": 0}

    async def _make_user(name=None, role=UserRole.STUDENT, email=None, password="secret123"):
        counter["n"] += 1
        name = name or f"User{counter['n']}"
        async with session_factory() as session:
            return await UserRepository(session).create(
                name=name,
                email=email or f"{name.lower()}@example.com",
                hashed_password=get_password_hash(password),
                role=role,
            )

    return _make_user


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        return {"Authorization": f"Bearer {create_user_token(user)}"}
    return _auth_headers


@pytest.fixture
def redis_client():
    return fakeredis.FakeAsyncRedis(decode_responses=True)


@pytest.fixture
def app(db, session_factory, redis_client, tmp_path):
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db(session_factory)
    application.dependency_overrides[get_redis] = lambda: redis_client
    application.state.file_storage.upload_dir = tmp_path / "uploads"
    application.state.file_storage.upload_dir.mkdir()
    return application


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


@pytest.fixture
def fake_cohere(app):
    fake = FakeCohere()
    app.state.ai_gateway = AIGateway(client=fake)
    return fake


@pytest.fixture
def ws_client(engine, session_factory):
    """Sync client whose lifespan creates the schema and two members."""

    @asynccontextmanager
    async def lifespan(application):
        await create_tables(engine)
        async with session_factory() as session:
            repo = UserRepository(session)
            application.state.alice = await repo.create(
                name="Alice", email="alice@example.com",
                hashed_password=get_password_hash("secret123"), role=UserRole.STUDENT,
            )
            application.state.bob = await repo.create(
                name="Bob", email="bob@example.com",
                hashed_password=get_password_hash("secret123"), role=UserRole.ALUMNI,
            )
        yield

    application = create_app(lifespan=lifespan)
    application.dependency_overrides[get_db] = _override_get_db(session_factory)
    with TestClient(application) as test_client:
        yield test_client


@pytest.fixture
def fake_socket():
    return FakeSocket


@pytest.fixture
def fake_cohere_client():
    return FakeCohere
