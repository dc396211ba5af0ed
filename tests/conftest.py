import asyncio
import os

# Settings are read at import time
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("LOG_TO_FILE", "0")
os.environ.setdefault("GOOGLE_API_KEY", "")

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from backend.core import rate_limit
from backend.core.config import settings
from backend.core.database import Base, get_db
from backend.models import chat, community, profile  # noqa: F401
from backend.services.chat_store import SqlChatStore


def make_token(user_id: str) -> str:
    return jwt.encode({"sub": user_id}, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


class FakeAssistant:
    """Returns canned replies, or raises the given exception."""

    def __init__(self, reply: str = "I'm here for you.", error: Exception = None):
        self.reply_text = reply
        self.error = error
        self.calls = []

    async def reply(self, message, history):
        self.calls.append((message, [dict(h) for h in history]))
        if self.error is not None:
            raise self.error
        return self.reply_text


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    monkeypatch.setattr(rate_limit, "_redis_checked", True)
    monkeypatch.setattr(rate_limit, "_redis", None)


@pytest.fixture
def session_factory(tmp_path):
    # NullPool: every event loop opens its own connection to the file
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_tables())
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest.fixture
def assistant():
    return FakeAssistant()


@pytest.fixture
def client(session_factory, assistant):
    from backend.api import chat as chat_api
    from backend.main import app

    async def override_get_db():
        async with session_factory() as db:
            yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[chat_api.get_chat_store] = lambda: SqlChatStore(session_factory)
    app.dependency_overrides[chat_api.get_assistant] = lambda: assistant
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def create_profile(client):
    def _create(user_id: str, role: str = "patient", **fields):
        body = {
            "email": f"{user_id}@example.com",
            "full_name": fields.pop("full_name", user_id.title()),
            "role": role,
            **fields,
        }
        response = client.post("/profiles/me", json=body, headers=auth_headers(user_id))
        assert response.status_code == 201, response.text
        return response.json()
    return _create
