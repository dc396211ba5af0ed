from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from backend.core.config import settings

def _get_async_db_url(sync_url: str) -> str:
    """Rewrite plain PostgreSQL URLs to use the asyncpg driver."""
    for prefix in ("postgresql+psycopg2://", "postgresql+psycopg://", "postgresql://", "postgres://"):
        if sync_url.startswith(prefix):
            return "postgresql+asyncpg://" + sync_url[len(prefix):]
    # Already async (asyncpg, aiosqlite, ...)
    return sync_url

async_db_url = _get_async_db_url(settings.DATABASE_URL)

engine = create_async_engine(async_db_url, echo=False)

AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

Base = declarative_base()

async def init_models() -> None:
    # Import for side effects: every model registers itself on Base
    from backend.models import chat, community, profile  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()

def utcnow() -> datetime:
    return datetime.now(timezone.utc)
