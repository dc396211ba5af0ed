from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Protocol
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from backend.core.database import utcnow
from backend.models.chat import ChatMessage, ChatSession, DEFAULT_SESSION_TITLE
from backend.utils.logger import get_logger

logger = get_logger("backend.services.chat_store")


class ChatStoreError(RuntimeError):
    """A read or write against the chat tables failed."""


class ChatStore(Protocol):
    async def create_session(self, user_id: str, title: str = DEFAULT_SESSION_TITLE) -> ChatSession: ...

    async def get_session(self, session_id: int, user_id: str) -> Optional[ChatSession]: ...

    async def list_sessions(self, user_id: str) -> List[ChatSession]: ...

    async def delete_session(self, session_id: int, user_id: str) -> bool: ...

    async def list_messages(self, session_id: int) -> List[ChatMessage]: ...

    async def add_message(self, session_id: int, user_id: str, text: str, is_bot: bool) -> ChatMessage: ...


class SqlChatStore:
    """
    ChatStore over SQLAlchemy. Every call opens its own short-lived session,
    so one store can be shared by concurrent turns. The session factory must
    be built with expire_on_commit=False; returned rows are used detached.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str, *, write: bool = False, **context) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as db:
            try:
                yield db
                if write:
                    await db.commit()
            except SQLAlchemyError as e:
                if write:
                    await db.rollback()
                logger.error("Chat store operation failed", extra={
                    "operation": operation,
                    "error": str(e),
                    **context,
                })
                raise ChatStoreError(f"{operation} failed") from e

    async def create_session(self, user_id: str, title: str = DEFAULT_SESSION_TITLE) -> ChatSession:
        chat_session = ChatSession(user_id=user_id, title=title)
        async with self._session("create_session", write=True, user_id=user_id) as db:
            db.add(chat_session)
        return chat_session

    async def get_session(self, session_id: int, user_id: str) -> Optional[ChatSession]:
        async with self._session("get_session", session_id=session_id) as db:
            result = await db.execute(
                select(ChatSession).filter(
                    ChatSession.id == session_id,
                    ChatSession.user_id == user_id,
                )
            )
            return result.scalar_one_or_none()

    async def list_sessions(self, user_id: str) -> List[ChatSession]:
        async with self._session("list_sessions", user_id=user_id) as db:
            result = await db.execute(
                select(ChatSession)
                .filter(ChatSession.user_id == user_id)
                .order_by(ChatSession.updated_at.desc(), ChatSession.id.desc())
            )
            return list(result.scalars().all())

    async def delete_session(self, session_id: int, user_id: str) -> bool:
        async with self._session("delete_session", write=True, session_id=session_id) as db:
            owned = await db.execute(
                select(ChatSession.id).filter(
                    ChatSession.id == session_id,
                    ChatSession.user_id == user_id,
                )
            )
            if owned.scalar_one_or_none() is None:
                return False
            # Messages go first; the cascade is not relied on for SQLite
            await db.execute(delete(ChatMessage).where(ChatMessage.session_id == session_id))
            await db.execute(delete(ChatSession).where(ChatSession.id == session_id))
        return True

    async def list_messages(self, session_id: int) -> List[ChatMessage]:
        async with self._session("list_messages", session_id=session_id) as db:
            result = await db.execute(
                select(ChatMessage)
                .filter(ChatMessage.session_id == session_id)
                .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
            )
            return list(result.scalars().all())

    async def add_message(self, session_id: int, user_id: str, text: str, is_bot: bool) -> ChatMessage:
        message = ChatMessage(
            session_id=session_id,
            user_id=user_id,
            message=text,
            is_bot=is_bot,
        )
        async with self._session("add_message", write=True, session_id=session_id, is_bot=is_bot) as db:
            db.add(message)
            await db.execute(
                update(ChatSession)
                .where(ChatSession.id == session_id)
                .values(updated_at=utcnow())
            )
        return message
