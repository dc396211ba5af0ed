import asyncio

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from backend.models.chat import DEFAULT_SESSION_TITLE
from backend.services.chat_store import ChatStoreError, SqlChatStore
from backend.services.orchestrator import ConversationOrchestrator, TurnGuard, TurnStatus
from conftest import FakeAssistant


def test_create_and_get_session_is_owner_scoped(session_factory):
    store = SqlChatStore(session_factory)

    async def scenario():
        created = await store.create_session("alice")
        mine = await store.get_session(created.id, "alice")
        theirs = await store.get_session(created.id, "bob")
        return created, mine, theirs

    created, mine, theirs = asyncio.run(scenario())

    assert created.id is not None
    assert created.title == DEFAULT_SESSION_TITLE
    assert mine.id == created.id
    assert theirs is None


def test_messages_come_back_in_insertion_order(session_factory):
    store = SqlChatStore(session_factory)

    async def scenario():
        chat_session = await store.create_session("alice")
        for i, is_bot in enumerate([False, True, False, True]):
            await store.add_message(chat_session.id, "alice", f"message {i}", is_bot=is_bot)
        return await store.list_messages(chat_session.id)

    messages = asyncio.run(scenario())

    assert [m.message for m in messages] == [f"message {i}" for i in range(4)]
    assert [m.role for m in messages] == ["user", "assistant", "user", "assistant"]


def test_sessions_listed_most_recently_active_first(session_factory):
    store = SqlChatStore(session_factory)

    async def scenario():
        older = await store.create_session("alice")
        newer = await store.create_session("alice")
        await store.create_session("bob")
        await store.add_message(older.id, "alice", "bump", is_bot=False)
        return older, newer, await store.list_sessions("alice")

    older, newer, sessions = asyncio.run(scenario())

    assert [s.id for s in sessions] == [older.id, newer.id]


def test_delete_session_removes_messages_and_checks_owner(session_factory):
    store = SqlChatStore(session_factory)

    async def scenario():
        chat_session = await store.create_session("alice")
        await store.add_message(chat_session.id, "alice", "hello", is_bot=False)
        refused = await store.delete_session(chat_session.id, "bob")
        deleted = await store.delete_session(chat_session.id, "alice")
        remaining = await store.list_messages(chat_session.id)
        gone = await store.get_session(chat_session.id, "alice")
        return refused, deleted, remaining, gone

    refused, deleted, remaining, gone = asyncio.run(scenario())

    assert refused is False
    assert deleted is True
    assert remaining == []
    assert gone is None


def test_database_errors_become_chat_store_errors(session_factory):
    store = SqlChatStore(session_factory)

    async def drop_messages_table():
        async with session_factory() as db:
            await db.execute(text("DROP TABLE chat_messages"))
            await db.commit()

    async def scenario():
        chat_session = await store.create_session("alice")
        await drop_messages_table()
        await store.add_message(chat_session.id, "alice", "hello", is_bot=False)

    with pytest.raises(ChatStoreError) as exc_info:
        asyncio.run(scenario())

    assert isinstance(exc_info.value.__cause__, OperationalError)


def test_turn_through_sql_store_keeps_user_entry_first(session_factory):
    store = SqlChatStore(session_factory)
    orchestrator = ConversationOrchestrator("alice", store, FakeAssistant(), guard=TurnGuard())

    async def scenario():
        chat_session = await orchestrator.create_session()
        result = await orchestrator.submit(chat_session.id, "How do I calm down?")
        return result, await store.list_messages(chat_session.id)

    result, messages = asyncio.run(scenario())

    assert result.status == TurnStatus.ANSWERED
    assert result.user_message.created_at <= result.assistant_message.created_at
    assert [(m.is_bot, m.message) for m in messages] == [
        (False, "How do I calm down?"),
        (True, "I'm here for you."),
    ]
    assert messages[0].created_at <= messages[1].created_at
    assert [m.id for m in messages] == [result.user_message.id, result.assistant_message.id]
