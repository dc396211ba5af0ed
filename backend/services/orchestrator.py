from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, Set
from backend.core.database import utcnow
from backend.models.chat import ChatMessage, ChatSession
from backend.services.assistant_client import AssistantUnavailable
from backend.services.chat_store import ChatStore, ChatStoreError
from backend.services.fallback import classify, respond
from backend.utils.logger import get_logger

logger = get_logger("backend.services.orchestrator")

FALLBACK_ADVISORY = "Connection issue. Using fallback response."


class Assistant(Protocol):
    async def reply(self, message: str, history: List[Dict[str, str]]) -> str: ...


class TurnStatus(str, Enum):
    ANSWERED = "answered"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class TurnResult:
    status: TurnStatus
    reason: Optional[str] = None
    user_message: Optional[ChatMessage] = None
    assistant_message: Optional[ChatMessage] = None
    used_fallback: bool = False
    assistant_saved: bool = False
    advisory: Optional[str] = None

    @classmethod
    def rejected(cls, reason: str) -> "TurnResult":
        return cls(status=TurnStatus.REJECTED, reason=reason)


class TurnGuard:
    """
    Sessions with a turn in flight. acquire() is a plain check-and-add with no
    await in between, so on one event loop two coroutines can never both win
    the same session.
    """

    def __init__(self) -> None:
        self._in_flight: Set[int] = set()

    def acquire(self, session_id: int) -> bool:
        if session_id in self._in_flight:
            return False
        self._in_flight.add(session_id)
        return True

    def release(self, session_id: int) -> None:
        self._in_flight.discard(session_id)

    def is_busy(self, session_id: int) -> bool:
        return session_id in self._in_flight


# Shared by every orchestrator in the process
turn_guard = TurnGuard()


class ConversationOrchestrator:
    """
    One user's view of their chat: the active session, its transcript, and
    the submit flow that always ends with exactly one assistant message.
    """

    def __init__(
        self,
        user_id: str,
        store: ChatStore,
        assistant: Assistant,
        *,
        guard: Optional[TurnGuard] = None,
        responder: Callable[[str], str] = respond,
        crisis_fast_path: bool = False,
    ):
        self.user_id = user_id
        self.store = store
        self.assistant = assistant
        self.guard = guard or turn_guard
        self.responder = responder
        self.crisis_fast_path = crisis_fast_path

        self.active_session: Optional[ChatSession] = None
        self.transcript: List[ChatMessage] = []

    async def create_session(self) -> ChatSession:
        chat_session = await self.store.create_session(self.user_id)
        self.active_session = chat_session
        self.transcript = []
        logger.info("Chat session created", extra={
            "user_id": self.user_id,
            "session_id": chat_session.id,
        })
        return chat_session

    async def select_session(self, session_id: int) -> Optional[List[ChatMessage]]:
        """Make session_id active and load its messages. None if not found or not owned."""
        chat_session = await self.store.get_session(session_id, self.user_id)
        if chat_session is None:
            return None
        messages = await self.store.list_messages(chat_session.id)
        self.active_session = chat_session
        self.transcript = messages
        return list(messages)

    def history(self) -> List[Dict[str, str]]:
        return self._history_of(self.transcript)

    @staticmethod
    def _history_of(messages: List[ChatMessage]) -> List[Dict[str, str]]:
        return [
            {"role": "assistant" if m.is_bot else "user", "content": m.message}
            for m in messages
        ]

    async def submit(self, session_id: int, user_text: Optional[str]) -> TurnResult:
        text = (user_text or "").strip()
        if not text:
            return TurnResult.rejected("empty_message")
        if self.active_session is None:
            return TurnResult.rejected("no_active_session")
        if self.active_session.id != session_id:
            return TurnResult.rejected("session_not_active")
        if not self.guard.acquire(session_id):
            logger.info("Turn rejected, previous turn still in flight", extra={"session_id": session_id})
            return TurnResult.rejected("turn_in_flight")

        try:
            # Another turn may have finished since select_session
            try:
                messages = await self.store.list_messages(session_id)
            except ChatStoreError as e:
                logger.error("Transcript not loaded, turn aborted", extra={
                    "session_id": session_id,
                    "error": str(e),
                })
                return TurnResult(status=TurnStatus.FAILED, reason="transcript_not_loaded")
            if self.active_session is not None and self.active_session.id == session_id:
                self.transcript = list(messages)
            return await self._run_turn(session_id, text, self._history_of(messages))
        finally:
            self.guard.release(session_id)

    async def _run_turn(self, session_id: int, text: str, history: List[Dict[str, str]]) -> TurnResult:
        try:
            user_message = await self.store.add_message(session_id, self.user_id, text, is_bot=False)
        except ChatStoreError as e:
            logger.error("User message not saved, turn aborted", extra={
                "session_id": session_id,
                "error": str(e),
            })
            return TurnResult(status=TurnStatus.FAILED, reason="user_message_not_saved")
        self._append(session_id, user_message)

        answer, used_fallback, advisory = await self._answer(session_id, text, history)

        assistant_saved = True
        try:
            assistant_message = await self.store.add_message(session_id, self.user_id, answer, is_bot=True)
        except ChatStoreError as e:
            assistant_saved = False
            logger.warning("Assistant message not saved; transcript shows it until reload", extra={
                "session_id": session_id,
                "error": str(e),
            })
            assistant_message = ChatMessage(
                session_id=session_id,
                user_id=self.user_id,
                message=answer,
                is_bot=True,
                created_at=utcnow(),
            )
        self._append(session_id, assistant_message)

        logger.info("Turn answered", extra={
            "session_id": session_id,
            "used_fallback": used_fallback,
            "assistant_saved": assistant_saved,
        })
        return TurnResult(
            status=TurnStatus.ANSWERED,
            user_message=user_message,
            assistant_message=assistant_message,
            used_fallback=used_fallback,
            assistant_saved=assistant_saved,
            advisory=advisory,
        )

    async def _answer(self, session_id: int, text: str, history: List[Dict[str, str]]):
        """(reply text, came from the local responder, advisory for the user)"""
        if self.crisis_fast_path and classify(text) == "crisis":
            logger.info("Crisis wording detected, answering locally", extra={"session_id": session_id})
            return self.responder(text), True, None

        try:
            return await self.assistant.reply(text, history), False, None
        except AssistantUnavailable as e:
            logger.warning("Remote assistant unavailable, using fallback", extra={
                "session_id": session_id,
                "error": str(e),
            })
        except Exception as e:
            logger.error("Remote assistant call crashed, using fallback", extra={
                "session_id": session_id,
                "error": str(e),
            }, exc_info=True)
        # The fallback only ever sees this turn's text, never the history
        return self.responder(text), True, FALLBACK_ADVISORY

    def _append(self, session_id: int, message: ChatMessage) -> None:
        # The user may have switched sessions while the turn was in flight
        if self.active_session is not None and self.active_session.id == session_id:
            self.transcript.append(message)
