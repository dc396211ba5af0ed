from fastapi import APIRouter, Depends, HTTPException, Response, status
from backend.core.config import settings
from backend.core.database import AsyncSessionLocal
from backend.core.rate_limit import rate_limit
from backend.core.security import get_current_user
from backend.models.profile import Profile
from backend.services.assistant_client import AssistantClient
from backend.services.chat_store import ChatStore, ChatStoreError, SqlChatStore
from backend.services.orchestrator import ConversationOrchestrator, TurnResult, TurnStatus
from backend.schemas.chat_schema import (
    ChatMessageList,
    ChatMessageResponse,
    ChatSessionList,
    ChatSessionResponse,
    SendMessageRequest,
    TurnResponse,
)
from backend.utils.logger import get_logger

logger = get_logger("backend.api.chat")

router = APIRouter(prefix="/chat", tags=["chat"])


# ------ Dependencies -----
def get_chat_store() -> ChatStore:
    return SqlChatStore(AsyncSessionLocal)

def get_assistant() -> AssistantClient:
    return AssistantClient.from_settings()

def get_orchestrator(
    current_user: Profile = Depends(get_current_user),
    store: ChatStore = Depends(get_chat_store),
    assistant: AssistantClient = Depends(get_assistant),
) -> ConversationOrchestrator:
    # One per request; the in-flight guard is shared process-wide
    return ConversationOrchestrator(
        current_user.id,
        store,
        assistant,
        crisis_fast_path=settings.CRISIS_FAST_PATH,
    )

def store_unavailable(e: ChatStoreError) -> HTTPException:
    logger.error("Chat store unavailable", extra={"error": str(e)})
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Chat is temporarily unavailable. Please try again.",
    )


# ------ Sessions -----
@router.get("/sessions", response_model=ChatSessionList)
async def list_sessions(
    current_user: Profile = Depends(get_current_user),
    store: ChatStore = Depends(get_chat_store),
):
    user_id = current_user.id
    try:
        sessions = await store.list_sessions(user_id)
    except ChatStoreError as e:
        raise store_unavailable(e)
    logger.info("Chat sessions listed", extra={"user_id": user_id, "count": len(sessions)})
    return ChatSessionList(sessions=[ChatSessionResponse.model_validate(s) for s in sessions])

@router.post("/sessions", response_model=ChatSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(orchestrator: ConversationOrchestrator = Depends(get_orchestrator)):
    try:
        return await orchestrator.create_session()
    except ChatStoreError as e:
        raise store_unavailable(e)

@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: int,
    current_user: Profile = Depends(get_current_user),
    store: ChatStore = Depends(get_chat_store),
):
    user_id = current_user.id
    try:
        deleted = await store.delete_session(session_id, user_id)
    except ChatStoreError as e:
        raise store_unavailable(e)
    if not deleted:
        raise HTTPException(status_code=404, detail="Chat session not found")
    logger.info("Chat session deleted", extra={"user_id": user_id, "session_id": session_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ------ Messages -----
@router.get("/sessions/{session_id}/messages", response_model=ChatMessageList)
async def get_messages(
    session_id: int,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
):
    try:
        messages = await orchestrator.select_session(session_id)
    except ChatStoreError as e:
        raise store_unavailable(e)
    if messages is None:
        raise HTTPException(status_code=404, detail="Chat session not found")
    return ChatMessageList(
        session_id=session_id,
        messages=[ChatMessageResponse.model_validate(m) for m in messages],
    )

@router.post("/sessions/{session_id}/messages", response_model=TurnResponse)
async def send_message(
    session_id: int,
    body: SendMessageRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
):
    """
    Submit one turn.
    1. Load the session (404 if it is not the caller's)
    2. Persist the user message, ask the remote assistant, fall back locally
    3. Return both messages; an empty message is ignored, not an error
    """
    rate_limit(f"chat:{orchestrator.user_id}", limit=settings.CHAT_RATE_LIMIT, window=settings.CHAT_RATE_WINDOW)

    if not body.message.strip():
        return TurnResponse(**_turn_payload(TurnResult.rejected("empty_message")))

    try:
        messages = await orchestrator.select_session(session_id)
    except ChatStoreError as e:
        raise store_unavailable(e)
    if messages is None:
        raise HTTPException(status_code=404, detail="Chat session not found")

    logger.info("Chat message received", extra={
        "user_id": orchestrator.user_id,
        "session_id": session_id,
        "message_length": len(body.message),
    })

    result = await orchestrator.submit(session_id, body.message)

    if result.status == TurnStatus.REJECTED and result.reason == "turn_in_flight":
        raise HTTPException(status_code=409, detail="A reply for this chat is still being generated")
    if result.status == TurnStatus.FAILED:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Your message could not be sent. Please try again.",
        )

    return TurnResponse(**_turn_payload(result))

def _turn_payload(result: TurnResult) -> dict:
    return {
        "status": result.status.value,
        "reason": result.reason,
        "user_message": ChatMessageResponse.model_validate(result.user_message) if result.user_message else None,
        "assistant_message": ChatMessageResponse.model_validate(result.assistant_message) if result.assistant_message else None,
        "used_fallback": result.used_fallback,
        "assistant_saved": result.assistant_saved,
        "advisory": result.advisory,
    }
