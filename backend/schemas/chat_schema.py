from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

class ChatSessionResponse(BaseModel):
    id: int
    user_id: str
    title: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class ChatSessionList(BaseModel):
    sessions: List[ChatSessionResponse]

class ChatMessageResponse(BaseModel):
    id: Optional[int] = None  # None when the reply could not be stored
    session_id: int
    user_id: str
    message: str
    is_bot: bool
    created_at: datetime

    class Config:
        from_attributes = True

class ChatMessageList(BaseModel):
    session_id: int
    messages: List[ChatMessageResponse]

class SendMessageRequest(BaseModel):
    message: str

class TurnResponse(BaseModel):
    status: str
    reason: Optional[str] = None
    user_message: Optional[ChatMessageResponse] = None
    assistant_message: Optional[ChatMessageResponse] = None
    used_fallback: bool = False
    assistant_saved: bool = False
    advisory: Optional[str] = None
