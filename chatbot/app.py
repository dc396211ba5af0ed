from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import List, Optional
import json
import uuid

from backend.services.fallback import respond
from backend.utils.logger import init_logging, get_logger, set_request_id, clear_request_id
from chatbot.llm.llm import LLMError, generate_reply

# Initialize logging on startup
init_logging()
logger = get_logger("chatbot.app")

app = FastAPI(
    title="MindMate Chatbot",
    description="Supportive assistant replies with a keyword fallback.",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class HistoryItem(BaseModel):
    role: str
    content: str


class ChatbotResponse(BaseModel):
    response: str


def invalid_message() -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Invalid message"})


def _parse_history(raw) -> List[dict]:
    history = []
    if not isinstance(raw, list):
        return history
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            history.append(HistoryItem(**item).model_dump())
        except (TypeError, ValueError):
            continue
    return history


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
    set_request_id(request_id)
    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        clear_request_id()


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "chatbot"}


@app.post("/chatbot", response_model=ChatbotResponse)
async def chatbot(request: Request):
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return invalid_message()

    message: Optional[str] = body.get("message") if isinstance(body, dict) else None
    if not isinstance(message, str) or not message.strip():
        logger.info("Rejected chatbot request with invalid message")
        return invalid_message()

    history = _parse_history(body.get("conversationHistory", []))

    try:
        reply = await generate_reply(message, history)
    except LLMError as e:
        logger.warning(f"Model unavailable, using fallback: {e}")
        reply = respond(message)

    return {"response": reply}
