import asyncio
from typing import Dict, List, Optional

from langchain_google_genai import ChatGoogleGenerativeAI

from backend.utils.logger import get_logger
from chatbot.llm.prompt_template import chat_prompt
from chatbot.utils.config import settings
from chatbot.utils.postprocess import clean_reply

logger = get_logger("chatbot.llm")

HISTORY_ROLES = {"user", "assistant"}


class LLMError(RuntimeError):
    """The model produced no usable reply."""


_llm: Optional[ChatGoogleGenerativeAI] = None


def get_llm() -> ChatGoogleGenerativeAI:
    """Build the chat model on first use so the service starts without a key."""
    global _llm
    if _llm is not None:
        return _llm
    if not settings.GOOGLE_API_KEY:
        raise LLMError("GOOGLE_API_KEY missing")
    _llm = ChatGoogleGenerativeAI(
        model=settings.LLM_MODEL,
        google_api_key=settings.GOOGLE_API_KEY,
        temperature=settings.LLM_TEMPERATURE,
        max_output_tokens=settings.LLM_MAX_OUTPUT_TOKENS,
        timeout=settings.LLM_TIMEOUT_SECONDS,
    )
    return _llm


def _content_text(content) -> str:
    # Newer providers return a list of content blocks instead of a string
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return ""


def build_messages(message: str, history: List[Dict[str, str]]):
    turns = [
        (item["role"], item["content"])
        for item in history
        if item.get("role") in HISTORY_ROLES and isinstance(item.get("content"), str)
    ]
    return chat_prompt.format_messages(history=turns, message=message)


async def generate_reply(message: str, history: List[Dict[str, str]], llm=None) -> str:
    """
    Ask the model for the next assistant turn.
    Raises LLMError on any failure, timeout, or empty reply.
    """
    logger.info("Generating reply", extra={
        "message_length": len(message),
        "history_length": len(history),
    })

    try:
        model = llm or get_llm()
        result = await asyncio.wait_for(
            model.ainvoke(build_messages(message, history)),
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )
    except LLMError:
        raise
    except asyncio.TimeoutError as e:
        raise LLMError("model call timed out") from e
    except Exception as e:
        logger.error(f"Model call failed: {e}", exc_info=True)
        raise LLMError(str(e)) from e

    reply = clean_reply(_content_text(getattr(result, "content", "")))
    if not reply:
        raise LLMError("empty reply")

    logger.info("Reply generated", extra={"reply_length": len(reply)})
    return reply
