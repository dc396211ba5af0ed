from typing import Dict, List, Optional
import httpx
from backend.core.config import settings
from backend.utils.logger import get_logger

logger = get_logger("backend.services.assistant_client")


class AssistantUnavailable(RuntimeError):
    """The remote assistant did not produce a usable reply."""


class AssistantClient:
    """
    Client for the remote assistant endpoint (the chatbot service).

    POSTs {"message", "conversationHistory"} with a bearer token and expects
    {"response": "<text>"} back. Anything else is reported as
    AssistantUnavailable so the caller can fall back.
    """

    def __init__(
        self,
        url: str,
        api_key: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "AssistantClient":
        return cls(
            url=settings.CHATBOT_URL,
            api_key=settings.CHATBOT_API_KEY,
            timeout=settings.CHATBOT_TIMEOUT_SECONDS,
        )

    async def reply(self, message: str, history: List[Dict[str, str]]) -> str:
        payload = {"message": message, "conversationHistory": history}
        headers = {"Authorization": f"Bearer {self.api_key}"}

        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            try:
                response = await client.post(self.url, json=payload, headers=headers)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise AssistantUnavailable(f"assistant returned HTTP {e.response.status_code}") from e
            except httpx.HTTPError as e:
                raise AssistantUnavailable(f"assistant request failed: {e!r}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise AssistantUnavailable("assistant returned a non-JSON body") from e

        answer = data.get("response") if isinstance(data, dict) else None
        if not isinstance(answer, str) or not answer.strip():
            raise AssistantUnavailable("assistant response has no reply text")

        logger.debug("Assistant reply received", extra={
            "history_length": len(history),
            "answer_length": len(answer),
        })
        return answer
