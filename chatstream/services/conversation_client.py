from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from chatstream.core.errors import ConversationFetchError
from chatstream.schemas.conversation import Conversation, ConversationSummary
from chatstream.services.contracts import ConversationStoreProtocol

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = frozenset({408, 425, 429})


class ConversationClient(ConversationStoreProtocol):
    """httpx client for the conversation store REST API."""

    def __init__(self, base_url: str, timeout_seconds: float = 30.0, client: httpx.AsyncClient | None = None) -> None:
        self._client = client if client is not None else httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_conversation(self, conversation_id: str) -> Conversation:
        payload = await self._request("GET", f"/conversations/{conversation_id}", action="fetch conversation")
        try:
            return Conversation.model_validate(payload)
        except ValidationError as exc:
            raise ConversationFetchError("Conversation payload is malformed", retryable=False) from exc

    async def list_conversations(self, customer_id: str) -> list[ConversationSummary]:
        payload = await self._request("GET", f"/customers/{customer_id}/conversations", action="fetch conversations")
        try:
            return [ConversationSummary.model_validate(item) for item in payload or []]
        except ValidationError as exc:
            raise ConversationFetchError("Conversation list payload is malformed", retryable=False) from exc

    async def update_conversation(self, conversation_id: str, *, rating: int, feedback: str | None = None) -> Conversation:
        body: dict[str, Any] = {"rating": rating}
        if feedback is not None:
            body["feedback"] = feedback
        payload = await self._request(
            "PATCH",
            f"/conversations/{conversation_id}",
            action="update conversation",
            json=body,
        )
        return Conversation.model_validate(payload)

    async def rate_turn(
        self,
        conversation_id: str,
        *,
        turn_index: int,
        rating: int,
        feedback: str | None = None,
    ) -> None:
        body: dict[str, Any] = {"message_index": turn_index, "rating": rating}
        if feedback is not None:
            body["feedback"] = feedback
        await self._request("POST", f"/conversations/{conversation_id}/ratings", action="rate turn", json=body)

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._request("DELETE", f"/conversations/{conversation_id}", action="delete conversation")

    async def _request(self, method: str, url: str, *, action: str, json: Any = None) -> Any:
        try:
            response = await self._client.request(method, url, json=json)
        except httpx.HTTPError as exc:
            logger.warning("conversation store request failed", extra={"method": method, "url": url})
            raise ConversationFetchError(f"Failed to {action}: {exc}") from exc

        if response.is_error:
            status_code = response.status_code
            raise ConversationFetchError(
                f"Failed to {action}: {status_code}",
                status_code=status_code,
                retryable=status_code >= 500 or status_code in _RETRYABLE_STATUS_CODES,
            )
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ConversationFetchError(f"Failed to {action}: response is not JSON", retryable=False) from exc
