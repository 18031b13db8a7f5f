from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing
import logging

import httpx

from chatstream.core.errors import ChatTransportError
from chatstream.schemas.chat import ChatEvent, ChatRequest, parse_chat_event
from chatstream.services.contracts import ChatClientProtocol
from chatstream.services.frame_decoder import DecodeErrorHook, adecode_frames

logger = logging.getLogger(__name__)


class ChatClient(ChatClientProtocol):
    """httpx client for the streaming ``POST /chat`` endpoint."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 60.0,
        client: httpx.AsyncClient | None = None,
        on_decode_error: DecodeErrorHook | None = None,
    ) -> None:
        self._client = client if client is not None else httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds)
        self._on_decode_error = on_decode_error

    async def aclose(self) -> None:
        await self._client.aclose()

    async def stream_events(self, request: ChatRequest) -> AsyncIterator[ChatEvent]:
        logger.debug(
            "opening chat stream",
            extra={
                "session_id": request.session_id,
                "customer_id": request.customer_id,
                "prompt_length": len(request.prompt),
            },
        )
        try:
            async with self._client.stream(
                "POST",
                "/chat",
                json=request.model_dump(mode="json"),
                headers={"Accept": "text/event-stream"},
            ) as response:
                if not response.is_success:
                    raise ChatTransportError(
                        f"HTTP error! status: {response.status_code}",
                        status_code=response.status_code,
                    )
                async with aclosing(adecode_frames(response.aiter_bytes(), self._on_decode_error)) as records:
                    async for record in records:
                        event = parse_chat_event(record)
                        if event is not None:
                            yield event
        except httpx.HTTPError as exc:
            raise ChatTransportError(f"chat stream failed: {exc}") from exc
