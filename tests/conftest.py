"""Shared test utilities and fixtures for chatstream tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
import json

import pytest

from chatstream.core.errors import ConversationFetchError
from chatstream.core.settings import Settings
from chatstream.schemas.chat import ChatEvent, ChatRequest, parse_chat_event
from chatstream.schemas.conversation import Conversation
from chatstream.services.session import ChatContext


def ndjson(*events: dict) -> bytes:
    return "".join(json.dumps(event) + "\n" for event in events).encode("utf-8")


class FakeChatClient:
    """Scripted chat transport; each send consumes the next scripted response.

    A response item may be an event dict, an exception to raise, or an
    ``asyncio.Event`` the stream waits on before continuing.
    """

    def __init__(self, responses: list[list[object]]) -> None:
        self._responses = responses
        self.requests: list[ChatRequest] = []
        self.closed_streams = 0
        self.started = asyncio.Event()

    async def stream_events(self, request: ChatRequest) -> AsyncIterator[ChatEvent]:
        self.requests.append(request)
        response = self._responses[len(self.requests) - 1]
        try:
            for item in response:
                if isinstance(item, asyncio.Event):
                    self.started.set()
                    await item.wait()
                    continue
                if isinstance(item, Exception):
                    raise item
                event = parse_chat_event(item)
                if event is not None:
                    yield event
        finally:
            self.closed_streams += 1

    async def aclose(self) -> None:
        return None


class FakeConversationStore:
    """Conversation store fake that fails a configured number of times before answering."""

    def __init__(self, conversation: Conversation, failures: int = 0, retryable: bool = True) -> None:
        self._conversation = conversation
        self._failures = failures
        self._retryable = retryable
        self.fetch_calls: list[str] = []

    async def fetch_conversation(self, conversation_id: str) -> Conversation:
        self.fetch_calls.append(conversation_id)
        if len(self.fetch_calls) <= self._failures:
            raise ConversationFetchError("Failed to fetch conversation: 503", status_code=503, retryable=self._retryable)
        return self._conversation


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def chat_context() -> ChatContext:
    return ChatContext(user="alice@example.com", customer_id="customer-1", timezone="Europe/Madrid")


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def tool_conversation() -> Conversation:
    return Conversation.model_validate(
        {
            "session_id": "conv-1",
            "customer_id": "customer-1",
            "messages": [
                {"role": "system", "content": "You are a booking assistant."},
                {"role": "user", "content": "How many bookings today?"},
                {
                    "role": "assistant",
                    "content": "",
                    "tool_calls": [
                        {
                            "id": "t1",
                            "type": "function",
                            "function": {"name": "count_bookings", "arguments": "{\"day\": \"today\"}"},
                        }
                    ],
                },
                {"role": "tool", "tool_call_id": "t1", "content": "{\"count\": 12}"},
            ],
            "ratings": {"3": 4},
        }
    )
