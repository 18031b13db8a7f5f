from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Protocol

from chatstream.schemas.chat import ChatEvent, ChatRequest
from chatstream.schemas.conversation import Conversation, ConversationSummary

if TYPE_CHECKING:
    from chatstream.services.transcript_loader import LoadedConversation


class ChatClientProtocol(Protocol):
    """Transport contract for one streamed chat request per call."""

    def stream_events(self, request: ChatRequest) -> AsyncIterator[ChatEvent]:
        """Yield validated protocol events in arrival order, releasing the response on exit."""

    async def aclose(self) -> None:
        """Release pooled connections."""


class ConversationStoreProtocol(Protocol):
    """Read and CRUD contract for the remote conversation store."""

    async def fetch_conversation(self, conversation_id: str) -> Conversation:
        """Fetch one complete persisted conversation, raising ``ConversationFetchError`` on failure."""

    async def list_conversations(self, customer_id: str) -> list[ConversationSummary]:
        """List past conversations for a customer."""

    async def update_conversation(self, conversation_id: str, *, rating: int, feedback: str | None = None) -> Conversation:
        """Store an overall rating and optional feedback for a conversation."""

    async def rate_turn(
        self,
        conversation_id: str,
        *,
        turn_index: int,
        rating: int,
        feedback: str | None = None,
    ) -> None:
        """Store a rating for one turn of a conversation."""

    async def delete_conversation(self, conversation_id: str) -> None:
        """Delete a conversation."""

    async def aclose(self) -> None:
        """Release pooled connections."""


class TranscriptLoaderProtocol(Protocol):
    """Loads a persisted conversation and replays it into a transcript."""

    async def load(self, conversation_id: str) -> LoadedConversation:
        """Return the replayed transcript plus ratings, retrying transient failures."""
