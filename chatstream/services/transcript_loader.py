from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging

from chatstream.core.errors import ConversationFetchError, ConversationLoadError
from chatstream.schemas.conversation import Conversation, TurnRating
from chatstream.services.contracts import ConversationStoreProtocol, TranscriptLoaderProtocol
from chatstream.services.retry import BackoffPolicy, RetryExhaustedError, Sleep, retry_async
from chatstream.transcript.reducer import Transcript, replay
from chatstream.transcript.units import units_from_conversation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedConversation:
    conversation_id: str
    transcript: Transcript
    ratings: dict[int, TurnRating] = field(default_factory=dict)
    conversation: Conversation | None = None


def transcript_from_conversation(conversation: Conversation) -> Transcript:
    """Replay a persisted conversation without any I/O."""
    return replay(units_from_conversation(conversation), id_prefix=conversation.session_id)


class TranscriptLoader(TranscriptLoaderProtocol):
    """Fetches persisted conversations with bounded retry and replays them."""

    def __init__(
        self,
        store: ConversationStoreProtocol,
        policy: BackoffPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._store = store
        self._policy = policy or BackoffPolicy()
        self._sleep = sleep

    async def load(self, conversation_id: str) -> LoadedConversation:
        def _log_retry(attempt: int, delay: float, exc: Exception) -> None:
            logger.warning(
                "conversation load failed; retrying",
                extra={"conversation_id": conversation_id, "attempt": attempt, "delay_seconds": delay, "error": str(exc)},
            )

        try:
            conversation = await retry_async(
                lambda: self._store.fetch_conversation(conversation_id),
                self._policy,
                retry_on=(ConversationFetchError,),
                should_retry=lambda exc: getattr(exc, "retryable", True),
                sleep=self._sleep,
                on_retry=_log_retry,
            )
        except RetryExhaustedError as exc:
            logger.error(
                "conversation load gave up",
                extra={"conversation_id": conversation_id, "attempts": exc.attempts},
            )
            raise ConversationLoadError(conversation_id, exc.attempts) from exc.__cause__

        logger.debug(
            "replaying conversation",
            extra={"conversation_id": conversation_id, "turn_count": len(conversation.messages)},
        )
        return LoadedConversation(
            conversation_id=conversation.session_id or conversation_id,
            transcript=transcript_from_conversation(conversation),
            ratings=dict(conversation.ratings),
            conversation=conversation,
        )
