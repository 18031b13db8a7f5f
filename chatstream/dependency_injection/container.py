from __future__ import annotations

import punq

from chatstream.core.settings import Settings
from chatstream.services.chat_client import ChatClient
from chatstream.services.contracts import ChatClientProtocol, ConversationStoreProtocol, TranscriptLoaderProtocol
from chatstream.services.conversation_client import ConversationClient
from chatstream.services.retry import BackoffPolicy
from chatstream.services.session import ChatContext, ChatSession
from chatstream.services.transcript_loader import TranscriptLoader


def build_container(settings: Settings) -> punq.Container:
    container = punq.Container()
    container.register(Settings, instance=settings)

    container.register(
        ChatClientProtocol,
        factory=lambda: ChatClient(
            base_url=settings.chat_api_base_url,
            timeout_seconds=settings.chat_api_timeout_seconds,
        ),
        scope=punq.Scope.singleton,
    )
    container.register(
        ConversationStoreProtocol,
        factory=lambda: ConversationClient(
            base_url=settings.effective_conversation_api_base_url,
            timeout_seconds=settings.chat_api_timeout_seconds,
        ),
        scope=punq.Scope.singleton,
    )
    container.register(
        BackoffPolicy,
        instance=BackoffPolicy(
            max_retries=settings.transcript_load_max_retries,
            base_delay_seconds=settings.transcript_load_base_delay_seconds,
        ),
    )
    container.register(
        TranscriptLoaderProtocol,
        factory=lambda: TranscriptLoader(
            store=container.resolve(ConversationStoreProtocol),
            policy=container.resolve(BackoffPolicy),
        ),
        scope=punq.Scope.singleton,
    )

    return container


def build_session(container: punq.Container, context: ChatContext, session_id: str | None = None) -> ChatSession:
    """Create a session for one conversation, sharing the container's clients."""
    return ChatSession(
        client=container.resolve(ChatClientProtocol),
        loader=container.resolve(TranscriptLoaderProtocol),
        context=context,
        session_id=session_id,
    )


def build_context(settings: Settings, *, customer_id: str, user: str | None = None, timezone: str | None = None) -> ChatContext:
    return ChatContext(user=user, customer_id=customer_id, timezone=timezone or settings.chat_default_timezone)
