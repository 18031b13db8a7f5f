from __future__ import annotations

from chatstream import main
from chatstream.core.settings import Settings
from chatstream.dependency_injection import build_container, build_context, build_session
from chatstream.services.chat_client import ChatClient
from chatstream.services.contracts import ChatClientProtocol, ConversationStoreProtocol, TranscriptLoaderProtocol
from chatstream.services.conversation_client import ConversationClient
from chatstream.services.retry import BackoffPolicy
from chatstream.services.session import SessionState
from chatstream.services.transcript_loader import TranscriptLoader


def test_container_resolves_singleton_services() -> None:
    container = build_container(Settings(_env_file=None))

    assert container.resolve(ChatClientProtocol) is container.resolve(ChatClientProtocol)
    assert container.resolve(ConversationStoreProtocol) is container.resolve(ConversationStoreProtocol)
    assert container.resolve(TranscriptLoaderProtocol) is container.resolve(TranscriptLoaderProtocol)
    assert isinstance(container.resolve(ChatClientProtocol), ChatClient)
    assert isinstance(container.resolve(ConversationStoreProtocol), ConversationClient)
    assert isinstance(container.resolve(TranscriptLoaderProtocol), TranscriptLoader)


def test_container_builds_backoff_policy_from_settings() -> None:
    settings = Settings(
        _env_file=None,
        TRANSCRIPT_LOAD_MAX_RETRIES=5,
        TRANSCRIPT_LOAD_BASE_DELAY_SECONDS=0.25,
    )
    container = build_container(settings)

    assert container.resolve(BackoffPolicy) == BackoffPolicy(max_retries=5, base_delay_seconds=0.25)


def test_build_session_uses_context_defaults_from_settings() -> None:
    settings = Settings(_env_file=None, CHAT_DEFAULT_TIMEZONE="Europe/Berlin")
    container = build_container(settings)

    context = build_context(settings, customer_id="customer-1", user="bob@example.com")
    session = build_session(container, context, session_id="conv-7")

    assert context.timezone == "Europe/Berlin"
    assert session.context is context
    assert session.session_id == "conv-7"
    assert session.state is SessionState.IDLE
    assert build_context(settings, customer_id="c", timezone="Asia/Tokyo").timezone == "Asia/Tokyo"


def test_bootstrap_configures_logging_and_returns_container(monkeypatch) -> None:
    levels: list[str] = []
    monkeypatch.setattr(main, "configure_logging", levels.append)

    container = main.bootstrap(Settings(_env_file=None, APP_ENV="cluster"))

    assert levels == ["INFO"]
    assert isinstance(container.resolve(ChatClientProtocol), ChatClient)
