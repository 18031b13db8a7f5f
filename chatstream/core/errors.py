from __future__ import annotations


class ChatStreamError(Exception):
    """Base class for failures surfaced to chat session callers."""


class ChatTransportError(ChatStreamError):
    """The stream request failed before or while reading the response body."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProtocolErrorEvent(ChatStreamError):
    """The backend emitted an ``error`` event on the stream."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SessionBusyError(ChatStreamError):
    """A send was issued while another send is still in flight."""


class ConversationFetchError(ChatStreamError):
    """A single read against the conversation store failed."""

    def __init__(self, message: str, *, status_code: int | None = None, retryable: bool = True) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class ConversationLoadError(ChatStreamError):
    """A conversation could not be loaded, even after retrying."""

    def __init__(self, conversation_id: str, attempts: int) -> None:
        super().__init__(f"Failed to load conversation {conversation_id} after {attempts} attempt(s)")
        self.conversation_id = conversation_id
        self.attempts = attempts
