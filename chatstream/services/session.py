"""Conversation lifecycle: one streamed send at a time folded into a transcript."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
import logging

from pydantic import BaseModel, Field

from chatstream.core.errors import ChatStreamError, ProtocolErrorEvent, SessionBusyError
from chatstream.schemas.chat import ChatRequest, ErrorEvent
from chatstream.schemas.conversation import TurnRating
from chatstream.services.contracts import ChatClientProtocol, TranscriptLoaderProtocol
from chatstream.transcript.reducer import Transcript, fold, fold_all
from chatstream.transcript.units import UserUnit, units_from_event

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ABORTED = "aborted"
    ERRORED = "errored"


class SendStatus(str, Enum):
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class SendResult:
    status: SendStatus
    session_id: str | None
    new_session_id: str | None = None


class ChatContext(BaseModel):
    """Caller identity and tenant for every request a session sends."""

    user: str | None = Field(default=None, description="Identity of the person chatting")
    customer_id: str = Field(..., min_length=1, description="Tenant the conversation belongs to")
    timezone: str = Field(default="UTC", description="IANA timezone forwarded to the backend")


Observer = Callable[[Transcript, SessionState], None]

_IN_FLIGHT = frozenset({SessionState.SENDING, SessionState.STREAMING})


class ChatSession:
    """Owns one conversation's transcript and drives sends, cancellation and loads.

    The transcript is only ever replaced by the single fold loop of the active
    send (or by a completed load); observers receive immutable snapshots.
    """

    def __init__(
        self,
        *,
        client: ChatClientProtocol,
        context: ChatContext,
        loader: TranscriptLoaderProtocol | None = None,
        session_id: str | None = None,
        transcript: Transcript | None = None,
    ) -> None:
        self._client = client
        self._context = context
        self._loader = loader
        self._session_id = session_id
        self._transcript = transcript if transcript is not None else Transcript()
        self._ratings: dict[int, TurnRating] = {}
        self._state = SessionState.IDLE
        self._observers: list[Observer] = []
        self._cancel_requested = asyncio.Event()
        self._stream_task: asyncio.Task[bool] | None = None
        self._load_task: asyncio.Task | None = None
        self._learned_session_id: str | None = None
        self._closed = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def transcript(self) -> Transcript:
        return self._transcript

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def ratings(self) -> dict[int, TurnRating]:
        return dict(self._ratings)

    @property
    def context(self) -> ChatContext:
        return self._context

    @property
    def is_busy(self) -> bool:
        return self._state is not SessionState.IDLE or self._load_task is not None

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    async def send(self, prompt: str) -> SendResult:
        """Send ``prompt`` and fold the streamed reply into the transcript.

        Returns a completed or aborted result. Transport and protocol failures
        are raised after the session has returned to idle; the partial
        transcript is kept.
        """
        text = prompt.strip()
        if not text:
            raise ValueError("prompt must not be empty")
        self._ensure_ready()

        request = ChatRequest(
            session_id=self._session_id,
            user=self._context.user,
            customer_id=self._context.customer_id,
            prompt=text,
            timezone=self._context.timezone,
        )
        is_new_conversation = self._session_id is None
        self._cancel_requested = asyncio.Event()
        self._learned_session_id = None

        self._apply(fold(self._transcript, UserUnit(content=text)))
        self._set_state(SessionState.SENDING)
        task = asyncio.create_task(self._consume(request))
        self._stream_task = task
        try:
            exhausted = await task
        except asyncio.CancelledError:
            if _current_task_cancelling():
                self._finish(SessionState.ERRORED)
                raise
            if self._closed:
                self._finish(SessionState.ERRORED)
                raise ChatStreamError("chat session was closed during send") from None
            if self._cancel_requested.is_set():
                return self._finish_aborted(text)
            self._finish(SessionState.ERRORED)
            raise
        except Exception as exc:
            logger.warning(
                "chat stream failed",
                extra={"session_id": self._session_id, "error_type": type(exc).__name__},
            )
            self._finish(SessionState.ERRORED)
            raise
        finally:
            self._stream_task = None

        if not exhausted:
            return self._finish_aborted(text)

        new_session_id = self._learned_session_id if is_new_conversation else None
        self._finish(SessionState.COMPLETED)
        return SendResult(status=SendStatus.COMPLETED, session_id=self._session_id, new_session_id=new_session_id)

    def cancel(self) -> bool:
        """Abort the in-flight send; a no-op returning ``False`` when nothing is in flight."""
        if self._state not in _IN_FLIGHT or self._cancel_requested.is_set():
            return False
        logger.debug("cancelling chat stream", extra={"session_id": self._session_id})
        self._cancel_requested.set()
        if self._stream_task is not None and not self._stream_task.done():
            self._stream_task.cancel()
        return True

    async def retry(self, prompt: str | None = None) -> SendResult:
        """Drop every aborted turn and resend ``prompt`` or the latest aborted prompt."""
        self._ensure_ready()
        if prompt is None:
            aborted = self._transcript.aborted_turns
            if not aborted:
                raise ValueError("there is no aborted turn to retry")
            prompt = aborted[-1].original_prompt
        elif not prompt.strip():
            raise ValueError("prompt must not be empty")
        self._apply(self._transcript.without_aborted())
        return await self.send(prompt)

    async def load(self, conversation_id: str) -> Transcript:
        """Replace this session's conversation with a persisted one."""
        if self._loader is None:
            raise RuntimeError("chat session has no transcript loader")
        self._ensure_ready()

        task = asyncio.create_task(self._loader.load(conversation_id))
        self._load_task = task
        try:
            loaded = await task
        except asyncio.CancelledError:
            if self._closed and not _current_task_cancelling():
                raise ChatStreamError("chat session was closed during load") from None
            raise
        finally:
            self._load_task = None

        self._session_id = loaded.conversation_id
        self._ratings = dict(loaded.ratings)
        self._apply(loaded.transcript)
        return loaded.transcript

    def reset(self) -> None:
        """Start a new conversation, forgetting the current one."""
        self._ensure_ready()
        self._session_id = None
        self._ratings = {}
        self._apply(Transcript())

    async def aclose(self) -> None:
        """Tear the session down, cancelling any in-flight send, load or backoff wait."""
        self._closed = True
        tasks = [task for task in (self._stream_task, self._load_task) if task is not None and not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._observers.clear()

    async def _consume(self, request: ChatRequest) -> bool:
        """Fold events until the stream ends; ``False`` when stopped by cancellation."""
        if self._cancel_requested.is_set():
            return False
        async with aclosing(self._client.stream_events(request)) as events:
            async for event in events:
                if self._cancel_requested.is_set():
                    return False
                if self._state is SessionState.SENDING:
                    self._set_state(SessionState.STREAMING)
                if event.session_id:
                    self._learned_session_id = event.session_id
                if isinstance(event, ErrorEvent):
                    raise ProtocolErrorEvent(event.message or "Unknown error")
                units = units_from_event(event, open_correlation_ids=self._transcript.open_tool_calls)
                if units:
                    self._apply(fold_all(self._transcript, units))
        return not self._cancel_requested.is_set()

    def _finish_aborted(self, prompt: str) -> SendResult:
        logger.info("chat stream aborted", extra={"session_id": self._session_id, "prompt_length": len(prompt)})
        self._adopt_learned_session_id()
        self._set_state(SessionState.ABORTED)
        self._apply(self._transcript.append_aborted(prompt))
        self._set_state(SessionState.IDLE)
        return SendResult(status=SendStatus.ABORTED, session_id=self._session_id)

    def _finish(self, state: SessionState) -> None:
        self._adopt_learned_session_id()
        self._apply(self._transcript.finalize())
        self._set_state(state)
        self._set_state(SessionState.IDLE)

    def _adopt_learned_session_id(self) -> None:
        if self._session_id is None and self._learned_session_id:
            self._session_id = self._learned_session_id

    def _ensure_ready(self) -> None:
        if self._closed:
            raise RuntimeError("chat session is closed")
        if self.is_busy:
            raise SessionBusyError("a send or load is already in progress; cancel or await it first")

    def _apply(self, transcript: Transcript) -> None:
        if transcript is self._transcript:
            return
        self._transcript = transcript
        self._notify()

    def _set_state(self, state: SessionState) -> None:
        logger.debug("session state change", extra={"from_state": self._state.value, "to_state": state.value})
        self._state = state
        self._notify()

    def _notify(self) -> None:
        for observer in list(self._observers):
            try:
                observer(self._transcript, self._state)
            except Exception:
                logger.exception("transcript observer failed")


def _current_task_cancelling() -> bool:
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0
