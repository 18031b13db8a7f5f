from __future__ import annotations

import logging
from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    session_id: str | None = Field(default=None, description="Conversation id, or null to start a new conversation")
    user: str | None = Field(default=None, description="Identity of the person sending the prompt, used for tracking")
    customer_id: str = Field(..., min_length=1, description="Tenant the conversation belongs to")
    prompt: str = Field(..., min_length=1, description="User prompt text")
    timezone: str = Field(..., description="IANA timezone of the caller")


class _StreamEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str | None = Field(default=None, description="Conversation id assigned by the backend")


class TextEvent(_StreamEvent):
    type: Literal["text"]
    message: str | None = Field(default=None, description="Incremental assistant text fragment")
    finished: bool = Field(default=False, description="Whether this fragment closes the assistant message")


class ToolCallEvent(_StreamEvent):
    type: Literal["tool_call"]
    tool: str | None = Field(default=None, description="Name of the invoked tool")
    arguments: Any = Field(default=None, description="Tool arguments, as an object or a JSON string")
    result: Any = Field(default=None, description="Tool result when already available")
    tool_call_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("tool_call_id", "id"),
        description="Correlation id linking the call to its result",
    )

    @property
    def has_result(self) -> bool:
        return "result" in self.model_fields_set and self.result is not None


class ErrorEvent(_StreamEvent):
    type: Literal["error"]
    message: str | None = Field(default=None, description="Backend error detail")


class MetaEvent(_StreamEvent):
    type: Literal["meta"]


ChatEvent = Annotated[TextEvent | ToolCallEvent | ErrorEvent | MetaEvent, Field(discriminator="type")]

_chat_event_adapter: TypeAdapter[ChatEvent] = TypeAdapter(ChatEvent)


def parse_chat_event(payload: Any) -> ChatEvent | None:
    """Validate one decoded stream record, returning ``None`` for unknown or malformed events."""
    try:
        return _chat_event_adapter.validate_python(payload)
    except ValidationError:
        event_type = payload.get("type") if isinstance(payload, dict) else None
        logger.debug("dropping unrecognized stream event", extra={"event_type": event_type})
        return None
