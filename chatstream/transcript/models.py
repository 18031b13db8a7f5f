"""Canonical transcript entries shared by live streaming and persisted replay."""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ARGUMENTS_PLACEHOLDER: dict[str, str] = {"error": "Could not parse arguments"}


class ParsedPayload(BaseModel):
    """A tool payload that was decoded into a JSON value."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["parsed"] = "parsed"
    data: Any = None

    @property
    def value(self) -> Any:
        return self.data


class UnparsedPayload(BaseModel):
    """A tool payload kept as raw text because it is not valid JSON.

    ``fallback`` is what consumers see in place of the payload: a structured
    placeholder for arguments, the raw text itself for results.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["unparsed"] = "unparsed"
    raw: str
    fallback: Any = None

    @property
    def value(self) -> Any:
        return self.fallback


Payload = Annotated[ParsedPayload | UnparsedPayload, Field(discriminator="kind")]


def parse_arguments(raw: Any) -> ParsedPayload | UnparsedPayload:
    if raw is None:
        return ParsedPayload(data={})
    if isinstance(raw, str):
        if not raw.strip():
            return ParsedPayload(data={})
        try:
            return ParsedPayload(data=json.loads(raw))
        except (ValueError, RecursionError):
            return UnparsedPayload(raw=raw, fallback=dict(ARGUMENTS_PLACEHOLDER))
    return ParsedPayload(data=raw)


def parse_result(raw: Any) -> ParsedPayload | UnparsedPayload:
    if isinstance(raw, str):
        try:
            return ParsedPayload(data=json.loads(raw))
        except (ValueError, RecursionError):
            return UnparsedPayload(raw=raw, fallback=raw)
    return ParsedPayload(data=raw)


class _Entry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    turn_index: int | None = None


class UserTurn(_Entry):
    kind: Literal["user"] = "user"
    content: str


class AssistantText(_Entry):
    kind: Literal["assistant"] = "assistant"
    content: str = ""
    streaming: bool = False

    @property
    def is_displayable(self) -> bool:
        return self.streaming or bool(self.content.strip())


class ToolInvocation(_Entry):
    kind: Literal["tool_call"] = "tool_call"
    tool_name: str
    arguments: Payload
    correlation_id: str
    result: Payload | None = None

    @property
    def pending(self) -> bool:
        return self.result is None


class AbortedTurn(_Entry):
    kind: Literal["aborted"] = "aborted"
    original_prompt: str
    turn_index: int


TranscriptEntry = Annotated[
    UserTurn | AssistantText | ToolInvocation | AbortedTurn,
    Field(discriminator="kind"),
]
