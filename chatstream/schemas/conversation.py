from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class PersistedToolCall(BaseModel):
    id: str = Field(..., description="Correlation id referenced by the matching tool turn")
    name: str = Field(default="", description="Name of the invoked tool")
    arguments: Any = Field(default=None, description="Raw argument payload, usually a JSON string")

    @model_validator(mode="before")
    @classmethod
    def _flatten_function(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("function"), dict):
            function = data["function"]
            return {
                "id": data.get("id"),
                "name": function.get("name", data.get("name", "")),
                "arguments": function.get("arguments", data.get("arguments")),
            }
        return data


class PersistedTurn(BaseModel):
    role: Literal["system", "user", "assistant", "tool"]
    content: Any = Field(default=None, description="Turn text, or the raw result payload for tool turns")
    tool_calls: list[PersistedToolCall] = Field(default_factory=list)
    tool_call_id: str | None = Field(default=None, description="Announcement id a tool turn answers")

    @field_validator("tool_calls", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class TurnRating(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    feedback: str | None = None


class Conversation(BaseModel):
    session_id: str
    customer_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    messages: list[PersistedTurn] = Field(default_factory=list)
    rating: int | None = Field(default=None, description="Overall conversation rating")
    feedback: str | None = None
    ratings: dict[int, TurnRating] = Field(default_factory=dict, description="Per-turn ratings keyed by turn index")

    @field_validator("ratings", mode="before")
    @classmethod
    def _coerce_ratings(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {key: {"rating": item} if isinstance(item, int) else item for key, item in value.items()}
        return value


class ConversationSummary(BaseModel):
    session_id: str
    customer_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    rating: int | None = None
    feedback: str | None = None
    messages: list[PersistedTurn] = Field(default_factory=list)

    @property
    def title(self) -> str:
        """First user turn, used as a human-readable label."""
        for turn in self.messages:
            if turn.role == "user" and isinstance(turn.content, str):
                return turn.content
        return ""
