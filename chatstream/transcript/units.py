"""Normalization of live stream events and persisted turns into reducer units."""

from __future__ import annotations

from collections.abc import Callable, Container
from dataclasses import dataclass
import logging
from typing import Any
import uuid

from chatstream.schemas.chat import ChatEvent, TextEvent, ToolCallEvent
from chatstream.schemas.conversation import Conversation, PersistedTurn
from chatstream.transcript.models import ParsedPayload, UnparsedPayload, parse_arguments, parse_result

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserUnit:
    content: str
    turn_index: int | None = None


@dataclass(frozen=True)
class TextUnit:
    content: str
    finished: bool
    turn_index: int | None = None


@dataclass(frozen=True)
class ToolCallUnit:
    correlation_id: str
    tool_name: str
    arguments: ParsedPayload | UnparsedPayload
    turn_index: int | None = None


@dataclass(frozen=True)
class ToolResultUnit:
    correlation_id: str
    result: ParsedPayload | UnparsedPayload
    turn_index: int | None = None


Unit = UserUnit | TextUnit | ToolCallUnit | ToolResultUnit


def new_correlation_id() -> str:
    return f"call_{uuid.uuid4().hex}"


def units_from_event(
    event: ChatEvent,
    *,
    open_correlation_ids: Container[str] = (),
    id_factory: Callable[[], str] = new_correlation_id,
) -> list[Unit]:
    """Map one live event to zero or more units.

    ``error`` and ``meta`` events carry session control signals, not transcript
    content, so they map to no units. A ``tool_call`` event whose id names an
    invocation that is still open is treated as the late result for that call.
    """
    if isinstance(event, TextEvent):
        return [TextUnit(content=event.message or "", finished=event.finished)]

    if isinstance(event, ToolCallEvent):
        correlation_id = event.tool_call_id
        if correlation_id and correlation_id in open_correlation_ids:
            if not event.has_result:
                logger.debug("ignoring repeated tool call announcement", extra={"tool_call_id": correlation_id})
                return []
            return [ToolResultUnit(correlation_id=correlation_id, result=parse_result(event.result))]

        correlation_id = correlation_id or id_factory()
        units: list[Unit] = [
            ToolCallUnit(
                correlation_id=correlation_id,
                tool_name=event.tool or "",
                arguments=parse_arguments(event.arguments),
            )
        ]
        if event.has_result:
            units.append(ToolResultUnit(correlation_id=correlation_id, result=parse_result(event.result)))
        return units

    return []


def units_from_conversation(conversation: Conversation) -> list[Unit]:
    """Map a persisted record to units, tagging each with its position in the record."""
    units: list[Unit] = []
    for turn_index, turn in enumerate(conversation.messages):
        units.extend(_units_from_turn(turn, turn_index))
    return units


def _units_from_turn(turn: PersistedTurn, turn_index: int) -> list[Unit]:
    if turn.role == "system":
        return []

    if turn.role == "user":
        return [UserUnit(content=_text_of(turn.content), turn_index=turn_index)]

    if turn.role == "assistant":
        units: list[Unit] = []
        text = _text_of(turn.content)
        if text.strip():
            units.append(TextUnit(content=text, finished=True, turn_index=turn_index))
        for call in turn.tool_calls:
            units.append(
                ToolCallUnit(
                    correlation_id=call.id,
                    tool_name=call.name,
                    arguments=parse_arguments(call.arguments),
                    turn_index=turn_index,
                )
            )
        return units

    if not turn.tool_call_id:
        logger.debug("skipping tool turn without tool_call_id", extra={"turn_index": turn_index})
        return []
    return [ToolResultUnit(correlation_id=turn.tool_call_id, result=parse_result(turn.content), turn_index=turn_index)]


def _text_of(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, str):
                parts.append(item)
            elif isinstance(item, dict) and item.get("type") == "text":
                parts.append(str(item.get("text") or ""))
        return "".join(parts)
    return str(content)
