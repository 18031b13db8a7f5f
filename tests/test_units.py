"""Unit tests for normalizing stream events and persisted turns into reducer units."""

from __future__ import annotations

from chatstream.schemas.chat import ErrorEvent, MetaEvent, parse_chat_event
from chatstream.schemas.conversation import Conversation
from chatstream.transcript.models import ParsedPayload, UnparsedPayload
from chatstream.transcript.units import (
    TextUnit,
    ToolCallUnit,
    ToolResultUnit,
    UserUnit,
    units_from_conversation,
    units_from_event,
)


def test_text_event_maps_to_text_unit() -> None:
    event = parse_chat_event({"type": "text", "message": "Hi", "finished": True})

    assert units_from_event(event) == [TextUnit(content="Hi", finished=True)]


def test_text_event_without_message_is_an_empty_fragment() -> None:
    event = parse_chat_event({"type": "text", "message": None})

    assert units_from_event(event) == [TextUnit(content="", finished=False)]


def test_tool_call_with_inline_result_maps_to_announcement_and_result() -> None:
    event = parse_chat_event(
        {"type": "tool_call", "tool": "count", "arguments": {"day": "today"}, "result": {"count": 3}}
    )

    units = units_from_event(event, id_factory=lambda: "generated")

    assert units == [
        ToolCallUnit(correlation_id="generated", tool_name="count", arguments=ParsedPayload(data={"day": "today"})),
        ToolResultUnit(correlation_id="generated", result=ParsedPayload(data={"count": 3})),
    ]


def test_tool_call_without_result_stays_an_announcement() -> None:
    event = parse_chat_event({"type": "tool_call", "id": "t1", "tool": "count", "arguments": "not json"})

    units = units_from_event(event)

    assert len(units) == 1
    assert units[0].correlation_id == "t1"
    assert isinstance(units[0].arguments, UnparsedPayload)


def test_tool_call_for_open_id_is_a_late_result() -> None:
    event = parse_chat_event({"type": "tool_call", "tool_call_id": "t1", "tool": "count", "result": "42"})

    units = units_from_event(event, open_correlation_ids={"t1"})

    assert units == [ToolResultUnit(correlation_id="t1", result=ParsedPayload(data=42))]


def test_control_events_map_to_no_units() -> None:
    assert units_from_event(ErrorEvent(type="error", message="boom")) == []
    assert units_from_event(MetaEvent(type="meta", session_id="conv-1")) == []


def test_unknown_or_malformed_events_are_dropped() -> None:
    assert parse_chat_event({"type": "heartbeat"}) is None
    assert parse_chat_event({"message": "no type"}) is None
    assert parse_chat_event({"type": "text", "finished": "not-a-bool"}) is None


def test_conversation_units_skip_system_turns_and_keep_record_positions(tool_conversation: Conversation) -> None:
    units = units_from_conversation(tool_conversation)

    assert units == [
        UserUnit(content="How many bookings today?", turn_index=1),
        ToolCallUnit(
            correlation_id="t1",
            tool_name="count_bookings",
            arguments=ParsedPayload(data={"day": "today"}),
            turn_index=2,
        ),
        ToolResultUnit(correlation_id="t1", result=ParsedPayload(data={"count": 12}), turn_index=3),
    ]


def test_assistant_turn_with_text_and_flat_tool_calls() -> None:
    conversation = Conversation.model_validate(
        {
            "session_id": "conv-2",
            "messages": [
                {
                    "role": "assistant",
                    "content": [{"type": "text", "text": "Checking "}, {"type": "text", "text": "now"}],
                    "tool_calls": [{"id": "a", "name": "first", "arguments": {"x": 1}}],
                },
                {"role": "tool", "content": "orphan without id"},
            ],
        }
    )

    units = units_from_conversation(conversation)

    assert units == [
        TextUnit(content="Checking now", finished=True, turn_index=0),
        ToolCallUnit(correlation_id="a", tool_name="first", arguments=ParsedPayload(data={"x": 1}), turn_index=0),
    ]
