"""Append-only transcript log and the pure fold that builds it.

The same ``fold`` runs for live streams (one unit per decoded event) and for
replay of a persisted conversation (every unit in one pass), so both paths
produce identical entry shapes.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from functools import reduce
import logging

from chatstream.transcript.models import AbortedTurn, AssistantText, ToolInvocation, TranscriptEntry, UserTurn
from chatstream.transcript.units import TextUnit, ToolCallUnit, ToolResultUnit, Unit, UserUnit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transcript:
    """Immutable snapshot of one conversation's ordered entries.

    Every operation returns a new snapshot, so observers can hold on to the
    value they were handed without seeing later mutations.
    """

    entries: tuple[TranscriptEntry, ...] = ()
    id_prefix: str = "live"
    next_sequence: int = 0
    next_turn_index: int = 0
    # correlation id -> position of the pending ToolInvocation
    open_tool_calls: Mapping[str, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[TranscriptEntry]:
        return iter(self.entries)

    def __getitem__(self, position: int) -> TranscriptEntry:
        return self.entries[position]

    @property
    def last(self) -> TranscriptEntry | None:
        return self.entries[-1] if self.entries else None

    @property
    def streaming_entry(self) -> AssistantText | None:
        last = self.last
        if isinstance(last, AssistantText) and last.streaming:
            return last
        return None

    @property
    def aborted_turns(self) -> list[AbortedTurn]:
        return [entry for entry in self.entries if isinstance(entry, AbortedTurn)]

    def allocate_id(self) -> str:
        return f"{self.id_prefix}-{self.next_sequence}"

    def visible(self) -> list[TranscriptEntry]:
        """Entries a consumer should display; empty finished assistant text is dropped."""
        return [
            entry
            for entry in self.entries
            if not isinstance(entry, AssistantText) or entry.is_displayable
        ]

    def append(self, entry: TranscriptEntry) -> Transcript:
        base = self.finalize()
        open_tool_calls = base.open_tool_calls
        if isinstance(entry, ToolInvocation) and entry.pending:
            open_tool_calls = {**open_tool_calls, entry.correlation_id: len(base.entries)}
        next_turn_index = base.next_turn_index
        if entry.turn_index is not None:
            next_turn_index = max(next_turn_index, entry.turn_index + 1)
        return replace(
            base,
            entries=(*base.entries, entry),
            next_sequence=base.next_sequence + 1,
            next_turn_index=next_turn_index,
            open_tool_calls=open_tool_calls,
        )

    def replace_last(self, entry: TranscriptEntry) -> Transcript:
        if not self.entries:
            raise IndexError("cannot replace the last entry of an empty transcript")
        return self.replace_at(len(self.entries) - 1, entry)

    def replace_at(self, position: int, entry: TranscriptEntry) -> Transcript:
        current = self.entries[position]
        if current.id != entry.id:
            raise ValueError(f"replacement for {current.id!r} carries id {entry.id!r}")
        open_tool_calls = self.open_tool_calls
        if isinstance(entry, ToolInvocation) and not entry.pending and entry.correlation_id in open_tool_calls:
            open_tool_calls = {key: value for key, value in open_tool_calls.items() if key != entry.correlation_id}
        entries = (*self.entries[:position], entry, *self.entries[position + 1 :])
        return replace(self, entries=entries, open_tool_calls=open_tool_calls)

    def finalize(self) -> Transcript:
        """Close a trailing streaming assistant entry, keeping its content."""
        current = self.streaming_entry
        if current is None:
            return self
        return self.replace_last(current.model_copy(update={"streaming": False}))

    def without_aborted(self) -> Transcript:
        entries = tuple(entry for entry in self.entries if not isinstance(entry, AbortedTurn))
        if len(entries) == len(self.entries):
            return self
        return replace(self, entries=entries, open_tool_calls=_index_open_tool_calls(entries))

    def append_aborted(self, original_prompt: str) -> Transcript:
        base = self.finalize()
        return base.append(
            AbortedTurn(
                id=base.allocate_id(),
                original_prompt=original_prompt,
                turn_index=base.next_turn_index,
            )
        )


def fold(transcript: Transcript, unit: Unit) -> Transcript:
    """Fold one unit into ``transcript`` and return the resulting snapshot."""
    if isinstance(unit, UserUnit):
        return transcript.append(
            UserTurn(
                id=transcript.allocate_id(),
                content=unit.content,
                turn_index=_turn_index(transcript, unit),
            )
        )

    if isinstance(unit, TextUnit):
        current = transcript.streaming_entry
        if current is not None:
            return transcript.replace_last(
                current.model_copy(
                    update={"content": current.content + unit.content, "streaming": not unit.finished}
                )
            )
        return transcript.append(
            AssistantText(
                id=transcript.allocate_id(),
                content=unit.content,
                streaming=not unit.finished,
                turn_index=_turn_index(transcript, unit),
            )
        )

    if isinstance(unit, ToolCallUnit):
        return transcript.append(
            ToolInvocation(
                id=transcript.allocate_id(),
                tool_name=unit.tool_name,
                arguments=unit.arguments,
                correlation_id=unit.correlation_id,
                turn_index=_turn_index(transcript, unit),
            )
        )

    if isinstance(unit, ToolResultUnit):
        position = transcript.open_tool_calls.get(unit.correlation_id)
        if position is None:
            logger.debug("discarding tool result without open call", extra={"tool_call_id": unit.correlation_id})
            return transcript
        invocation = transcript.entries[position]
        resolved = transcript.replace_at(position, invocation.model_copy(update={"result": unit.result}))
        if unit.turn_index is not None and unit.turn_index >= resolved.next_turn_index:
            resolved = replace(resolved, next_turn_index=unit.turn_index + 1)
        return resolved

    raise TypeError(f"unsupported transcript unit: {type(unit).__name__}")


def fold_all(transcript: Transcript, units: Iterable[Unit]) -> Transcript:
    return reduce(fold, units, transcript)


def replay(units: Iterable[Unit], *, id_prefix: str = "replay") -> Transcript:
    """Build a finished transcript from a complete unit sequence in one pass."""
    return fold_all(Transcript(id_prefix=id_prefix), units).finalize()


def _turn_index(transcript: Transcript, unit: Unit) -> int:
    return unit.turn_index if unit.turn_index is not None else transcript.next_turn_index


def _index_open_tool_calls(entries: tuple[TranscriptEntry, ...]) -> dict[str, int]:
    index: dict[str, int] = {}
    for position, entry in enumerate(entries):
        if isinstance(entry, ToolInvocation) and entry.pending:
            index[entry.correlation_id] = position
    return index
