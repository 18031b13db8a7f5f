from chatstream.transcript.models import (
    AbortedTurn,
    AssistantText,
    ParsedPayload,
    Payload,
    ToolInvocation,
    TranscriptEntry,
    UnparsedPayload,
    UserTurn,
)
from chatstream.transcript.reducer import Transcript, fold, fold_all, replay

__all__ = [
    "AbortedTurn",
    "AssistantText",
    "ParsedPayload",
    "Payload",
    "ToolInvocation",
    "Transcript",
    "TranscriptEntry",
    "UnparsedPayload",
    "UserTurn",
    "fold",
    "fold_all",
    "replay",
]
