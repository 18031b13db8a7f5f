"""Newline-delimited JSON framing over an arbitrarily chunked byte stream."""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator, Callable, Iterable, Iterator
import codecs
import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

DecodeErrorHook = Callable[[str, Exception], None]


class FrameDecoder:
    """Incremental decoder turning byte chunks into parsed JSON objects.

    Bytes are decoded with a stream-safe UTF-8 decoder, so a code point split
    across two chunks is carried over rather than corrupted. Invalid byte
    sequences become U+FFFD. Lines that are not a JSON object are dropped and
    reported through ``on_decode_error``.
    """

    def __init__(self, on_decode_error: DecodeErrorHook | None = None) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._on_decode_error = on_decode_error
        self._closed = False

    def feed(self, chunk: bytes) -> list[dict[str, Any]]:
        if self._closed:
            raise RuntimeError("frame decoder is already closed")
        self._buffer += self._decode(chunk, final=False)
        *lines, self._buffer = self._buffer.split("\n")
        return [record for record in (self._parse(line) for line in lines) if record is not None]

    def close(self) -> list[dict[str, Any]]:
        """Flush the decoder at end of input, parsing any trailing unterminated record."""
        if self._closed:
            return []
        self._closed = True
        tail = self._buffer + self._decode(b"", final=True)
        self._buffer = ""
        record = self._parse(tail)
        return [record] if record is not None else []

    def _decode(self, chunk: bytes, *, final: bool) -> str:
        return self._decoder.decode(chunk, final)

    def _parse(self, line: str) -> dict[str, Any] | None:
        candidate = line.strip()
        if not candidate:
            return None
        try:
            record = json.loads(candidate)
        except (ValueError, RecursionError) as exc:
            self._report(candidate, exc)
            return None
        if not isinstance(record, dict):
            self._report(candidate, ValueError(f"expected a JSON object, got {type(record).__name__}"))
            return None
        return record

    def _report(self, line: str, exc: Exception) -> None:
        logger.warning("dropping malformed stream line", extra={"line_length": len(line), "error": str(exc)})
        if self._on_decode_error is not None:
            self._on_decode_error(line, exc)


def decode_frames(chunks: Iterable[bytes], on_decode_error: DecodeErrorHook | None = None) -> Iterator[dict[str, Any]]:
    decoder = FrameDecoder(on_decode_error=on_decode_error)
    for chunk in chunks:
        yield from decoder.feed(chunk)
    yield from decoder.close()


async def adecode_frames(
    chunks: AsyncIterable[bytes],
    on_decode_error: DecodeErrorHook | None = None,
) -> AsyncIterator[dict[str, Any]]:
    decoder = FrameDecoder(on_decode_error=on_decode_error)
    async for chunk in chunks:
        for record in decoder.feed(chunk):
            yield record
    for record in decoder.close():
        yield record
