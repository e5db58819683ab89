"""
Purpose: Turn the raw chunked body of POST /ask into ordered text deltas.

The transport delivers bytes with arbitrary boundaries: a record, or even
a multi-byte character, can be split across two chunks. The decoder keeps
an incremental UTF-8 decoder and a partial-line buffer across chunks and
only parses complete lines. Malformed records are dropped; non-record
lines are ignored.

Testing: Feed deliberately fragmented chunks and compare the concatenated
deltas with the concatenated `content` fields.
"""

from __future__ import annotations
import codecs
import logging
from collections.abc import AsyncGenerator, AsyncIterable, Iterable, Iterator

from ..utils.stream_json import DATA_PREFIX, extract_content, parse_data_line

logger = logging.getLogger("research_core")


class StreamDecoder:
    """Single-use, forward-only decoder. A new stream needs a new instance."""

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self._finished = False

    def feed(self, chunk: bytes) -> list[str]:
        """Consume one transport chunk; return the deltas it completed."""
        if self._finished:
            raise RuntimeError("StreamDecoder is finished; create a new one.")
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return self._deltas(lines)

    def finish(self) -> list[str]:
        """End of stream: flush the trailing unterminated line, if any."""
        if self._finished:
            return []
        self._finished = True
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        return self._deltas(tail.split("\n")) if tail else []

    @staticmethod
    def _deltas(lines: list[str]) -> list[str]:
        deltas = []
        for line in lines:
            record = parse_data_line(line)
            if record is None:
                if line.startswith(DATA_PREFIX):
                    logger.debug(f"[StreamDecoder] Dropped malformed record: {line!r}")
                continue
            content = extract_content(record)
            if content is not None:
                deltas.append(content)
        return deltas


def iter_deltas(chunks: Iterable[bytes]) -> Iterator[str]:
    """Decode a sync iterable of chunks into deltas."""
    decoder = StreamDecoder()
    for chunk in chunks:
        yield from decoder.feed(chunk)
    yield from decoder.finish()


async def decode_stream(chunks: AsyncIterable[bytes]) -> AsyncGenerator[str, None]:
    """Decode an async iterable of chunks into deltas, yielding between chunks."""
    decoder = StreamDecoder()
    async for chunk in chunks:
        for delta in decoder.feed(chunk):
            yield delta
    for delta in decoder.finish():
        yield delta
