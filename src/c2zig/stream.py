"""Incremental decoder for ``data:``-framed chat-completion streams.

The upstream body arrives in arbitrarily sized chunks. :class:`StreamDecoder`
turns those chunks back into lines, pulls the first choice's content delta
out of every ``data: {...}`` line and keeps the concatenation of all deltas
seen so far. :func:`iter_snapshots` and :func:`decode_stream` drive a decoder
from an async byte source.
"""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterable, AsyncIterator, Callable, List, Optional

from .errors import MalformedEvent, StreamReadError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class DecoderState(str, Enum):
    READING = "reading"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class StreamEvent:
    delta: str = ""
    done: bool = False


def extract_delta(payload: str) -> str:
    """Return ``choices[0].delta.content`` from a JSON event payload.

    Raises :class:`MalformedEvent` when *payload* is not a JSON object. A
    well-formed object without the field yields an empty delta.
    """
    try:
        obj = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedEvent(f"invalid JSON: {payload[:80]!r}") from exc
    if not isinstance(obj, dict):
        raise MalformedEvent(f"expected a JSON object, got {type(obj).__name__}")

    choices = obj.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""


def parse_event_line(line: str) -> Optional[StreamEvent]:
    """Parse one logical line; ``None`` means the line is not an event."""
    if line.endswith("\r"):
        line = line[:-1]
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX) :]
    if payload == DONE_SENTINEL:
        return StreamEvent(done=True)
    return StreamEvent(delta=extract_delta(payload))


class StreamDecoder:
    """Push-style decoder state machine (READING -> DONE | FAILED).

    Each decoder owns its accumulator; use one instance per response.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        # fragments of the current, not yet terminated line
        self._pending: List[str] = []
        self._text = ""
        self.state = DecoderState.READING

    @property
    def text(self) -> str:
        """Everything accumulated so far."""
        return self._text

    def feed(self, chunk: bytes) -> List[str]:
        """Consume *chunk* and return the snapshots it produced, oldest first."""
        if self.state is not DecoderState.READING:
            return []
        text = self._decoder.decode(chunk)
        if "\n" not in text:
            if text:
                self._pending.append(text)
            return []
        lines = text.split("\n")
        lines[0] = "".join(self._pending) + lines[0]
        tail = lines.pop()
        self._pending = [tail] if tail else []
        return self._process(lines)

    def finish(self) -> List[str]:
        """Signal end of input; an unterminated last line is still processed."""
        if self.state is not DecoderState.READING:
            return []
        tail = "".join(self._pending) + self._decoder.decode(b"", final=True)
        self._pending = []
        snapshots = self._process([tail]) if tail else []
        self.state = DecoderState.DONE
        return snapshots

    def fail(self) -> None:
        self.state = DecoderState.FAILED
        self._pending = []

    def _process(self, lines: List[str]) -> List[str]:
        snapshots: List[str] = []
        for line in lines:
            try:
                event = parse_event_line(line)
            except MalformedEvent as exc:
                logger.debug("Discarding event line: %s", exc)
                continue
            if event is None:
                continue
            if event.done:
                # anything after the sentinel is ignored
                self.state = DecoderState.DONE
                self._pending = []
                break
            if event.delta:
                self._text += event.delta
                snapshots.append(self._text)
        return snapshots


async def iter_snapshots(
    source: AsyncIterable[bytes],
    decoder: StreamDecoder | None = None,
) -> AsyncIterator[str]:
    """Yield the growing accumulated text for every content-bearing line.

    Read failures from *source* are re-raised as :class:`StreamReadError`.
    """
    decoder = decoder or StreamDecoder()
    chunks = source.__aiter__()
    while decoder.state is DecoderState.READING:
        try:
            chunk = await chunks.__anext__()
        except StopAsyncIteration:
            for snapshot in decoder.finish():
                yield snapshot
            return
        except Exception as exc:
            decoder.fail()
            raise StreamReadError(f"Stream read failed: {exc}", partial=decoder.text) from exc
        for snapshot in decoder.feed(chunk):
            yield snapshot


async def decode_stream(
    source: AsyncIterable[bytes],
    on_update: Callable[[str], None] | None = None,
) -> str:
    """Decode *source* to completion and return the final text.

    *on_update* receives every snapshot in arrival order.
    """
    decoder = StreamDecoder()
    async for snapshot in iter_snapshots(source, decoder):
        if on_update is not None:
            on_update(snapshot)
    return decoder.text
