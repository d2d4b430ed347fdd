"""Streaming XML walker -- turn a byte stream into ordered parse events.

The walker feeds fixed-size blocks of the source into an expat parser and
yields ``OpenEvent`` / ``TextEvent`` / ``CloseEvent`` objects as soon as the
block that produced them has been parsed.  It never holds more than one
block, the pending events of that block, and the current element path in
memory, whatever the size of the document.

Malformed input raises ``MalformedDocument``; an unreadable source raises
``SourceUnavailable``.  Entity declarations are refused outright.
"""

from __future__ import annotations

import re
from collections import deque
from collections.abc import Iterator
from pathlib import Path
from typing import IO, Union
from xml.parsers import expat

from ingestkit_bpmn.config import BPMNProcessorConfig
from ingestkit_bpmn.errors import (
    BPMNIngestException,
    ErrorCode,
    MalformedDocument,
    SourceUnavailable,
)
from ingestkit_bpmn.models import CloseEvent, OpenEvent, ParseEvent, TextEvent

DEFAULT_CHUNK_SIZE = 64 * 1024

_WHITESPACE_RUN = re.compile(r"\s+")

Source = Union[str, Path, IO[bytes]]


class _EventCollector:
    """expat handler target that queues events and coalesces text runs."""

    def __init__(
        self,
        pending: deque[ParseEvent],
        trim_text: bool,
        normalize_text: bool,
        emit_whitespace_text: bool,
    ) -> None:
        self._pending = pending
        self._trim = trim_text
        self._normalize = normalize_text
        self._emit_whitespace = emit_whitespace_text
        self._text_parts: list[str] = []
        self.path: list[str] = []

    def start(self, name: str, attributes: dict[str, str]) -> None:
        self.flush_text()
        self.path.append(name)
        self._pending.append(OpenEvent(name=name, attributes=attributes))

    def end(self, name: str) -> None:
        self.flush_text()
        if self.path:
            self.path.pop()
        self._pending.append(CloseEvent(name=name))

    def characters(self, data: str) -> None:
        self._text_parts.append(data)

    def entity_declaration(self, entity_name: str, *_args: object) -> None:
        raise BPMNIngestException(
            code=ErrorCode.E_SECURITY_ENTITY_DECLARATION.value,
            message=(
                f"Document declares entity '{entity_name}' "
                "(potential billion laughs / XXE attack)"
            ),
            stage="parse",
        )

    def flush_text(self) -> None:
        if not self._text_parts:
            return
        value = "".join(self._text_parts)
        self._text_parts.clear()

        if not value.strip():
            if self._emit_whitespace:
                self._pending.append(TextEvent(value=value))
            return

        if self._normalize:
            value = _WHITESPACE_RUN.sub(" ", value)
        if self._trim:
            value = value.strip()
        self._pending.append(TextEvent(value=value))

    def xpath(self) -> str:
        return "/" + "/".join(self.path)


class StreamingWalker:
    """Pull-style event iterator over an XML byte stream.

    Parameters
    ----------
    trim_text:
        Strip leading/trailing whitespace from text events.
    normalize_text:
        Collapse internal whitespace runs in text events to one space.
    emit_whitespace_text:
        Emit text events that consist of whitespace only.
    chunk_size:
        Number of bytes read from the source per block.
    """

    def __init__(
        self,
        trim_text: bool = True,
        normalize_text: bool = False,
        emit_whitespace_text: bool = False,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.trim_text = trim_text
        self.normalize_text = normalize_text
        self.emit_whitespace_text = emit_whitespace_text
        self.chunk_size = chunk_size

    @classmethod
    def from_config(cls, config: BPMNProcessorConfig) -> StreamingWalker:
        return cls(
            trim_text=config.trim_text,
            normalize_text=config.normalize_text,
            emit_whitespace_text=config.emit_whitespace_text,
            chunk_size=config.read_chunk_size,
        )

    def walk(self, source: Source) -> Iterator[ParseEvent]:
        """Yield parse events for *source* in document order.

        *source* is a filesystem path or a binary file-like object that
        supports sequential ``read()``.  Paths are opened lazily, so
        ``SourceUnavailable`` surfaces on the first ``next()``.
        """
        if isinstance(source, (str, Path)):
            try:
                fh = open(source, "rb")
            except OSError as exc:
                raise SourceUnavailable(
                    f"Cannot open source {source}: {exc}"
                ) from exc
            with fh:
                yield from self._walk_stream(fh)
        else:
            yield from self._walk_stream(source)

    def _walk_stream(self, stream: IO[bytes]) -> Iterator[ParseEvent]:
        pending: deque[ParseEvent] = deque()
        collector = _EventCollector(
            pending,
            trim_text=self.trim_text,
            normalize_text=self.normalize_text,
            emit_whitespace_text=self.emit_whitespace_text,
        )

        parser = expat.ParserCreate()
        parser.buffer_text = True
        parser.StartElementHandler = collector.start
        parser.EndElementHandler = collector.end
        parser.CharacterDataHandler = collector.characters
        parser.EntityDeclHandler = collector.entity_declaration
        parser.SetParamEntityParsing(expat.XML_PARAM_ENTITY_PARSING_NEVER)

        while True:
            try:
                chunk = stream.read(self.chunk_size)
            except OSError as exc:
                raise SourceUnavailable(f"Cannot read source: {exc}") from exc

            final = not chunk
            try:
                parser.Parse(chunk, final)
            except expat.ExpatError as exc:
                raise MalformedDocument(
                    f"Malformed XML: {expat.ErrorString(exc.code)} "
                    f"(line {exc.lineno}, column {exc.offset})",
                    line=exc.lineno,
                    column=exc.offset,
                    byte_offset=parser.ErrorByteIndex,
                    xpath=collector.xpath(),
                ) from exc

            while pending:
                yield pending.popleft()

            if final:
                break


def iter_events(
    source: Source,
    *,
    trim_text: bool = True,
    normalize_text: bool = False,
    emit_whitespace_text: bool = False,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Iterator[ParseEvent]:
    """Convenience wrapper around ``StreamingWalker(...).walk(source)``."""
    walker = StreamingWalker(
        trim_text=trim_text,
        normalize_text=normalize_text,
        emit_whitespace_text=emit_whitespace_text,
        chunk_size=chunk_size,
    )
    return walker.walk(source)
