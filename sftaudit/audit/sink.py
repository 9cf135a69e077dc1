"""EventSink protocol and adapters for delivering normalized audit events.

The poller hands each accepted event to a sink as an :class:`AuditRecord`
tagged with the configured input name. Adapters serialise records as JSON
lines::

    {"input": "sft-audit-events", "event": {"id": "...", ...}}

Usage
-----
Write records to standard output:

>>> import asyncio
>>> sink = JsonLinesEventSink()
>>> asyncio.run(sink.emit(AuditRecord("sft-audit-events", {"id": "a"})))  # doctest: +SKIP

"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import sys
import typing as typ

import msgspec

if typ.TYPE_CHECKING:
    from pathlib import Path

    from .models import NormalizedEvent

_ENCODER = msgspec.json.Encoder()


@dc.dataclass(frozen=True, slots=True)
class AuditRecord:
    """A normalized event tagged with the input that produced it.

    Attributes
    ----------
    input_name
        Logical name of the configured input (the host's stanza).
    data
        Flat normalized event.

    """

    input_name: str
    data: NormalizedEvent


def encode_record(record: AuditRecord) -> bytes:
    """Return ``record`` as one newline-terminated JSON line."""
    return _ENCODER.encode({"input": record.input_name, "event": record.data}) + b"\n"


@typ.runtime_checkable
class EventSink(typ.Protocol):
    """Protocol for delivering one audit record downstream.

    Implementations may raise on failure; the poller isolates failures per
    record and carries on with the rest of the page.
    """

    async def emit(self, record: AuditRecord) -> None:
        """Deliver ``record``."""
        ...


class _BinaryStream(typ.Protocol):
    def write(self, data: bytes, /) -> object: ...

    def flush(self) -> object: ...


class JsonLinesEventSink:
    """Write records as JSON lines to a binary stream, flushing per record.

    Parameters
    ----------
    stream
        Destination stream. Defaults to the process's standard output.

    """

    def __init__(self, stream: _BinaryStream | None = None) -> None:
        """Bind the sink to ``stream``."""
        self._stream = stream if stream is not None else sys.stdout.buffer

    async def emit(self, record: AuditRecord) -> None:
        """Encode and write ``record``."""
        await asyncio.to_thread(self._write, encode_record(record))

    def _write(self, payload: bytes) -> None:
        self._stream.write(payload)
        self._stream.flush()


class FilesystemEventSink:
    """Append records as JSON lines to ``{base_path}/{input_name}.jsonl``."""

    def __init__(self, base_path: Path) -> None:
        """Initialise the sink with a base directory path."""
        self._base_path = base_path

    async def emit(self, record: AuditRecord) -> None:
        """Append ``record`` to the input's JSON lines file."""
        await asyncio.to_thread(self._append, record)

    def _append(self, record: AuditRecord) -> None:
        self._base_path.mkdir(parents=True, exist_ok=True)
        target = self._base_path / f"{record.input_name}.jsonl"
        with target.open("ab") as handle:
            handle.write(encode_record(record))
