"""Unit tests for the JSON lines event sinks."""

from __future__ import annotations

import asyncio
import io
import json
import threading
import typing as typ

from sftaudit.audit.sink import (
    AuditRecord,
    EventSink,
    FilesystemEventSink,
    JsonLinesEventSink,
    encode_record,
)

if typ.TYPE_CHECKING:
    from pathlib import Path

_RECORD = AuditRecord(
    "sft-audit-events",
    {"id": "evt-1", "timestamp": "2099-01-01T00:00:00+00:00", "actor": {"user": "a"}},
)


def test_encode_record_produces_one_json_line() -> None:
    """Records encode as a single newline-terminated JSON object."""
    encoded = encode_record(_RECORD)

    assert encoded.endswith(b"\n")
    assert encoded.count(b"\n") == 1
    assert json.loads(encoded) == {
        "input": "sft-audit-events",
        "event": {
            "id": "evt-1",
            "timestamp": "2099-01-01T00:00:00+00:00",
            "actor": {"user": "a"},
        },
    }


def test_sinks_satisfy_protocol(tmp_path: Path) -> None:
    """Both adapters are EventSink implementations."""
    assert isinstance(JsonLinesEventSink(io.BytesIO()), EventSink)
    assert isinstance(FilesystemEventSink(tmp_path), EventSink)


def test_json_lines_sink_writes_to_stream() -> None:
    """The stream sink writes each record as a line."""
    stream = io.BytesIO()
    sink = JsonLinesEventSink(stream)

    asyncio.run(sink.emit(_RECORD))
    asyncio.run(sink.emit(_RECORD))

    lines = stream.getvalue().splitlines()
    assert len(lines) == 2
    assert json.loads(lines[0])["event"]["id"] == "evt-1"


def test_filesystem_sink_appends_per_input(tmp_path: Path) -> None:
    """The filesystem sink appends to {base}/{input}.jsonl."""
    sink = FilesystemEventSink(tmp_path / "out")

    asyncio.run(sink.emit(_RECORD))
    asyncio.run(sink.emit(AuditRecord("sft-audit-events", {"id": "evt-2"})))

    target = tmp_path / "out" / "sft-audit-events.jsonl"
    lines = target.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["event"]["id"] for line in lines] == ["evt-1", "evt-2"]


class _ThreadRecordingStream(io.BytesIO):
    """BytesIO that remembers which thread wrote to it."""

    def __init__(self) -> None:
        super().__init__()
        self.write_threads: list[int] = []

    def write(self, data: bytes, /) -> int:  # type: ignore[override]
        self.write_threads.append(threading.get_ident())
        return super().write(data)


def test_json_lines_sink_writes_off_the_event_loop() -> None:
    """Stream writes run in a worker thread, not on the loop thread."""
    stream = _ThreadRecordingStream()
    sink = JsonLinesEventSink(stream)

    async def _emit() -> int:
        await sink.emit(_RECORD)
        return threading.get_ident()

    loop_thread = asyncio.run(_emit())

    assert stream.write_threads
    assert loop_thread not in stream.write_threads
    assert json.loads(stream.getvalue())["event"]["id"] == "evt-1"
