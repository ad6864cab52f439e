"""Record sinks — where a Reporter hands finished scope records.

::

    RecordSink (protocol)
      └── .emit(record)

    StreamSink(stream)      ─ JSON lines (worker stdout → driver)
    MemorySink()            ─ list of records (tests)
    CallbackSink(callback)  ─ direct hand-off, e.g. EventParser.receive
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Callable
from typing import Any, Protocol, TextIO, runtime_checkable

from shipment.events.record import Record, encode_record


@runtime_checkable
class RecordSink(Protocol):
    """Anything that accepts finished scope records."""

    def emit(self, record: Record) -> None: ...


class StreamSink:
    """Write each record as one JSON line to a text stream.

    ``stream`` defaults to whatever ``sys.stdout`` is when the record is
    written. Writes are serialized so concurrent sub-contexts never
    interleave partial lines.
    """

    def __init__(self, stream: TextIO | None = None, flush: bool = True) -> None:
        self._stream = stream
        self._flush = flush
        self._lock = threading.Lock()

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def emit(self, record: Record) -> None:
        line = encode_record(record) + "\n"
        with self._lock:
            stream = self.stream
            stream.write(line)
            if self._flush:
                stream.flush()


class MemorySink:
    """Keep records in memory."""

    def __init__(self) -> None:
        self.records: list[dict[str, Any]] = []

    def emit(self, record: Record) -> None:
        self.records.append(dict(record))

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("type") == event_type]

    def clear(self) -> None:
        self.records.clear()

    def __len__(self) -> int:
        return len(self.records)


class CallbackSink:
    """Hand records straight to a callable (in-process transport)."""

    def __init__(self, callback: Callable[[Record], Any]) -> None:
        self.callback = callback

    def emit(self, record: Record) -> None:
        self.callback(record)
