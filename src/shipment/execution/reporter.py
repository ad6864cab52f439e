"""Reporter — turns a context's typed events into scope records.

ARCHITECTURE
────────────
::

    ctx.report("progress", {"percent": 50})
      └── Reporter(ctx).report(...)
            ├── first record of ctx?  announce ancestors (begin-only records),
            │                          attach ``begin`` to this record
            └── sink.emit({"context": ctx.id, "timestamp": …, "type": "progress",
                           "percent": 50})

A context is announced exactly once, and always after its parent, so the
driver can resolve every ``begin.parent`` it sees.

Subclass ``Reporter`` and pass it as ``reporter_factory`` (or set
``default_reporter_factory`` on an ExecutionContext subclass) to change
how records are shaped or where they go.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from shipment.events.record import BEGIN, CONTEXT, TIMESTAMP
from shipment.execution.sinks import RecordSink

if TYPE_CHECKING:
    from shipment.execution.context import ExecutionContext


def now_ms() -> float:
    """Wall-clock epoch milliseconds, the record timestamp unit."""
    return time.time() * 1000.0


class Reporter:
    """Serializes records on behalf of one :class:`ExecutionContext`."""

    def __init__(self, context: ExecutionContext) -> None:
        self.context = context

    @property
    def sink(self) -> RecordSink:
        return self.context.sink

    def report(self, type: str, data: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Emit one event record for the owning context and return it."""
        payload = dict(data or {})
        timestamp = payload.pop(TIMESTAMP, None)
        payload.pop(CONTEXT, None)
        payload.pop(BEGIN, None)
        payload.pop("type", None)

        record: dict[str, Any] = {
            CONTEXT: self.context.id,
            TIMESTAMP: now_ms() if timestamp is None else timestamp,
        }
        if not self.context.announced:
            self._announce_parent()
            record[BEGIN] = self.context.begin_payload()
            self.context.announced = True
        record["type"] = type
        record.update(payload)
        self.emit(record)
        return record

    def announce(self) -> None:
        """Emit a begin-only record for the owning context, once."""
        if self.context.announced:
            return
        self._announce_parent()
        self.context.announced = True
        self.emit(
            {
                CONTEXT: self.context.id,
                TIMESTAMP: self.context.created_at * 1000.0,
                BEGIN: self.context.begin_payload(),
            }
        )

    def _announce_parent(self) -> None:
        parent = self.context.parent
        if parent is not None and not parent.announced:
            parent.reporter.announce()

    def emit(self, record: dict[str, Any]) -> None:
        self.sink.emit(record)


ReporterFactory = Callable[["ExecutionContext"], Reporter]
