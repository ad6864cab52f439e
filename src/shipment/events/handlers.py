"""Built-in chain entries — terminal observers for the EventParser.

::

    consume_begin            ─ swallow begin-only records
    log_handler(logger)      ─ log every record, pass it on
    forward_handler(write)   ─ re-encode the raw record, hand it to ``write``
    RecordingHandler()       ─ collect (data, info) pairs (tests, probes)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from shipment.core.logging import get_logger
from shipment.events.context import EventInfo
from shipment.events.record import Record, encode_record, thaw


def consume_begin(data: Any, info: EventInfo, raw: Record) -> Any:
    """Consume records that only announce a context and carry no event."""
    if hasattr(data, "keys") and set(data.keys()) == {"begin"}:
        return None
    return data


def log_handler(log: Any = None, event: str = "event_parser.record") -> Callable[..., Any]:
    """Log each payload with its context id, then pass it on unchanged."""
    log = log or get_logger("shipment.events")

    def handler(data: Any, info: EventInfo, raw: Record) -> Any:
        log.debug(event, context=info.context_id, timestamp=info.timestamp, data=thaw(data))
        return data

    return handler


def forward_handler(write: Callable[[str], Any], consume: bool = True) -> Callable[..., Any]:
    """Forward the raw record as a JSON line to ``write``.

    With ``consume`` (the default) the record stops here; otherwise it
    continues down the chain.
    """

    def handler(data: Any, info: EventInfo, raw: Record) -> Any:
        write(encode_record(raw) + "\n")
        return None if consume else data

    return handler


@dataclass
class RecordingHandler:
    """Handler that remembers every call.

    Example:
        >>> from shipment.events.parser import EventParser
        >>> parser = EventParser()
        >>> probe = RecordingHandler()
        >>> parser.use_final(probe)
        >>> parser.receive({"context": "c1", "timestamp": 100, "type": "progress", "percent": 50})
        >>> probe.payloads()
        [{'type': 'progress', 'percent': 50}]
    """

    consume: bool = False
    calls: list[tuple[Any, EventInfo, Record]] = field(default_factory=list)

    def __call__(self, data: Any, info: EventInfo, raw: Record) -> Any:
        self.calls.append((data, info, raw))
        return None if self.consume else data

    def payloads(self) -> list[Any]:
        return [thaw(data) for data, _, _ in self.calls]

    def of_type(self, event_type: str) -> list[Any]:
        return [
            thaw(data)
            for data, _, _ in self.calls
            if hasattr(data, "get") and data.get("type") == event_type
        ]

    def clear(self) -> None:
        self.calls.clear()
