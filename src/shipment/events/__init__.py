"""Driver-side event routing: scope records in, context tree and handler calls out.

Usage::

    from shipment.events import EventParser, Channel

    parser = EventParser(strict=True)
    parser.use_combine({"progress": on_progress})
    parser.on(Channel.BEGIN, lambda context, raw: print("opened", context.id))
    for record in records:
        parser.receive(record)

Modules
-------
record      Wire format, freeze/thaw, validation, JSON-lines codec
context     ParsedContext, EventInfo, Resolved/Unresolved
parser      EventParser — registry, demultiplexer, handler chain
combine     combine_handlers — dispatch by event type
handlers    Built-in observers (logging, forwarding, recording)
"""

from shipment.events.combine import combine_handlers
from shipment.events.context import ContextLookup, EventInfo, ParsedContext, Resolved, Unresolved
from shipment.events.handlers import RecordingHandler, consume_begin, forward_handler, log_handler
from shipment.events.parser import Channel, EventParser, Handler
from shipment.events.record import decode_record, encode_record, freeze, thaw, validate_record

__all__ = [
    "Channel",
    "ContextLookup",
    "EventInfo",
    "EventParser",
    "Handler",
    "ParsedContext",
    "RecordingHandler",
    "Resolved",
    "Unresolved",
    "combine_handlers",
    "consume_begin",
    "decode_record",
    "encode_record",
    "forward_handler",
    "freeze",
    "log_handler",
    "thaw",
    "validate_record",
]
