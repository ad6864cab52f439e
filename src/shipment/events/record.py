"""Scope Records — the wire unit shared by worker and driver.

ARCHITECTURE
────────────
::

    {
      "context":   "<id>",             ─ required, owning context
      "timestamp": 1700000000000.0,    ─ required, producer epoch millis
      "begin":     {"parent": "<id>", "scope": {...}},   ─ first record only
      ...                              ─ event payload (opaque to the parser)
    }

    One JSON object per line on the worker's stdout.

Payloads handed to handlers are deep-frozen: mappings become
``MappingProxyType`` views over private copies and lists become tuples,
so no handler can change what another handler sees.

Related modules:
    parser.py            — EventParser consumes records
    execution/reporter.py — Reporter produces records
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from numbers import Real
from types import MappingProxyType
from typing import Any

from shipment.core.errors import MalformedRecordError

CONTEXT = "context"
TIMESTAMP = "timestamp"
BEGIN = "begin"

Record = Mapping[str, Any]


def freeze(value: Any) -> Any:
    """Return a read-only deep copy of ``value``.

    Mappings become ``MappingProxyType``, lists/tuples become tuples and
    sets become frozensets. Scalars are returned unchanged.
    """
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of :func:`freeze`: plain, mutable dicts and lists."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    if isinstance(value, frozenset):
        return {thaw(item) for item in value}
    return value


def event_payload(record: Record) -> Mapping[str, Any]:
    """Frozen payload of a record: everything except ``context``/``timestamp``."""
    return freeze({key: value for key, value in record.items() if key not in (CONTEXT, TIMESTAMP)})


def validate_record(record: Any) -> Record:
    """Check the fields the parser relies on.

    Raises:
        MalformedRecordError: If the record is not a mapping, ``context`` is
            not a string, ``timestamp`` is not a number, or ``begin`` is
            present but not a mapping.
    """
    if not isinstance(record, Mapping):
        raise MalformedRecordError(
            f"Scope record must be a mapping, got {type(record).__name__}",
            value=record,
        )
    context_id = record.get(CONTEXT)
    if not isinstance(context_id, str) or not context_id:
        raise MalformedRecordError(
            "Scope record is missing a string 'context'", field=CONTEXT, value=context_id
        )
    timestamp = record.get(TIMESTAMP)
    if isinstance(timestamp, bool) or not isinstance(timestamp, Real):
        raise MalformedRecordError(
            "Scope record is missing a numeric 'timestamp'", field=TIMESTAMP, value=timestamp
        ).with_context(context_id=context_id)
    begin = record.get(BEGIN)
    if begin is not None and not isinstance(begin, Mapping):
        raise MalformedRecordError(
            "Scope record 'begin' must be a mapping", field=BEGIN, value=begin
        ).with_context(context_id=context_id)
    return record


def encode_record(record: Record) -> str:
    """Serialize a record as one JSON line (no trailing newline)."""
    return json.dumps(thaw(record), default=str, separators=(",", ":"))


def decode_record(line: str | bytes) -> dict[str, Any]:
    """Parse one JSON line into a record.

    Raises:
        MalformedRecordError: If the line is not a JSON object.
    """
    try:
        record = json.loads(line)
    except json.JSONDecodeError as e:
        raise MalformedRecordError("Scope record line is not valid JSON", value=line, cause=e) from e
    if not isinstance(record, dict):
        raise MalformedRecordError("Scope record line is not a JSON object", value=line)
    return record
