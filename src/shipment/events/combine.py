"""Combine per-event-type handlers into one chain entry.

Example::

    parser.use(combine_handlers({
        "progress": on_progress,
        "log":      on_log,
    }))

A payload whose ``type`` matches a key goes to that handler, which decides
whether the event is consumed. Any other payload passes through unchanged.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any


def _key(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def combine_handlers(
    handlers: Mapping[Any, Callable[..., Any]],
    key: str = "type",
) -> Callable[..., Any]:
    """Build a handler that dispatches on the payload's ``key`` field.

    Args:
        handlers: Mapping of discriminant value (str or Enum) to handler
        key: Payload field holding the discriminant

    Returns:
        A handler suitable for :meth:`EventParser.use`.
    """
    table = {_key(name): handler for name, handler in handlers.items()}

    def combined(data: Any, info: Any, raw: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        try:
            handler = table.get(data.get(key))
        except TypeError:
            return data
        if handler is None:
            return data
        return handler(data, info, raw)

    combined.handlers = table  # type: ignore[attr-defined]
    return combined
