"""Event Parser — rebuilds the context tree and routes records to handlers.

Manifesto:
A worker reports progress as a flat stream of scope records. The driver
needs two things from that stream: the tree of contexts the worker
opened, and a way for independent observers (HTTP response, logger,
test probe) to react to the events they care about without knowing
about each other. ``EventParser`` does both in one sequential pass.

ARCHITECTURE
────────────
::

    receive(record)
      ├── validate            ─ MalformedRecordError (optional)
      ├── begin?  → register  ─ ParsedContext into the registry,
      │                         notify Channel.BEGIN
      └── dispatch
            info = EventInfo(get_context(id), timestamp)
            data = frozen record minus context/timestamp

            [normal handlers] + [final handlers] + fallback
              h(data, info, raw) → new data    … continue
                                 → None        … consumed, stop

            fallback → notify Channel.UNCAUGHT(data, info)

    use(h)          ─ end of the normal segment
    use(h, first=True) ─ front of the chain
    use_final(h)    ─ end of the final segment
    set_strict()    ─ UNCAUGHT listener that raises UnhandledEventError

The registry is append-only for the parser's lifetime.

Related modules:
    record.py   — wire format, freeze/validate helpers
    context.py  — ParsedContext, EventInfo, lookup results
    combine.py  — combine_handlers used by use_combine()
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from enum import Enum
from typing import Any

from shipment.core.errors import UnhandledEventError
from shipment.core.logging import get_logger
from shipment.events.combine import combine_handlers
from shipment.events.context import ContextLookup, EventInfo, ParsedContext, Resolved, Unresolved
from shipment.events.record import BEGIN, CONTEXT, TIMESTAMP, Record, event_payload, validate_record

logger = get_logger(__name__)

Handler = Callable[[Any, EventInfo, Record], Any]
Listener = Callable[..., Any]


class Channel(str, Enum):
    """Meta-notifications emitted by the parser."""

    BEGIN = "begin"
    """A context was registered. Listener args: (ParsedContext, raw record)."""

    UNCAUGHT = "uncaught"
    """A record reached the fallback. Listener args: (data, EventInfo)."""


class EventParser:
    """Maps incoming scope records to contexts and fires them through handlers.

    Example:
        >>> import sys
        >>> from shipment.core.logging import configure_logging
        >>> configure_logging(level="WARNING", stream=sys.stderr)
        >>> parser = EventParser()
        >>> seen = []
        >>> parser.use(lambda data, info, raw: seen.append(data.get("type")))
        >>> parser.receive({"context": "c1", "timestamp": 100, "begin": {"scope": {"action": "land"}}})
        >>> parser.receive({"context": "c1", "timestamp": 150, "type": "progress", "percent": 50})
        >>> parser.get_context("c1").scope["action"]
        'land'
        >>> seen
        [None, 'progress']
    """

    def __init__(self, *, strict: bool = False, validate: bool = True) -> None:
        self._contexts: dict[str, ParsedContext] = {}
        self._handlers: list[Handler] = []
        self._final_handlers: list[Handler] = []
        self._listeners: dict[Channel, list[Listener]] = {channel: [] for channel in Channel}
        self._strict_listener: Listener | None = None
        self.validate = validate
        if strict:
            self.set_strict(True)

    # ── Record intake ────────────────────────────────────────────────

    def receive(self, record: Record) -> None:
        """Read one incoming record: register its context if it begins one,
        then dispatch it through the handler chain.

        Raises:
            MalformedRecordError: If validation is on and the record is malformed.
            UnhandledEventError: In strict mode, if no handler consumed the record.
        """
        if self.validate:
            validate_record(record)
        if record.get(BEGIN) is not None:
            self.begin(record)
        self.fire(record)

    def begin(self, record: Record) -> ParsedContext:
        """Register the context introduced by ``record`` and notify listeners."""
        context_id = record.get(CONTEXT)
        begin: Mapping[str, Any] = record.get(BEGIN) or {}

        parent = begin.get("parent")
        if parent is not None:
            parent = self.get_context(parent)
            if not isinstance(parent, ParsedContext):
                logger.debug("event_parser.parent_unresolved", context=context_id, parent=parent)

        context = ParsedContext(
            id=context_id,
            timestamp=record.get(TIMESTAMP),
            parent=parent,
            scope=begin.get("scope") or {},
            extra={key: value for key, value in begin.items() if key not in ("parent", "scope")},
        )
        if context_id in self._contexts:
            logger.warning("event_parser.context_replaced", context=context_id)
        self._contexts[context_id] = context
        logger.debug(
            "event_parser.context_registered",
            context=context_id,
            parent=context.parent_id,
            registry_size=len(self._contexts),
        )
        self._notify(Channel.BEGIN, context, record)
        return context

    def fire(self, record: Record) -> None:
        """Invoke the handler chain for ``record``."""
        info = EventInfo(context=self.get_context(record.get(CONTEXT)), timestamp=record.get(TIMESTAMP))
        data: Any = event_payload(record)

        for handler in self._chain():
            data = handler(data, info, record)
            if data is None:
                return

    def _chain(self) -> Iterator[Handler]:
        yield from list(self._handlers)
        yield from list(self._final_handlers)
        yield self._fallback

    def _fallback(self, data: Any, info: EventInfo, record: Record) -> Any:
        self._notify(Channel.UNCAUGHT, data, info)
        return data

    # ── Handler chain ────────────────────────────────────────────────

    def use(self, handler: Handler, first: bool = False) -> None:
        """Add ``handler`` to the chain.

        Handlers are called with:

        1. the payload: a read-only mapping of the record without
           ``context``/``timestamp`` (or whatever the previous handler returned)
        2. an :class:`EventInfo` carrying the context and timestamp
        3. the raw incoming record

        Returning ``None`` consumes the event; any other value is passed on
        to the next handler.

        Args:
            handler: The handler to add
            first: Put the handler at the very front of the chain instead of
                just before the final handlers
        """
        if first:
            self._handlers.insert(0, handler)
        else:
            self._handlers.append(handler)

    def use_final(self, handler: Handler) -> None:
        """Add ``handler`` to the end of the chain and keep it behind any
        handler added later via :meth:`use`."""
        self._final_handlers.append(handler)

    def use_combine(self, handlers: Mapping[Any, Handler], first: bool = False) -> None:
        """Same as :meth:`use`, but combines a mapping of handlers keyed by
        event type with :func:`combine_handlers` first."""
        self.use(combine_handlers(handlers), first)

    @property
    def handlers(self) -> tuple[Handler, ...]:
        """Registered handlers in call order (the fallback is not included)."""
        return tuple(self._handlers) + tuple(self._final_handlers)

    # ── Notification channels ────────────────────────────────────────

    def on(self, channel: Channel | str, listener: Listener) -> None:
        """Subscribe ``listener`` to a parser notification channel."""
        self._listeners[Channel(channel)].append(listener)

    def off(self, channel: Channel | str, listener: Listener) -> bool:
        """Unsubscribe ``listener``. Returns False if it was not subscribed."""
        listeners = self._listeners[Channel(channel)]
        if listener in listeners:
            listeners.remove(listener)
            return True
        return False

    def _notify(self, channel: Channel, *args: Any) -> None:
        for listener in list(self._listeners[channel]):
            listener(*args)

    # ── Strict mode ──────────────────────────────────────────────────

    def set_strict(self, enabled: bool = True) -> None:
        """When enabled, any record that no handler consumes raises
        :class:`UnhandledEventError` out of :meth:`receive`."""
        if self._strict_listener is not None:
            self.off(Channel.UNCAUGHT, self._strict_listener)
            self._strict_listener = None
        if enabled:
            self._strict_listener = _raise_unhandled
            self.on(Channel.UNCAUGHT, self._strict_listener)

    @property
    def strict(self) -> bool:
        return self._strict_listener is not None

    # ── Registry ─────────────────────────────────────────────────────

    def get_context(self, context_id: str) -> ParsedContext | str:
        """Get the context registered under ``context_id``.

        Returns the id itself when no context was registered for it.
        """
        try:
            return self._contexts.get(context_id, context_id)
        except TypeError:
            return context_id

    def lookup(self, context_id: str) -> ContextLookup:
        """Tagged variant of :meth:`get_context`."""
        context = self.get_context(context_id)
        if isinstance(context, ParsedContext):
            return Resolved(context)
        return Unresolved(context_id)

    @property
    def contexts(self) -> Mapping[str, ParsedContext]:
        """Read-only view of the registry."""
        return dict(self._contexts)

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, context_id: object) -> bool:
        return context_id in self._contexts


def _raise_unhandled(data: Any, info: EventInfo) -> None:
    raise UnhandledEventError(data).with_context(context_id=info.context_id)
