"""Driver-side context model — contexts rebuilt from observed records.

ARCHITECTURE
────────────
::

    ParsedContext
      ├── id         ─ producer-chosen context id
      ├── timestamp  ─ creation time from the ``begin`` record
      ├── parent     ─ ParsedContext | raw id | None  (resolved once)
      ├── scope      ─ read-only copy of ``begin.scope``
      └── extra      ─ any other ``begin`` fields

    ContextLookup = Resolved(context) | Unresolved(id)

    EventInfo  ─ (context, timestamp) handed to every handler
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union

from shipment.events.record import freeze


@dataclass(frozen=True, eq=False)
class ParsedContext:
    """One execution context as reconstructed by the :class:`EventParser`.

    Identity is the object itself, so equality is identity. A repeated
    ``begin`` for a known id registers a new context under that id; contexts
    already resolved as parents keep pointing at the old one.
    """

    id: str
    timestamp: float
    parent: ParsedContext | str | None = None
    scope: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        object.__setattr__(self, "scope", freeze(self.scope or {}))
        object.__setattr__(self, "extra", freeze(self.extra or {}))

    @property
    def parent_id(self) -> str | None:
        """Id of the parent, whether or not it was resolved."""
        if isinstance(self.parent, ParsedContext):
            return self.parent.id
        return self.parent

    @property
    def parent_resolved(self) -> bool:
        return isinstance(self.parent, ParsedContext)

    def ancestors(self) -> Iterator[ParsedContext]:
        """Walk resolved parents, nearest first. Stops at an unresolved id."""
        parent = self.parent
        while isinstance(parent, ParsedContext):
            yield parent
            parent = parent.parent

    def lookup(self, key: str, default: Any = None) -> Any:
        """Effective scope value: own scope first, then resolved ancestors."""
        if key in self.scope:
            return self.scope[key]
        for ancestor in self.ancestors():
            if key in ancestor.scope:
                return ancestor.scope[key]
        return default

    def __repr__(self) -> str:
        return f"ParsedContext(id={self.id!r}, parent={self.parent_id!r}, scope={dict(self.scope)!r})"


@dataclass(frozen=True)
class Resolved:
    """Lookup hit: the id is registered."""

    context: ParsedContext

    @property
    def id(self) -> str:
        return self.context.id


@dataclass(frozen=True)
class Unresolved:
    """Lookup miss: only the raw id is known."""

    id: str


ContextLookup = Union[Resolved, Unresolved]


@dataclass(frozen=True)
class EventInfo:
    """Second argument of every handler call.

    ``context`` is the registered :class:`ParsedContext` for the record, or
    the bare id when the record's context was never begun. Handlers must
    accept either.
    """

    context: ParsedContext | str
    timestamp: float

    @property
    def context_id(self) -> str:
        if isinstance(self.context, ParsedContext):
            return self.context.id
        return self.context

    @property
    def resolved(self) -> bool:
        return isinstance(self.context, ParsedContext)
