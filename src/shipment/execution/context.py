"""Execution Context — one nested scope of work inside an action.

Manifesto:
An action rarely does one thing. Landing a release might build, upload
and notify, each with its own progress. Every such step runs in its own
``ExecutionContext``: a node in a tree that carries its own scope, points
at its enclosing context and reports records tagged with its id, so the
driver can rebuild the same tree on the other side of the process
boundary.

ARCHITECTURE
────────────
::

    ExecutionContext
      ├── .id                     → unique id (uuid4)
      ├── .scope                  → read-only, local to this node
      ├── .parent                 → enclosing context | None
      ├── .options                → configuration shared down the tree
      ├── .sink                   → where records go (shared down the tree)
      ├── .reporter_factory       → resolved once at construction
      ├── .create_sub_context(s)  → same type, parent=self, scope=s
      ├── .with_scope(s, fn)      → fn(create_sub_context(s))
      ├── .lookup(key)            → scope value, nearest ancestor wins
      ├── .get_uptime()           → seconds since construction
      └── .report(type, data)     → Reporter.report(...)

Example:
    >>> from shipment.execution.sinks import MemorySink
    >>> sink = MemorySink()
    >>> root = ExecutionContext({"verbosity": 2}, {"action": "land"}, sink=sink)
    >>> build = root.create_sub_context({"step": "build"})
    >>> record = build.report("progress", {"percent": 50})
    >>> [r.get("type") for r in sink.records]
    [None, 'progress']
    >>> build.lookup("action")
    'land'
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Mapping
from functools import cached_property
from types import MappingProxyType
from typing import Any, ClassVar, TypeVar

from shipment.execution.reporter import Reporter, ReporterFactory
from shipment.execution.sinks import RecordSink, StreamSink

T = TypeVar("T")


class ExecutionContext:
    """Producer-side node of the context tree.

    Subclasses may set ``default_reporter_factory`` to use a custom
    :class:`Reporter` type; an explicit ``reporter_factory`` argument (or
    the parent's factory) takes precedence. Either way the factory is
    resolved once, here, and inherited by sub-contexts.
    """

    default_reporter_factory: ClassVar[ReporterFactory] = Reporter

    def __init__(
        self,
        options: Mapping[str, Any] | None = None,
        scope: Mapping[str, Any] | None = None,
        *,
        parent: ExecutionContext | None = None,
        reporter_factory: ReporterFactory | None = None,
        sink: RecordSink | None = None,
        context_id: str | None = None,
    ) -> None:
        self.id = context_id or str(uuid.uuid4())
        self.options: Mapping[str, Any] = MappingProxyType(dict(options or {}))
        self.scope: Mapping[str, Any] = MappingProxyType(dict(scope or {}))
        self.parent = parent
        self.created_at = time.time()
        self._started = time.monotonic()
        self.announced = False

        if reporter_factory is None and parent is not None:
            reporter_factory = parent.reporter_factory
        self.reporter_factory: ReporterFactory = reporter_factory or type(self).default_reporter_factory

        if sink is None and parent is not None:
            sink = parent.sink
        self.sink: RecordSink = sink if sink is not None else StreamSink()

    # ── Tree ─────────────────────────────────────────────────────────

    def create_sub_context(self, scope: Mapping[str, Any] | None = None) -> ExecutionContext:
        """Create a child context of the same type with the given scope.

        The child's scope is exactly ``scope``; it is not merged with this
        context's scope (use :meth:`lookup` for inherited values).
        """
        return type(self)(
            self.options,
            scope,
            parent=self,
            reporter_factory=self.reporter_factory,
            sink=self.sink,
        )

    def with_scope(self, scope: Mapping[str, Any], fn: Callable[[ExecutionContext], T]) -> T:
        """Run ``fn`` with a sub-context carrying ``scope`` and return its result."""
        return fn(self.create_sub_context(scope))

    def lookup(self, key: str, default: Any = None) -> Any:
        """Effective scope value: own scope first, then each ancestor's."""
        context: ExecutionContext | None = self
        while context is not None:
            if key in context.scope:
                return context.scope[key]
            context = context.parent
        return default

    @property
    def depth(self) -> int:
        depth, context = 0, self.parent
        while context is not None:
            depth, context = depth + 1, context.parent
        return depth

    # ── Timing ───────────────────────────────────────────────────────

    def get_uptime(self) -> float:
        """Seconds elapsed since this context was created."""
        return time.monotonic() - self._started

    # ── Reporting ────────────────────────────────────────────────────

    def make_reporter(self) -> Reporter:
        """Build a new reporter for this context."""
        return self.reporter_factory(self)

    @cached_property
    def reporter(self) -> Reporter:
        return self.make_reporter()

    def begin_payload(self) -> dict[str, Any]:
        """The ``begin`` field announcing this context."""
        begin: dict[str, Any] = {"scope": dict(self.scope)}
        if self.parent is not None:
            begin["parent"] = self.parent.id
        return begin

    def report(self, type: str, data: Mapping[str, Any] | None = None) -> Any:
        """Report an event of ``type`` tagged with this context's id."""
        return self.reporter.report(type, {**(data or {}), "context": self.id})

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, scope={dict(self.scope)!r}, depth={self.depth})"
