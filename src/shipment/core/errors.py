"""
Structured error types for shipment.

Every failure raised by the event parser, the worker and the action
catalogue extends :class:`ShipmentError`, so callers can catch one base
class and still get a category, structured context and the chained
cause for logging.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                        ShipmentError                         │
        │              (category, context, cause)                      │
        ├──────────────────────────────────────────────────────────────┤
        │                                                              │
        │  ValidationError        DispatchError       ActionError      │
        │  (VALIDATION)           (DISPATCH)          (ACTION)         │
        │       │                      │                   │           │
        │  MalformedRecordError   UnhandledEventError  ActionNotFound  │
        │                                             InvalidExport    │
        │                                                              │
        │  WorkerError            ConfigError                          │
        │  (WORKER)               (CONFIG)                             │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> error = UnhandledEventError({"type": "progress"})
    >>> error.category
    <ErrorCategory.DISPATCH: 'DISPATCH'>
    >>> error.with_context(context_id="c1").context.context_id
    'c1'

Tags:
    error-handling, exception-hierarchy, error-context, shipment

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Attributes:
        VALIDATION: Malformed records, bad request bodies
        DISPATCH: Handler chain failures (unconsumed events in strict mode)
        ACTION: Unknown actions, bad exports
        WORKER: Worker process failures
        CONFIG: Missing or invalid settings
        INTERNAL: Bugs, unexpected state
    """

    VALIDATION = "VALIDATION"
    DISPATCH = "DISPATCH"
    ACTION = "ACTION"
    WORKER = "WORKER"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        action: Name of the action being run
        context_id: Id of the execution context the error relates to
        export_path: Export path the shipment was loaded from
        pid: Worker process id
        metadata: Additional key-value pairs
    """

    action: str | None = None
    context_id: str | None = None
    export_path: str | None = None
    pid: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["action", "context_id", "export_path", "pid"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ShipmentError(Exception):
    """
    Base exception for all shipment errors.

    Subclasses set ``default_category`` to classify themselves.

    Examples:
        >>> error = ShipmentError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.to_dict()["error_type"]
        'ShipmentError'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ShipmentError:
        """
        Add context to this error (fluent API).

        Usage:
            raise WorkerError("Worker exited").with_context(action="land", pid=4242)
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ShipmentError):
    """Invalid input: a record, a request body or an argument."""

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class MalformedRecordError(ValidationError):
    """A scope record is missing a required field or carries the wrong type."""

    pass


# =============================================================================
# DISPATCH ERRORS
# =============================================================================


class DispatchError(ShipmentError):
    """Error raised while routing a record through the handler chain."""

    default_category = ErrorCategory.DISPATCH


class UnhandledEventError(DispatchError):
    """No handler consumed the record while the parser runs in strict mode."""

    def __init__(self, data: Any, **kwargs: Any):
        self.data = data
        super().__init__(f"Unhandled event in EventParser: {_describe(data)}", **kwargs)


# =============================================================================
# ACTION ERRORS
# =============================================================================


class ActionError(ShipmentError):
    """Error resolving or loading actions."""

    default_category = ErrorCategory.ACTION


class ActionNotFoundError(ActionError):
    """The shipment has no action with the requested name."""

    def __init__(self, name: str, available: list[str] | None = None):
        self.name = name
        self.available = available or []
        super().__init__(
            f"No action named {name!r}. Available actions: {self.available or 'none'}"
        )
        self.context.action = name


class InvalidExportError(ActionError):
    """The export path does not resolve to a Shipment instance."""

    def __init__(self, export_path: Any, message: str | None = None, **kwargs: Any):
        self.export_path = export_path
        super().__init__(message or f"Export {export_path!r} does not provide a Shipment", **kwargs)
        if isinstance(export_path, str):
            self.context.export_path = export_path


class RunClosedError(ActionError):
    """The consumer of an in-process run stopped reading its records."""


# =============================================================================
# WORKER / CONFIG ERRORS
# =============================================================================


class WorkerError(ShipmentError):
    """A worker process failed or exited with a non-zero status."""

    default_category = ErrorCategory.WORKER

    def __init__(self, message: str, *, returncode: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.returncode = returncode


class ConfigError(ShipmentError):
    """Configuration error. The settings must be fixed."""

    default_category = ErrorCategory.CONFIG


def _describe(data: Any) -> str:
    # events.record imports this module
    from shipment.events.record import thaw

    try:
        return json.dumps(thaw(data), default=_jsonable, sort_keys=True)
    except (TypeError, ValueError):
        return repr(data)


def _jsonable(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    return str(value)


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ShipmentError",
    "ValidationError",
    "MalformedRecordError",
    "DispatchError",
    "UnhandledEventError",
    "ActionError",
    "ActionNotFoundError",
    "InvalidExportError",
    "RunClosedError",
    "WorkerError",
    "ConfigError",
]
