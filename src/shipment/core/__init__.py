"""Shared primitives: errors, logging and settings."""

from shipment.core.errors import (
    ActionError,
    ActionNotFoundError,
    ConfigError,
    DispatchError,
    ErrorCategory,
    ErrorContext,
    InvalidExportError,
    MalformedRecordError,
    RunClosedError,
    ShipmentError,
    UnhandledEventError,
    ValidationError,
    WorkerError,
)
from shipment.core.logging import configure_logging, get_logger

__all__ = [
    "ActionError",
    "ActionNotFoundError",
    "ConfigError",
    "DispatchError",
    "ErrorCategory",
    "ErrorContext",
    "InvalidExportError",
    "MalformedRecordError",
    "RunClosedError",
    "ShipmentError",
    "UnhandledEventError",
    "ValidationError",
    "WorkerError",
    "configure_logging",
    "get_logger",
]
