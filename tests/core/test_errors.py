"""Tests for shipment.core.errors module."""

import pytest

from shipment.core.errors import (
    ActionError,
    ActionNotFoundError,
    ConfigError,
    DispatchError,
    ErrorCategory,
    ErrorContext,
    InvalidExportError,
    MalformedRecordError,
    ShipmentError,
    UnhandledEventError,
    ValidationError,
    WorkerError,
)
from shipment.events.record import freeze


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        ctx = ErrorContext()
        assert ctx.action is None
        assert ctx.context_id is None
        assert ctx.metadata == {}
        assert ctx.to_dict() == {}

    def test_to_dict_skips_unset_fields(self):
        ctx = ErrorContext(action="land", pid=4242, metadata={"attempt": 2})

        assert ctx.to_dict() == {"action": "land", "pid": 4242, "attempt": 2}


class TestShipmentError:
    """Test the base error."""

    def test_defaults(self):
        error = ShipmentError("Something went wrong")

        assert str(error) == "Something went wrong"
        assert error.category == ErrorCategory.INTERNAL
        assert error.cause is None

    def test_cause_is_chained(self):
        cause = ValueError("root")
        error = ShipmentError("wrapped", cause=cause)

        assert error.__cause__ is cause
        assert error.to_dict()["cause"] == "root"

    def test_with_context_is_fluent(self):
        error = WorkerError("exited").with_context(action="land", pid=7, attempt=3)

        assert isinstance(error, WorkerError)
        assert error.context.action == "land"
        assert error.context.pid == 7
        assert error.context.metadata == {"attempt": 3}

    def test_to_dict(self):
        error = ShipmentError("boom", category=ErrorCategory.WORKER).with_context(context_id="c1")

        assert error.to_dict() == {
            "error_type": "ShipmentError",
            "message": "boom",
            "category": "WORKER",
            "context": {"context_id": "c1"},
        }

    def test_repr(self):
        assert repr(ConfigError("bad")) == "ConfigError('bad', category=CONFIG)"


class TestHierarchy:
    """Categories and base classes of the concrete errors."""

    @pytest.mark.parametrize(
        "error, base, category",
        [
            (MalformedRecordError("x"), ValidationError, ErrorCategory.VALIDATION),
            (UnhandledEventError({}), DispatchError, ErrorCategory.DISPATCH),
            (ActionNotFoundError("x"), ActionError, ErrorCategory.ACTION),
            (InvalidExportError("x"), ActionError, ErrorCategory.ACTION),
            (WorkerError("x"), ShipmentError, ErrorCategory.WORKER),
            (ConfigError("x"), ShipmentError, ErrorCategory.CONFIG),
        ],
    )
    def test_categories(self, error, base, category):
        assert isinstance(error, base)
        assert isinstance(error, ShipmentError)
        assert error.category == category


class TestConcreteErrors:
    def test_malformed_record_to_dict(self):
        error = MalformedRecordError("bad", field="timestamp", value="soon")

        result = error.to_dict()

        assert result["field"] == "timestamp"
        assert result["value"] == "'soon'"

    def test_unhandled_event_describes_frozen_payload(self):
        error = UnhandledEventError(freeze({"type": "progress", "steps": [1, 2]}))

        assert str(error) == 'Unhandled event in EventParser: {"steps": [1, 2], "type": "progress"}'

    def test_unhandled_event_describes_frozen_sets(self):
        error = UnhandledEventError(freeze({"type": "tags", "tags": {"b", "a"}, "nested": {"ids": (3, 1)}}))

        assert str(error) == (
            'Unhandled event in EventParser: {"nested": {"ids": [3, 1]}, "tags": ["a", "b"], "type": "tags"}'
        )

    def test_unhandled_event_non_mapping(self):
        assert str(UnhandledEventError("raw")) == 'Unhandled event in EventParser: "raw"'

    def test_action_not_found(self):
        error = ActionNotFoundError("nope", ["land-action"])

        assert "nope" in error.message
        assert "land-action" in error.message
        assert error.to_dict()["context"] == {"action": "nope"}

    def test_invalid_export(self):
        error = InvalidExportError("pkg:attr")

        assert error.message == "Export 'pkg:attr' does not provide a Shipment"
        assert error.context.export_path == "pkg:attr"

    def test_invalid_export_non_string(self):
        error = InvalidExportError(42)

        assert error.context.export_path is None

    def test_worker_returncode(self):
        assert WorkerError("exited", returncode=3).returncode == 3
