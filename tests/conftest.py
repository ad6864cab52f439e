"""
Shared pytest fixtures and configuration for shipment tests.

This module provides:
- Paths to the demo shipment export
- Parsers and sinks wired for assertions
- Auto-marking of unit vs integration tests
"""

import os
import sys
from pathlib import Path

import pytest
import structlog

SRC = Path(__file__).parent.parent / "src"
FIXTURES = Path(__file__).parent / "fixtures"

# Ensure the shipment package is importable, here and in worker processes
sys.path.insert(0, str(SRC))
os.environ["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC), os.environ.get("PYTHONPATH")]))

from shipment.core.settings import get_settings  # noqa: E402
from shipment.events import EventParser, RecordingHandler  # noqa: E402
from shipment.execution import MemorySink, Shipment  # noqa: E402
from shipment.execution.worker import load_shipment  # noqa: E402


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def _reset_logging_and_settings():
    """Undo configure_logging() and cached settings between tests."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    get_settings.cache_clear()


# =============================================================================
# Demo shipment
# =============================================================================


@pytest.fixture
def demo_export() -> str:
    """Export path of the demo shipment (file form)."""
    return str(FIXTURES / "demo_shipment.py")


@pytest.fixture
def demo_shipment(demo_export: str) -> Shipment:
    return load_shipment(demo_export)


# =============================================================================
# Event plumbing
# =============================================================================


@pytest.fixture
def parser() -> EventParser:
    return EventParser()


@pytest.fixture
def probe() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()
