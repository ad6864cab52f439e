"""
shipment - run actions locally or in worker processes and follow their
progress as a tree of execution contexts.

- shipment.execution: producer side (ExecutionContext, Reporter, actions, runners)
- shipment.events: driver side (EventParser, ParsedContext, handler chain)
- shipment.api: HTTP exposure of a Shipment's actions
- shipment.cli: command line
"""

__version__ = "0.1.0"

from shipment.core.errors import ShipmentError, UnhandledEventError  # noqa: E402
from shipment.events import Channel, EventInfo, EventParser, ParsedContext, combine_handlers  # noqa: E402
from shipment.execution import (  # noqa: E402
    Action,
    ExecutionContext,
    Reporter,
    Shipment,
    ShipmentWorker,
    run_action_via_api,
    run_action_via_fork,
)

__all__ = [
    "Action",
    "Channel",
    "EventInfo",
    "EventParser",
    "ExecutionContext",
    "ParsedContext",
    "Reporter",
    "Shipment",
    "ShipmentError",
    "ShipmentWorker",
    "UnhandledEventError",
    "combine_handlers",
    "run_action_via_api",
    "run_action_via_fork",
]
