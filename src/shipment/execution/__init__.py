"""Producer side and action execution.

Modules
-------
context     ExecutionContext — nested scopes of work
reporter    Reporter — context events → scope records
sinks       StreamSink / MemorySink / CallbackSink
action      Action, Shipment catalogue
worker      ShipmentWorker, execute_action, worker process entry
runners     ForkedRun / InProcessRun, run_action_via_fork / _via_api
"""

from shipment.execution.action import Action, Shipment, action_name
from shipment.execution.context import ExecutionContext
from shipment.execution.reporter import Reporter, ReporterFactory
from shipment.execution.runners import (
    ForkedRun,
    InProcessRun,
    pump,
    run_action_via_api,
    run_action_via_fork,
)
from shipment.execution.sinks import CallbackSink, MemorySink, RecordSink, StreamSink
from shipment.execution.worker import ShipmentWorker, execute_action, load_shipment

__all__ = [
    "Action",
    "CallbackSink",
    "ExecutionContext",
    "ForkedRun",
    "InProcessRun",
    "MemorySink",
    "RecordSink",
    "Reporter",
    "ReporterFactory",
    "Shipment",
    "ShipmentWorker",
    "StreamSink",
    "action_name",
    "execute_action",
    "load_shipment",
    "pump",
    "run_action_via_api",
    "run_action_via_fork",
]
