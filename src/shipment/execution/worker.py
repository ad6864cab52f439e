"""Shipment worker — loads a Shipment and runs one of its actions.

The same code runs in two places:

- in the driver process, for ``use_fork=False`` (see runners.InProcessRun)
- in a worker process started by ``shipment worker EXPORT ACTION``
  (see runners.ForkedRun), where stdout carries nothing but scope records

ARCHITECTURE
────────────
::

    ShipmentWorker(export_path)
      ├── .shipment              ─ loaded from "pkg.module:attr" or "file.py"
      └── .call(action, args)    ─ run the action in a fresh root context

    execute_action(worker, action, args, verify_key, sink)
      root context ── lifecycle {phase: start}
                   ── ... records reported by the action ...
                   ── lifecycle {phase: result | error}

    worker_main(...)  ─ process entry: records → stdout, prints → stderr
"""

from __future__ import annotations

import asyncio
import contextlib
import importlib
import importlib.util
import inspect
import os
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from shipment.core.errors import InvalidExportError, ShipmentError
from shipment.core.logging import LogContext, configure_logging, get_logger
from shipment.events.record import thaw
from shipment.execution.action import Shipment
from shipment.execution.context import ExecutionContext
from shipment.execution.sinks import RecordSink, StreamSink

logger = get_logger(__name__)

DEFAULT_EXPORT_ATTRIBUTE = "shipment"


def load_shipment(export_path: str) -> Shipment:
    """Resolve ``export_path`` to a :class:`Shipment`.

    Accepted forms:
        - ``"package.module:attribute"``
        - ``"package.module"`` (attribute ``shipment``)
        - ``"path/to/file.py"`` or ``"path/to/file.py:attribute"``

    A callable attribute that is not itself a Shipment is called with no
    arguments and must return one.

    Raises:
        InvalidExportError: If the path is not a string or does not provide a Shipment
    """
    if not isinstance(export_path, str) or not export_path:
        raise InvalidExportError(export_path, f"Export path must be a non-empty string, got {export_path!r}")

    target, _, attribute = export_path.partition(":")
    attribute = attribute or DEFAULT_EXPORT_ATTRIBUTE

    try:
        if target.endswith(".py") or os.sep in target:
            module = _load_file(Path(target))
        else:
            module = importlib.import_module(target)
    except (ImportError, OSError) as e:
        raise InvalidExportError(export_path, f"Cannot import {target!r}: {e}", cause=e) from e

    exported = getattr(module, attribute, None)
    if exported is not None and not isinstance(exported, Shipment) and callable(exported):
        exported = exported()
    if not isinstance(exported, Shipment):
        raise InvalidExportError(export_path)
    return exported


def _load_file(path: Path) -> Any:
    if not path.is_file():
        raise ImportError(f"No such file: {path}")
    name = f"_shipment_export_{path.stem}"
    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load module from {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    spec.loader.exec_module(module)
    return module


class ShipmentWorker:
    """Runs actions of a Shipment inside the current process."""

    def __init__(self, export_path: str | Shipment) -> None:
        if isinstance(export_path, Shipment):
            self.export_path: str | None = None
            self.shipment = export_path
        else:
            self.export_path = export_path
            self.shipment = load_shipment(export_path)

    def call(
        self,
        action: str,
        args: Mapping[str, Any] | None = None,
        context: ExecutionContext | None = None,
    ) -> Any:
        """Invoke the action named ``action`` and return its result.

        Coroutine results are run to completion.

        Raises:
            ActionNotFoundError: If the action does not exist
        """
        action_cls = self.shipment.get(action)
        if context is None:
            context = ExecutionContext(scope={"action": action})

        with LogContext(action=action, context_id=context.id):
            logger.debug("worker.action_started", args=dict(args or {}))
            result = action_cls().run(context, dict(args or {}))
            if inspect.isawaitable(result):
                result = asyncio.run(_await(result))
            logger.debug("worker.action_finished", uptime=round(context.get_uptime(), 4))
        return result


async def _await(awaitable: Any) -> Any:
    return await awaitable


def error_payload(error: BaseException) -> dict[str, Any]:
    """Serializable description of an action failure."""
    if isinstance(error, ShipmentError):
        return error.to_dict()
    return {"error_type": type(error).__name__, "message": str(error)}


def execute_action(
    worker: ShipmentWorker,
    action: str,
    args: Mapping[str, Any] | None,
    verify_key: str | None,
    sink: RecordSink,
) -> Any:
    """Run ``action`` under a root context reporting to ``sink``.

    Lifecycle records bracket the action's own records. The verify key is
    echoed so the caller can tell genuine lifecycle records from anything
    the action itself reports.
    """
    worker.shipment.get(action)

    context = ExecutionContext(scope={"action": action}, sink=sink)
    context.report("lifecycle", {"phase": "start", "action": action, "verifyKey": verify_key})
    try:
        result = worker.call(action, args, context=context)
    except Exception as e:
        logger.error("worker.action_failed", action=action, error=str(e), exc_info=True)
        context.report("lifecycle", {"phase": "error", "error": error_payload(e), "verifyKey": verify_key})
        raise
    context.report("lifecycle", {"phase": "result", "result": thaw(result), "verifyKey": verify_key})
    return result


def worker_main(
    export_path: str,
    action: str,
    args: Mapping[str, Any] | None = None,
    verify_key: str | None = None,
    log_level: str = "INFO",
) -> int:
    """Worker process body. Returns the process exit code.

    Scope records go to the real stdout; anything the action prints is
    redirected to stderr so it cannot corrupt the record stream.
    """
    configure_logging(level=log_level, json_format=True, service="shipment-worker", stream=sys.stderr)
    sink = StreamSink(sys.stdout)

    try:
        worker = ShipmentWorker(export_path)
    except ShipmentError as e:
        logger.error("worker.load_failed", export_path=export_path, **e.to_dict())
        return 2

    with contextlib.redirect_stdout(sys.stderr):
        try:
            execute_action(worker, action, args, verify_key, sink)
        except ShipmentError as e:
            logger.error("worker.exited", **e.to_dict())
            return 1
        except Exception:
            # already reported by execute_action
            return 1
    return 0
