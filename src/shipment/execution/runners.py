"""Action runners — drive an action and feed its records into an EventParser.

ARCHITECTURE
────────────
::

    ForkedRun(export_path, action, ...)         InProcessRun(worker, action, ...)
      python -m shipment.cli worker …             thread: execute_action(...)
      stdout ─ JSON lines ─┐                       CallbackSink ─ queue ─┐
                           ▼                                             ▼
                      iter(run) → records ──── pump(run, parser) ── parser.receive()

    run_action_via_fork(...)  → worker exit code (WorkerError with check=True)
    run_action_via_api(...)   → action result (action errors re-raised)

Both run types are plain iterables of records, so the HTTP server can
stream records as they arrive and tests can inspect them directly.
"""

from __future__ import annotations

import json
import os
import queue
import subprocess
import sys
import threading
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from shipment.core.errors import MalformedRecordError, RunClosedError, WorkerError
from shipment.core.logging import get_logger
from shipment.events.parser import EventParser
from shipment.events.record import Record, decode_record
from shipment.execution.sinks import CallbackSink
from shipment.execution.worker import ShipmentWorker, execute_action

logger = get_logger(__name__)

_DONE = object()


class ForkedRun:
    """Run an action in a worker process and iterate over its records.

    Lines on the worker's stdout that are not JSON objects are logged and
    skipped. ``returncode`` is set once iteration finishes.
    """

    def __init__(
        self,
        export_path: str,
        action: str,
        args: Mapping[str, Any] | None = None,
        verify_key: str | None = None,
        *,
        python: str | None = None,
        output: bool = True,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.export_path = export_path
        self.action = action
        self.args = dict(args or {})
        self.verify_key = verify_key
        self.python = python or sys.executable
        self.output = output
        self.env = env
        self.pid: int | None = None
        self.returncode: int | None = None

    @property
    def command(self) -> list[str]:
        command = [
            self.python, "-m", "shipment.cli", "worker",
            self.export_path, self.action,
            "--args", json.dumps(self.args, default=str),
        ]
        if self.verify_key is not None:
            command += ["--verify-key", self.verify_key]
        return command

    def __iter__(self) -> Iterator[dict[str, Any]]:
        env = {**os.environ, **(self.env or {}), "PYTHONUNBUFFERED": "1"}
        logger.info("runner.fork_started", action=self.action, export_path=self.export_path)

        with subprocess.Popen(
            self.command,
            stdout=subprocess.PIPE,
            stderr=None if self.output else subprocess.DEVNULL,
            stdin=subprocess.DEVNULL,
            text=True,
            env=env,
        ) as proc:
            self.pid = proc.pid
            drained = False
            try:
                for line in proc.stdout:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        record = decode_record(line)
                    except MalformedRecordError:
                        logger.warning("runner.non_record_output", pid=proc.pid, line=line[:200])
                        continue
                    yield record
                drained = True
            finally:
                if not drained and proc.poll() is None:
                    # the consumer raised or closed the iterator
                    logger.warning("runner.fork_killed", action=self.action, pid=proc.pid)
                    proc.kill()
                self.returncode = proc.wait()

        logger.info("runner.fork_finished", action=self.action, pid=self.pid, returncode=self.returncode)


class InProcessRun:
    """Run an action on a background thread of this process and iterate
    over its records as they are reported.

    After iteration ``result`` holds the action's return value, or ``error``
    the exception it raised. If the consumer stops early, the action's next
    report raises :class:`RunClosedError` and the thread is joined for up to
    ``close_timeout`` seconds.
    """

    def __init__(
        self,
        worker: ShipmentWorker,
        action: str,
        args: Mapping[str, Any] | None = None,
        verify_key: str | None = None,
        close_timeout: float = 5.0,
    ) -> None:
        self.worker = worker
        self.action = action
        self.args = dict(args or {})
        self.verify_key = verify_key
        self.close_timeout = close_timeout
        self.result: Any = None
        self.error: BaseException | None = None
        self.thread: threading.Thread | None = None

    def __iter__(self) -> Iterator[Record]:
        records: queue.Queue = queue.Queue()
        closed = threading.Event()

        def deliver(record: Record) -> None:
            if closed.is_set():
                raise RunClosedError(f"Records of action {self.action!r} are no longer read").with_context(
                    action=self.action
                )
            records.put(record)

        sink = CallbackSink(deliver)

        def target() -> None:
            try:
                self.result = execute_action(self.worker, self.action, self.args, self.verify_key, sink)
            except Exception as e:  # re-raised by run_action_via_api
                self.error = e
            finally:
                records.put(_DONE)

        self.thread = thread = threading.Thread(target=target, name=f"shipment-action-{self.action}", daemon=True)
        thread.start()
        drained = False
        try:
            while True:
                record = records.get()
                if record is _DONE:
                    break
                yield record
            drained = True
        finally:
            if not drained:
                # the consumer raised or closed the iterator
                closed.set()
                logger.warning("runner.in_process_closed", action=self.action)
            thread.join(None if drained else self.close_timeout)
            if thread.is_alive():
                logger.warning("runner.in_process_still_running", action=self.action, timeout=self.close_timeout)


def pump(records: Iterable[Record], parser: EventParser) -> int:
    """Feed every record into ``parser``. Returns the number of records.

    The iterator is closed when ``parser`` raises, which stops the run.
    """
    iterator = iter(records)
    count = 0
    try:
        for record in iterator:
            parser.receive(record)
            count += 1
    finally:
        close = getattr(iterator, "close", None)
        if close is not None:
            close()
    return count


def run_action_via_fork(
    export_path: str,
    action: str,
    args: Mapping[str, Any] | None = None,
    verify_key: str | None = None,
    parser: EventParser | None = None,
    *,
    python: str | None = None,
    output: bool = True,
    check: bool = False,
) -> int:
    """Run ``action`` in a worker process, feeding its records to ``parser``.

    Returns:
        The worker's exit code

    Raises:
        WorkerError: With ``check=True``, if the worker exited non-zero
    """
    run = ForkedRun(export_path, action, args, verify_key, python=python, output=output)
    pump(run, parser if parser is not None else EventParser())
    if check and run.returncode:
        raise WorkerError(
            f"Worker for action {action!r} exited with status {run.returncode}",
            returncode=run.returncode,
        ).with_context(action=action, export_path=export_path, pid=run.pid)
    return run.returncode


def run_action_via_api(
    worker: ShipmentWorker,
    action: str,
    args: Mapping[str, Any] | None = None,
    verify_key: str | None = None,
    parser: EventParser | None = None,
) -> Any:
    """Run ``action`` in this process, feeding its records to ``parser``.

    Returns:
        The action's result

    Raises:
        Whatever the action raised
    """
    run = InProcessRun(worker, action, args, verify_key)
    pump(run, parser if parser is not None else EventParser())
    if run.error is not None:
        raise run.error
    return run.result
