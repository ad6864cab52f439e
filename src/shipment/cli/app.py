"""
Root Typer application for the shipment CLI.

::

    shipment actions EXPORT                 list the catalogue
    shipment run EXPORT ACTION [--args …]   run an action, print its records
    shipment serve EXPORT                   expose actions over HTTP
    shipment worker EXPORT ACTION           worker process entry (internal)
"""

from __future__ import annotations

import json
import sys
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from shipment.core.errors import ShipmentError
from shipment.core.logging import configure_logging
from shipment.core.settings import ShipmentSettings, get_settings

app = typer.Typer(
    name="shipment",
    help="shipment — run actions locally or in worker processes and follow their progress.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("shipment")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"shipment {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """shipment CLI — run and serve actions."""


def parse_args(value: str | None) -> dict[str, Any]:
    """Parse the ``--args`` JSON object."""
    if not value:
        return {}
    try:
        args = json.loads(value)
    except ValueError as e:
        raise typer.BadParameter(f"--args must be a JSON object: {e}") from e
    if not isinstance(args, dict):
        raise typer.BadParameter("--args must be a JSON object")
    return args


@app.command("actions")
def actions(
    export_path: str = typer.Argument(..., help="Shipment export, e.g. 'myapp.deploy:shipment'"),
) -> None:
    """List the actions a shipment provides."""
    from shipment.execution.worker import load_shipment

    try:
        shipment = load_shipment(export_path)
    except ShipmentError as e:
        err_console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=1) from e

    table = Table(title=f"Actions in {export_path}")
    table.add_column("Action", style="bold")
    table.add_column("Description")
    for name, info in shipment.manual()["actions"].items():
        table.add_row(name, info["description"] or "")
    console.print(table)


@app.command("run")
def run(
    export_path: str = typer.Argument(..., help="Shipment export"),
    action: str = typer.Argument(..., help="Action name"),
    args: str | None = typer.Option(None, "--args", "-a", help="Action arguments as a JSON object"),  # noqa: UP007
    verify_key: str | None = typer.Option(None, "--verify-key", help="Key echoed in lifecycle records"),  # noqa: UP007
    fork: bool = typer.Option(False, "--fork/--no-fork", help="Run in a worker process"),
    strict: bool = typer.Option(False, "--strict", help="Fail on records no handler consumed"),
) -> None:
    """Run an action and print its scope records as JSON lines."""
    from shipment.events.handlers import consume_begin, forward_handler
    from shipment.events.parser import EventParser
    from shipment.execution.runners import run_action_via_api, run_action_via_fork
    from shipment.execution.worker import ShipmentWorker

    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.json_logs, stream=sys.stderr)
    arguments = parse_args(args)

    parser = EventParser(strict=strict, validate=settings.validate_records)
    parser.use(consume_begin, first=True)
    parser.use_final(forward_handler(sys.stdout.write))

    try:
        if fork:
            run_action_via_fork(
                export_path,
                action,
                arguments,
                verify_key,
                parser,
                python=settings.python_executable,
                output=settings.output,
                check=True,
            )
        else:
            run_action_via_api(ShipmentWorker(export_path), action, arguments, verify_key, parser)
    except ShipmentError as e:
        err_console.print(f"[red]{type(e).__name__}: {e.message}[/red]")
        raise typer.Exit(code=1) from e
    except Exception as e:
        err_console.print(f"[red]Action {action!r} failed: {e}[/red]")
        raise typer.Exit(code=1) from e


@app.command("serve")
def serve(
    export_path: str = typer.Argument(..., help="Shipment export"),
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address"),  # noqa: UP007
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),  # noqa: UP007
    base_path: str | None = typer.Option(None, "--base-path", help="Route prefix"),  # noqa: UP007
    fork: bool | None = typer.Option(None, "--fork/--no-fork", help="Run actions in worker processes"),  # noqa: UP007
) -> None:
    """Expose the shipment's actions over HTTP."""
    from shipment.api.app import ShipmentServer

    overrides = {
        key: value
        for key, value in {"host": host, "port": port, "base_path": base_path, "use_fork": fork}.items()
        if value is not None
    }
    settings = ShipmentSettings.model_validate({**get_settings().model_dump(), **overrides})
    configure_logging(level=settings.log_level, json_format=settings.json_logs)

    try:
        server = ShipmentServer(export_path, settings)
    except ShipmentError as e:
        err_console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=1) from e

    console.print(f"[bold green]Shipment server[/bold green] listening on {settings.host}:{settings.port}")
    server.serve()


@app.command("worker", hidden=True)
def worker(
    export_path: str = typer.Argument(..., help="Shipment export"),
    action: str = typer.Argument(..., help="Action name"),
    args: str | None = typer.Option(None, "--args", help="Action arguments as a JSON object"),  # noqa: UP007
    verify_key: str | None = typer.Option(None, "--verify-key"),  # noqa: UP007
    log_level: str | None = typer.Option(None, "--log-level"),  # noqa: UP007
) -> None:
    """Run one action, writing only scope records to stdout."""
    from shipment.execution.worker import worker_main

    code = worker_main(
        export_path,
        action,
        parse_args(args),
        verify_key,
        log_level=log_level or get_settings().log_level,
    )
    raise typer.Exit(code=code)
