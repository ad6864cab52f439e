"""HTTP server that exposes the actions of a Shipment.

Actions are invoked via ``POST http://host:port{base_path}/{action}`` with a
JSON body of ``{"args": {...}, "verifyKey": "..."}``. The response streams
the action's scope records as NDJSON while it runs. The verify key is
echoed in lifecycle records so the client can tell them apart from records
the action reports itself.

ARCHITECTURE
────────────
::

    POST /{action}
      ├── body keys ⊄ {args, verifyKey}  → 400
      ├── unknown action                 → 404
      └── StreamingResponse(stream_action(...))
            run = ForkedRun | InProcessRun
            parser = EventParser
              [consume_begin] + … + [forward_handler(out)]
            for record in run: parser.receive(record); yield out

    GET /  → {"app": {"actions": {name: {"description": ...}}}}

Example::

    server = ShipmentServer("myapp.deploy:shipment")
    server.serve()
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from typing import Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from shipment.api.middleware import AccessLogMiddleware
from shipment.api.schemas import ManualResponse, ProblemDetail
from shipment.core.errors import ConfigError, ShipmentError
from shipment.core.logging import get_logger
from shipment.core.settings import ShipmentSettings, get_settings
from shipment.events.handlers import consume_begin, forward_handler
from shipment.events.parser import EventParser
from shipment.execution.action import Shipment
from shipment.execution.runners import ForkedRun, InProcessRun
from shipment.execution.worker import ShipmentWorker

logger = get_logger(__name__)

ALLOWED_BODY_KEYS = ("args", "verifyKey")


def problem_response(*, status: int, title: str, detail: str = "", instance: str = "") -> JSONResponse:
    """Build a RFC 7807 JSON error response."""
    body = ProblemDetail(title=title, status=status, detail=detail, instance=instance)
    return JSONResponse(status_code=status, content=body.model_dump())


def unexpected_keys_message(keys: list[str]) -> str:
    joined = "', '".join(keys)
    more = "..." if len(keys) > 3 else ""
    return f"Unexpected key(s) ('{joined}'{more}) in request body, expecting 'args', 'verifyKey'."


class ShipmentServer:
    """Builds the FastAPI app for a Shipment and runs its actions.

    Args:
        target: A Shipment instance, or an export path to load one from.
            Running actions in a worker process requires an export path.
        settings: Override settings (useful for testing)
    """

    def __init__(self, target: Shipment | str, settings: ShipmentSettings | None = None) -> None:
        self.settings = settings or get_settings()
        self.worker = ShipmentWorker(target)
        self.export_path = self.worker.export_path
        if self.settings.use_fork and not self.export_path:
            raise ConfigError(
                "Running actions in a worker process requires an export path; "
                "pass one instead of a Shipment instance or disable use_fork"
            )
        self.app = self.make_app()

    @property
    def shipment(self) -> Shipment:
        return self.worker.shipment

    @property
    def manual(self) -> dict[str, Any]:
        return self.shipment.manual()

    # ── App ──────────────────────────────────────────────────────────

    def make_app(self) -> FastAPI:
        app = FastAPI(title="shipment", docs_url=None, redoc_url=None)
        app.state.settings = self.settings
        app.state.server = self
        app.add_middleware(AccessLogMiddleware)
        app.include_router(self.router(), prefix=self.settings.base_path)
        return app

    def router(self) -> APIRouter:
        router = APIRouter()
        router.add_api_route("/", self.index_route, methods=["GET"], response_model=ManualResponse)
        router.add_api_route("/{action}", self.action_route, methods=["POST"])
        return router

    async def index_route(self) -> dict[str, Any]:
        return {"app": self.manual}

    async def action_route(self, action: str, request: Request) -> Any:
        raw = await request.body()
        try:
            body = json.loads(raw) if raw.strip() else {}
        except ValueError:
            return problem_response(
                status=400,
                title="Bad Request",
                detail="Request body must be JSON",
                instance=str(request.url),
            )
        if not isinstance(body, Mapping):
            return problem_response(
                status=400,
                title="Bad Request",
                detail="Request body must be a JSON object",
                instance=str(request.url),
            )

        unexpected = [key for key in body if key not in ALLOWED_BODY_KEYS]
        if unexpected:
            return problem_response(
                status=400,
                title="Bad Request",
                detail=unexpected_keys_message(unexpected),
                instance=str(request.url),
            )
        if not self.shipment.has(action):
            return problem_response(
                status=404,
                title="Not Found",
                detail=f"No action named {action!r}",
                instance=str(request.url),
            )

        return StreamingResponse(
            self.stream_action(action, body.get("args") or {}, body.get("verifyKey")),
            media_type="application/x-ndjson",
        )

    # ── Running actions ──────────────────────────────────────────────

    def make_parser(self, write: Any) -> EventParser:
        """Parser that forwards every record except begin-only ones to ``write``."""
        parser = EventParser(strict=self.settings.strict, validate=self.settings.validate_records)
        parser.use(consume_begin, first=True)
        parser.use_final(forward_handler(write))
        return parser

    def make_run(self, action: str, args: Mapping[str, Any], verify_key: str | None) -> ForkedRun | InProcessRun:
        if self.settings.use_fork:
            return ForkedRun(
                self.export_path,
                action,
                args,
                verify_key,
                python=self.settings.python_executable,
                output=self.settings.output,
            )
        return InProcessRun(self.worker, action, args, verify_key)

    def stream_action(self, action: str, args: Mapping[str, Any], verify_key: str | None) -> Iterator[str]:
        """Run ``action`` and yield forwarded records as NDJSON lines."""
        out: list[str] = []
        parser = self.make_parser(out.append)
        run = self.make_run(action, args, verify_key)
        records = iter(run)

        try:
            for record in records:
                parser.receive(record)
                yield from out
                out.clear()
        except ShipmentError as e:
            logger.error("server.stream_aborted", action=action, **e.to_dict())
            return
        finally:
            records.close()

        if isinstance(run, InProcessRun) and run.error is not None:
            logger.error("server.action_failed", action=action, error=str(run.error))
        elif isinstance(run, ForkedRun) and run.returncode:
            logger.error("server.worker_failed", action=action, pid=run.pid, returncode=run.returncode)

    def serve(self) -> None:
        """Start the HTTP server (blocking)."""
        import uvicorn

        logger.info("server.listening", host=self.settings.host, port=self.settings.port)
        uvicorn.run(self.app, host=self.settings.host, port=self.settings.port, log_config=None)


def create_app(target: Shipment | str, settings: ShipmentSettings | None = None) -> FastAPI:
    """Build the FastAPI application for ``target``."""
    return ShipmentServer(target, settings).app
