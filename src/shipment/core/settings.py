"""Settings for the shipment server, runners and CLI.

Every knob can be set through ``SHIPMENT_``-prefixed environment variables
or a ``.env`` file, e.g. ``SHIPMENT_PORT=7000`` or ``SHIPMENT_USE_FORK=false``.

Examples:
    >>> from shipment.core.settings import ShipmentSettings
    >>> ShipmentSettings(port=7000).port
    7000

Tags:
    settings, configuration, pydantic, environment, shipment
"""

from __future__ import annotations

import sys
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ShipmentSettings(BaseSettings):
    """Settings shared by the HTTP server, the action runners and the CLI.

    Fields
    ──────
    host              : Bind address for the HTTP server
    port              : Bind port for the HTTP server
    base_path         : Route prefix under which actions are exposed
    use_fork          : Run actions in a worker process instead of in-process
    output            : Echo worker stderr to the driver's stderr
    strict            : Treat records no handler consumed as fatal
    validate_records  : Reject records missing ``context``/``timestamp``
    log_level         : Structlog log level
    json_logs         : Force JSON (True) or console (False) logs; None auto-detects
    python_executable : Interpreter used to start worker processes
    """

    model_config = SettingsConfigDict(
        env_prefix="SHIPMENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Network ──────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=6565, description="Bind port")
    base_path: str = Field(default="", description="Route prefix for actions")

    # ── Execution ────────────────────────────────────────────────
    use_fork: bool = Field(default=True, description="Run actions in a worker process")
    output: bool = Field(default=True, description="Echo worker stderr")
    strict: bool = Field(default=False, description="Fail on unconsumed records")
    validate_records: bool = Field(default=True, description="Validate incoming records")
    python_executable: str = Field(default=sys.executable, description="Worker interpreter")

    # ── Observability ────────────────────────────────────────────
    log_level: str = Field(default="INFO", description="Log level")
    json_logs: bool | None = Field(default=None, description="JSON logs (None: auto)")

    @field_validator("base_path")
    @classmethod
    def _normalize_base_path(cls, value: str) -> str:
        value = value.strip()
        if not value or value == "/":
            return ""
        return "/" + value.strip("/")


@lru_cache
def get_settings() -> ShipmentSettings:
    """Return the process-wide settings singleton."""
    return ShipmentSettings()
