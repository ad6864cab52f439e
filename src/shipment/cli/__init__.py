"""Command line interface."""

from shipment.cli.app import app

__all__ = ["app"]
