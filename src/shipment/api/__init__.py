"""HTTP exposure of a Shipment's actions."""

from shipment.api.app import ShipmentServer, create_app

__all__ = ["ShipmentServer", "create_app"]
