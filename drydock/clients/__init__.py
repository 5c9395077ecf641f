"""Outbound clients."""

from drydock.clients.health import HealthProbe

__all__ = ["HealthProbe"]
