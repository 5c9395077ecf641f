"""Drydock - pre-booted server pool manager."""

__version__ = "0.1.0"
