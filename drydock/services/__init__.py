"""Drydock services."""
