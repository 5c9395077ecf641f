"""SQLModel data models."""

from drydock.models.pool_server import PoolServer, PoolStage

__all__ = [
    "PoolServer",
    "PoolStage",
]
