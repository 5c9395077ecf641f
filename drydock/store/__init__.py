"""Pool server persistence."""

from drydock.store.base import PoolStore
from drydock.store.memory import InMemoryPoolStore
from drydock.store.sql import SqlPoolStore

__all__ = ["InMemoryPoolStore", "PoolStore", "SqlPoolStore"]
