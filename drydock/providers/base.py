"""Provider base class - cloud infrastructure abstraction.

Provider is responsible ONLY for VM lifecycle calls against a cloud API.
It does NOT handle:
- Pool bookkeeping or stage transitions
- Retries (a failed call surfaces as a per-unit error)
- Readiness beyond the provider-reported server status
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum


class ServerStatus(str, Enum):
    """Server status from the provider's perspective."""

    INITIALIZING = "initializing"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    OFF = "off"
    DELETING = "deleting"
    MIGRATING = "migrating"
    REBUILDING = "rebuilding"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> "ServerStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class ServerInfo:
    """Server information from the provider."""

    server_id: str
    status: ServerStatus
    ip_address: str | None = None
    name: str | None = None
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def is_running(self) -> bool:
        return self.status == ServerStatus.RUNNING


class Provider(ABC):
    """Abstract cloud provider interface.

    All servers created for the pool MUST be labeled with:
    - type=pool
    - pool_id
    """

    @abstractmethod
    async def create_server(
        self,
        name: str,
        *,
        labels: dict[str, str] | None = None,
        user_data: str | None = None,
    ) -> ServerInfo:
        """Create and boot a server.

        Args:
            name: Server name
            labels: Provider-side labels
            user_data: Cloud-init payload

        Returns:
            Server information (usually not yet running)

        Raises:
            ProviderError: If the provider rejected or failed the request
        """
        ...

    @abstractmethod
    async def delete_server(self, server_id: str) -> None:
        """Delete a server. Deleting an already missing server is a no-op.

        Raises:
            ProviderError: If the provider failed the request
        """
        ...

    @abstractmethod
    async def get_server(self, server_id: str) -> ServerInfo | None:
        """Get server status, or None if the provider does not know it.

        Raises:
            ProviderError: If the provider failed the request
        """
        ...

    async def close(self) -> None:
        """Release client resources."""
