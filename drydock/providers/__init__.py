"""Cloud provider layer."""

from drydock.config import ProviderConfig
from drydock.providers.base import Provider, ServerInfo, ServerStatus
from drydock.providers.hetzner import HetznerProvider


def create_provider(config: ProviderConfig) -> Provider:
    """Create the provider selected by ``config.type``."""
    if config.type == "hetzner":
        return HetznerProvider(config)
    raise ValueError(f"Unsupported provider type: {config.type}")


__all__ = [
    "HetznerProvider",
    "Provider",
    "ServerInfo",
    "ServerStatus",
    "create_provider",
]
