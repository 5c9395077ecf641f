"""Application health probe for booted pool servers.

A server is only handed out once the software baked into its image answers
on the health endpoint; provider status alone says nothing about cloud-init.
"""

from __future__ import annotations

import httpx
import structlog

from drydock.config import HealthProbeConfig

logger = structlog.get_logger()


class HealthProbe:
    """HTTP health check against a pool server's public address."""

    def __init__(
        self,
        config: HealthProbeConfig,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._client = client or httpx.AsyncClient(timeout=config.timeout)
        self._log = logger.bind(client="health_probe")

    def url_for(self, ip_address: str) -> str:
        return f"{self._config.scheme}://{ip_address}:{self._config.port}{self._config.path}"

    async def check(self, ip_address: str) -> bool:
        """Return True if the server reports healthy.

        Connection errors and timeouts mean "not ready yet", not failure.
        """
        if not self._config.enabled:
            return True

        url = self.url_for(ip_address)
        try:
            response = await self._client.get(url, timeout=self._config.timeout)
        except httpx.HTTPError as e:
            self._log.debug("health_probe.unreachable", url=url, error=str(e))
            return False

        healthy = response.status_code == 200
        if not healthy:
            self._log.debug("health_probe.unhealthy", url=url, status=response.status_code)
        return healthy

    async def close(self) -> None:
        await self._client.aclose()
