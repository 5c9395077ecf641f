"""Hetzner Cloud provider.

Pure HTTP client for the Hetzner Cloud API.
See: https://docs.hetzner.cloud/
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from drydock.config import ProviderConfig
from drydock.errors import ProviderError, ProviderTimeoutError
from drydock.providers.base import Provider, ServerInfo, ServerStatus

logger = structlog.get_logger()


class HetznerProvider(Provider):
    """HTTP client for the Hetzner Cloud servers API."""

    def __init__(
        self,
        config: ProviderConfig,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._base_url = config.api_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=config.request_timeout)
        self._log = logger.bind(provider="hetzner")

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        allow_not_found: bool = False,
    ) -> dict[str, Any] | None:
        """Make HTTP request to the Hetzner API.

        Returns:
            Decoded JSON body, {} for 204, or None for a tolerated 404.
        """
        if not self._config.api_token:
            raise ProviderError("Hetzner API token is not configured")

        url = f"{self._base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self._config.api_token}",
            "Content-Type": "application/json",
        }

        try:
            response = await self._client.request(
                method,
                url,
                json=json,
                headers=headers,
                timeout=self._config.request_timeout,
            )
        except httpx.TimeoutException:
            self._log.error("hetzner.timeout", path=path, timeout=self._config.request_timeout)
            raise ProviderTimeoutError(f"Hetzner request timed out: {method} {path}")
        except httpx.RequestError as e:
            self._log.error("hetzner.request_error", path=path, error=str(e))
            raise ProviderError(f"Hetzner request error: {e}")

        if response.status_code == 404 and allow_not_found:
            return None

        if response.status_code >= 400:
            message = _error_message(response)
            self._log.error(
                "hetzner.request_failed",
                method=method,
                path=path,
                status=response.status_code,
                message=message,
            )
            raise ProviderError(
                f"Hetzner API error: {message}",
                details={"status": response.status_code, "path": path},
            )

        if response.status_code == 204 or not response.content:
            return {}

        return response.json()

    async def create_server(
        self,
        name: str,
        *,
        labels: dict[str, str] | None = None,
        user_data: str | None = None,
    ) -> ServerInfo:
        payload: dict[str, Any] = {
            "name": name,
            "server_type": self._config.server_type,
            "image": self._config.image,
            "location": self._config.location,
            "ssh_keys": self._config.ssh_key_ids,
            "labels": labels or {},
            "start_after_create": True,
        }
        if user_data:
            payload["user_data"] = user_data

        data = await self._request("POST", "/servers", json=payload)
        server = _server_info(data["server"])

        self._log.info(
            "hetzner.server_created",
            server_id=server.server_id,
            name=name,
            ip_address=server.ip_address,
        )
        return server

    async def delete_server(self, server_id: str) -> None:
        result = await self._request("DELETE", f"/servers/{server_id}", allow_not_found=True)
        if result is None:
            self._log.info("hetzner.delete.already_gone", server_id=server_id)
            return
        self._log.info("hetzner.server_deleted", server_id=server_id)

    async def get_server(self, server_id: str) -> ServerInfo | None:
        data = await self._request("GET", f"/servers/{server_id}", allow_not_found=True)
        if data is None:
            return None
        return _server_info(data["server"])


def _server_info(server: dict[str, Any]) -> ServerInfo:
    ipv4 = (server.get("public_net") or {}).get("ipv4") or {}
    return ServerInfo(
        server_id=str(server["id"]),
        status=ServerStatus.parse(server.get("status")),
        ip_address=ipv4.get("ip"),
        name=server.get("name"),
        labels=server.get("labels") or {},
    )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return response.reason_phrase or f"HTTP {response.status_code}"
