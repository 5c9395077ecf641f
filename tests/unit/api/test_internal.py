"""Unit tests for the internal (scheduler) endpoints."""

from __future__ import annotations

from datetime import timedelta

import httpx
import pytest

from drydock.main import create_app
from drydock.models.pool_server import PoolServer, PoolStage
from drydock.utils.datetime import utcnow
from tests.fakes import seed_server


class TestInternalAuth:
    """Shared-secret checks."""

    @pytest.mark.asyncio
    async def test_missing_secret_is_401(self, client, provider):
        response = await client.post("/internal/maintain-pool")

        assert response.status_code == 401
        assert provider.created == []

    @pytest.mark.asyncio
    async def test_wrong_secret_is_401(self, client, provider):
        response = await client.post(
            "/internal/maintain-pool",
            headers={"Authorization": "Bearer wrong-secret"},
        )

        assert response.status_code == 401
        assert provider.created == []

    @pytest.mark.asyncio
    async def test_admin_key_is_not_the_internal_secret(self, client, admin_headers):
        response = await client.get("/internal/maintain-pool", headers=admin_headers)

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unset_secret_rejects_everything(
        self, test_settings, memory_store, provider, probe
    ):
        settings = test_settings.model_copy(
            update={
                "security": test_settings.security.model_copy(
                    update={"internal_secret": None}
                )
            }
        )
        app = create_app(settings, store=memory_store, provider=provider, probe=probe)
        transport = httpx.ASGITransport(app=app)

        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post(
                "/internal/maintain-pool",
                headers={"Authorization": "Bearer "},
            )

        assert response.status_code == 401


class TestMaintainPool:
    """POST/GET /internal/maintain-pool."""

    @pytest.mark.asyncio
    async def test_maintain_replenishes(self, client, internal_headers):
        response = await client.post("/internal/maintain-pool", headers=internal_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["provisioned"] == 3
        assert body["cleaned"] == 0
        assert body["orphaned"] == []
        assert body["errors"] == []
        assert body["before"]["total"] == 0
        assert body["after"]["provisioning"] == 3
        assert body["after"]["min_pool_size"] == 3

    @pytest.mark.asyncio
    async def test_repeat_maintain_is_idempotent(self, client, internal_headers, provider):
        await client.post("/internal/maintain-pool", headers=internal_headers)
        response = await client.post("/internal/maintain-pool", headers=internal_headers)

        assert response.json()["provisioned"] == 0
        assert len(provider.created) == 3

    @pytest.mark.asyncio
    async def test_maintain_reports_orphaned_vms(
        self, client, internal_headers, memory_store, provider
    ):
        provider.fail_deletes = True
        await seed_server(
            memory_store,
            created_at=utcnow() - timedelta(minutes=30),
            provider_server_id="hz-orphan",
        )

        response = await client.post("/internal/maintain-pool", headers=internal_headers)

        body = response.json()
        assert body["cleaned"] == 1
        assert body["orphaned"] == ["hz-orphan"]

    @pytest.mark.asyncio
    async def test_get_returns_status_only(self, client, internal_headers, provider):
        response = await client.get("/internal/maintain-pool", headers=internal_headers)

        assert response.status_code == 200
        assert response.json() == {
            "available": 0,
            "assigned": 0,
            "provisioning": 0,
            "total": 0,
            "failed": 0,
            "min_pool_size": 3,
            "max_pool_size": 10,
        }
        assert provider.created == []


class TestAssign:
    """POST /internal/pool/assign."""

    @pytest.mark.asyncio
    async def test_assign_available(self, client, internal_headers, memory_store):
        server = await seed_server(memory_store, PoolStage.AVAILABLE)

        response = await client.post(
            "/internal/pool/assign",
            json={"request_id": "req-1"},
            headers=internal_headers,
        )

        assert response.status_code == 200
        assigned = response.json()["server"]
        assert assigned["id"] == server.id
        assert assigned["stage"] == "assigned"
        assert assigned["assigned_request_id"] == "req-1"

    @pytest.mark.asyncio
    async def test_assign_empty_pool(self, client, internal_headers):
        response = await client.post(
            "/internal/pool/assign",
            json={"request_id": "req-1"},
            headers=internal_headers,
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "pool_exhausted"

    @pytest.mark.asyncio
    async def test_assign_blank_request_id(self, client, internal_headers):
        response = await client.post(
            "/internal/pool/assign",
            json={"request_id": "  "},
            headers=internal_headers,
        )

        assert response.status_code == 400


class TestReadyCallback:
    """POST /internal/pool/ready."""

    @pytest.mark.asyncio
    async def test_ready_promotes(self, client, internal_headers, memory_store):
        server = await seed_server(memory_store, provider_server_id="hz-500")

        response = await client.post(
            "/internal/pool/ready",
            json={"provider_server_id": "hz-500"},
            headers=internal_headers,
        )

        assert response.json() == {"promoted": True}
        assert (await memory_store.get(server.id)).stage == PoolStage.AVAILABLE

    @pytest.mark.asyncio
    async def test_ready_unknown_server(self, client, internal_headers):
        response = await client.post(
            "/internal/pool/ready",
            json={"provider_server_id": "missing"},
            headers=internal_headers,
        )

        assert response.status_code == 200
        assert response.json() == {"promoted": False}

    @pytest.mark.asyncio
    async def test_ready_without_address_is_not_promoted(
        self, client, internal_headers, memory_store
    ):
        server = await memory_store.add(
            PoolServer(id="pool-noaddr9", provider_server_id="hz-600")
        )

        response = await client.post(
            "/internal/pool/ready",
            json={"provider_server_id": "hz-600"},
            headers=internal_headers,
        )

        assert response.json() == {"promoted": False}
        assert (await memory_store.get(server.id)).stage == PoolStage.PROVISIONING
