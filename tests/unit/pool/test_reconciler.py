"""Unit tests for Reconciler.maintain_pool."""

from __future__ import annotations

from datetime import timedelta

import pytest

from drydock.models.pool_server import PoolStage
from drydock.services.pool.manager import PoolManager
from drydock.services.pool.readiness import ReadinessResult
from drydock.utils.datetime import utcnow
from tests.fakes import FakeProvider, seed_server


class TestMaintainPool:
    """Tests for one maintenance pass through PoolManager."""

    @pytest.mark.asyncio
    async def test_empty_pool_is_replenished(self, pool, provider):
        result = await pool.reconciler.maintain_pool()

        assert result.provisioned == 3
        assert result.cleaned == 0
        assert result.errors == []
        status = await pool.status.get_pool_status()
        assert status.provisioning == 3
        assert status.available == 0
        assert len(provider.created) == 3

    @pytest.mark.asyncio
    async def test_second_pass_provisions_nothing(self, pool, provider):
        await pool.reconciler.maintain_pool()

        result = await pool.reconciler.maintain_pool()

        assert result.provisioned == 0
        assert len(provider.created) == 3

    @pytest.mark.asyncio
    async def test_booted_servers_are_promoted(self, pool, provider):
        await pool.reconciler.maintain_pool()
        provider.boot_all()

        result = await pool.reconciler.maintain_pool()

        assert result.promoted == 3
        status = await pool.status.get_pool_status()
        assert status.available == 3
        assert status.health.healthy

    @pytest.mark.asyncio
    async def test_stale_row_is_failed_and_replaced(self, pool, memory_store, provider):
        stale = await seed_server(
            memory_store, created_at=utcnow() - timedelta(minutes=30)
        )
        await seed_server(memory_store, PoolStage.AVAILABLE)
        await seed_server(memory_store, PoolStage.AVAILABLE)

        result = await pool.reconciler.maintain_pool()

        assert result.cleaned == 1
        assert result.provisioned == 1
        assert (await memory_store.get(stale.id)).stage == PoolStage.FAILED
        assert stale.provider_server_id in provider.deleted

    @pytest.mark.asyncio
    async def test_batch_size_caps_replenishment(
        self, test_settings, memory_store, provider, probe
    ):
        settings = test_settings.model_copy(
            update={
                "pool": test_settings.pool.model_copy(
                    update={"min_pool_size": 8, "max_batch_size": 5}
                )
            }
        )
        pool = PoolManager.build(settings, store=memory_store, provider=provider, probe=probe)

        first = await pool.reconciler.maintain_pool()
        second = await pool.reconciler.maintain_pool()

        assert first.provisioned == 5
        assert second.provisioned == 3

    @pytest.mark.asyncio
    async def test_assigned_servers_do_not_count_as_supply(self, pool, memory_store):
        for _ in range(3):
            await seed_server(memory_store, PoolStage.ASSIGNED)

        assert await pool.reconciler.compute_shortfall() == 3

        result = await pool.reconciler.maintain_pool()

        assert result.provisioned == 3

    @pytest.mark.asyncio
    async def test_step_failure_is_recorded_and_pass_continues(self, pool, provider):
        async def broken_reap():
            raise RuntimeError("provider outage")

        pool.reaper.reap_stale = broken_reap

        result = await pool.reconciler.maintain_pool()

        assert result.errors == ["reap step failed: provider outage"]
        assert result.provisioned == 3
        assert len(provider.created) == 3

    @pytest.mark.asyncio
    async def test_provider_errors_are_collected(self, pool, provider):
        provider.fail_create_calls = {1, 2}

        result = await pool.reconciler.maintain_pool()

        assert result.provisioned == 1
        assert len(result.errors) == 2
        assert all(e.startswith("Provider error:") for e in result.errors)

    @pytest.mark.asyncio
    async def test_unexpected_lookup_error_does_not_block_promotion(self, pool, provider):
        await pool.reconciler.maintain_pool()
        provider.boot_all()
        provider.get_crashes.add(provider.created[0].server_id)

        result = await pool.reconciler.maintain_pool()

        assert result.promoted == 2
        assert result.errors == []
        status = await pool.status.get_pool_status()
        assert status.available == 2
        assert status.provisioning == 1

    @pytest.mark.asyncio
    async def test_readiness_errors_are_collected(self, pool):
        async def partial_check():
            return ReadinessResult(
                promoted=1, pending=1, errors=["Readiness check failed for pool-x: boom"]
            )

        pool.readiness.check_provisioning = partial_check

        result = await pool.reconciler.maintain_pool()

        assert result.promoted == 1
        assert result.errors == ["Readiness check failed for pool-x: boom"]

    @pytest.mark.asyncio
    async def test_orphaned_vms_are_reported(self, test_settings, memory_store, probe):
        provider = FakeProvider(fail_deletes=True)
        pool = PoolManager.build(
            test_settings, store=memory_store, provider=provider, probe=probe
        )
        stale = await seed_server(
            memory_store,
            created_at=utcnow() - timedelta(minutes=30),
            provider_server_id="hz-orphan",
        )

        result = await pool.reconciler.maintain_pool()

        assert result.cleaned == 1
        assert result.orphaned == ["hz-orphan"]
        assert (await memory_store.get(stale.id)).stage == PoolStage.FAILED
