"""Fixtures for API tests."""

import httpx
import pytest

from drydock.main import create_app
from tests.fakes import ADMIN_KEY, INTERNAL_SECRET, USER_KEY


@pytest.fixture
def app(test_settings, memory_store, provider, probe):
    return create_app(
        test_settings,
        store=memory_store,
        provider=provider,
        probe=probe,
    )


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_KEY}"}


@pytest.fixture
def user_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {USER_KEY}"}


@pytest.fixture
def internal_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {INTERNAL_SECRET}"}
