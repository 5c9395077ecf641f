"""Unit tests for configuration loading."""

from __future__ import annotations

import pydantic
import pytest

from drydock.config import PoolConfig, Settings, get_settings
from drydock.errors import ConfigError


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestPoolConfig:
    """Tests for pool sizing validation."""

    def test_defaults(self):
        config = PoolConfig()

        assert config.min_pool_size == 3
        assert config.max_pool_size == 10
        assert config.provisioning_timeout_seconds == 600

    def test_min_equal_max_allowed(self):
        config = PoolConfig(min_pool_size=5, max_pool_size=5)

        assert config.min_pool_size == config.max_pool_size

    def test_min_above_max_rejected(self):
        with pytest.raises(pydantic.ValidationError, match="must not exceed"):
            PoolConfig(min_pool_size=11, max_pool_size=10)

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            PoolConfig(provisioning_timeout_seconds=0)


class TestGetSettings:
    """Tests for get_settings sources."""

    def test_env_nested_values(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("DRYDOCK_CONFIG_FILE", raising=False)
        monkeypatch.setenv("DRYDOCK_POOL__MIN_POOL_SIZE", "2")
        monkeypatch.setenv("DRYDOCK_PROVIDER__API_TOKEN", "from-env")

        settings = get_settings()

        assert settings.pool.min_pool_size == 2
        assert settings.provider.api_token == "from-env"

    def test_yaml_config_file(self, monkeypatch, tmp_path):
        config_file = tmp_path / "drydock.yaml"
        config_file.write_text(
            "pool:\n"
            "  min_pool_size: 1\n"
            "  max_pool_size: 4\n"
            "health_probe:\n"
            "  port: 9000\n"
        )
        monkeypatch.setenv("DRYDOCK_CONFIG_FILE", str(config_file))

        settings = get_settings()

        assert settings.pool.max_pool_size == 4
        assert settings.health_probe.port == 9000

    def test_invalid_config_raises_config_error(self, monkeypatch, tmp_path):
        config_file = tmp_path / "drydock.yaml"
        config_file.write_text("pool:\n  min_pool_size: 20\n  max_pool_size: 10\n")
        monkeypatch.setenv("DRYDOCK_CONFIG_FILE", str(config_file))

        with pytest.raises(ConfigError) as exc_info:
            get_settings()

        assert exc_info.value.details["errors"]


def test_settings_defaults():
    settings = Settings()

    assert settings.provider.type == "hetzner"
    assert settings.provider.server_type == "cx23"
    assert settings.security.internal_secret is None
