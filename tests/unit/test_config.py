"""Tests for configuration loading."""

from __future__ import annotations

import pytest

from conduitload._internal.config import DEFAULT_BASE_URL, ConduitLoadConfig, load_config
from conduitload._internal.errors import ConfigError

_ENV_VARS = (
    "CONDUITLOAD_BASE_URL",
    "CONDUITLOAD_POOL_SIZE",
    "CONDUITLOAD_TIMEOUT",
    "CONDUITLOAD_CLOUD_PROJECT_ID",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestConduitLoadConfig:
    """Tests for the ConduitLoadConfig dataclass."""

    def test_defaults(self):
        config = ConduitLoadConfig()
        assert config.base_url == DEFAULT_BASE_URL
        assert config.default_headers == {}
        assert config.connection_pool_size == 100
        assert config.request_timeout == 30.0
        assert config.cloud_project_id is None

    def test_frozen(self):
        config = ConduitLoadConfig()
        with pytest.raises(AttributeError):
            config.base_url = "http://changed"  # type: ignore[misc]


class TestLoadConfig:
    """Tests for the load_config function."""

    def test_defaults_from_env(self):
        config = load_config()
        assert config.base_url == "https://demo.realworld.show"
        assert config.connection_pool_size == 100
        assert config.request_timeout == 30.0

    def test_base_url_from_env_strips_trailing_slash(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CONDUITLOAD_BASE_URL", "http://localhost:3000/")
        assert load_config().base_url == "http://localhost:3000"

    def test_blank_base_url_falls_back_to_default(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CONDUITLOAD_BASE_URL", "   ")
        assert load_config().base_url == DEFAULT_BASE_URL

    def test_pool_size_and_timeout(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CONDUITLOAD_POOL_SIZE", "50")
        monkeypatch.setenv("CONDUITLOAD_TIMEOUT", "10.5")
        config = load_config()
        assert config.connection_pool_size == 50
        assert config.request_timeout == 10.5

    def test_cloud_project_id(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CONDUITLOAD_CLOUD_PROJECT_ID", "3745772")
        assert load_config().cloud_project_id == 3745772

    @pytest.mark.parametrize(
        ("name", "value", "message"),
        [
            ("CONDUITLOAD_POOL_SIZE", "lots", "must be an integer"),
            ("CONDUITLOAD_POOL_SIZE", "0", "must be >= 1"),
            ("CONDUITLOAD_TIMEOUT", "abc", "must be a number"),
            ("CONDUITLOAD_TIMEOUT", "-1", "must be positive"),
            ("CONDUITLOAD_CLOUD_PROJECT_ID", "demo", "must be an integer"),
        ],
    )
    def test_invalid_values_raise(
        self, monkeypatch: pytest.MonkeyPatch, name: str, value: str, message: str
    ):
        monkeypatch.setenv(name, value)
        with pytest.raises(ConfigError, match=message):
            load_config()
