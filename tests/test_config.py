"""Tests for configuration loading."""

import os

import pytest
from pydantic import ValidationError

from nodeflow.config import (
    AppConfig,
    LogLevel,
    StoreBackend,
    get_config,
    get_production_config,
    get_testing_config,
    load_config,
    reset_config,
    validate_config,
)


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Isolate tests from NODEFLOW_* variables of the surrounding environment."""
    for key in list(os.environ):
        if key.startswith("NODEFLOW_"):
            monkeypatch.delenv(key)
    reset_config()
    yield
    reset_config()


class TestAppConfig:
    """Test cases for AppConfig."""

    def test_defaults(self):
        config = AppConfig.from_env()

        assert config.port == 8080
        assert config.store_backend == StoreBackend.MEMORY
        assert config.max_parallel_nodes == 1
        assert config.log_level == LogLevel.INFO
        assert config.cors_origins == ["*"]

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("NODEFLOW_PORT", "9090")
        monkeypatch.setenv("NODEFLOW_DEBUG", "yes")
        monkeypatch.setenv("NODEFLOW_STORE_BACKEND", "DATABASE")
        monkeypatch.setenv("NODEFLOW_MAX_PARALLEL_NODES", "4")
        monkeypatch.setenv("NODEFLOW_LOG_LEVEL", "debug")
        monkeypatch.setenv("NODEFLOW_CORS_ORIGINS", "http://a.example, http://b.example")

        config = AppConfig.from_env()

        assert config.port == 9090
        assert config.debug is True
        assert config.store_backend == StoreBackend.DATABASE
        assert config.max_parallel_nodes == 4
        assert config.log_level == LogLevel.DEBUG
        assert config.cors_origins == ["http://a.example", "http://b.example"]

    @pytest.mark.parametrize("field, value", [
        ("port", 0),
        ("max_parallel_nodes", 0),
        ("timer_max_interval", -1),
        ("database_url", "not-a-url"),
    ])
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            AppConfig(**{field: value})

    def test_uvicorn_config(self):
        uvicorn_config = AppConfig(port=9000, log_level=LogLevel.WARNING).get_uvicorn_config()
        assert uvicorn_config["port"] == 9000
        assert uvicorn_config["log_level"] == "warning"

    def test_presets(self):
        assert get_testing_config().store_backend == StoreBackend.MEMORY
        assert get_production_config().store_backend == StoreBackend.DATABASE
        assert get_production_config().cors_origins == []


class TestConfigLoading:
    """Test cases for global configuration loading."""

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_load_config_reads_dotenv_file(self, tmp_path):
        env_file = tmp_path / "nodeflow.env"
        env_file.write_text("NODEFLOW_APP_NAME=from-file\nNODEFLOW_PORT=7000\n")

        config = load_config(str(env_file))
        try:
            assert config.app_name == "from-file"
            assert config.port == 7000
            assert get_config() is config
        finally:
            # load_dotenv writes into os.environ
            os.environ.pop("NODEFLOW_APP_NAME", None)
            os.environ.pop("NODEFLOW_PORT", None)

    def test_validate_config_creates_log_directory(self, tmp_path):
        log_file = tmp_path / "logs" / "nodeflow.log"
        validate_config(AppConfig(log_file=str(log_file)))
        assert log_file.parent.is_dir()
