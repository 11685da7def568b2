"""Unit tests for sequential_thinking/config.py."""

from __future__ import annotations

import os
from datetime import timedelta
from unittest.mock import patch

from sequential_thinking.config import (
    DEFAULT_ALLOWED_ORIGINS,
    Config,
    CorsConfig,
    LoggingConfig,
    ServerConfig,
    SessionConfig,
    _get_env,
    _get_env_bool,
    _get_env_int,
    get_config,
    reload_config,
)


class TestEnvHelpers:
    """Test environment variable readers."""

    def test_get_env_default_when_unset(self) -> None:
        """Unset variables fall back to the default."""
        with patch.dict(os.environ, {}, clear=True):
            assert _get_env("SEQ_TEST_MISSING", "fallback") == "fallback"

    def test_get_env_empty_is_unset(self) -> None:
        """Empty strings count as unset."""
        with patch.dict(os.environ, {"SEQ_TEST_EMPTY": ""}):
            assert _get_env("SEQ_TEST_EMPTY", "fallback") == "fallback"

    def test_get_env_int(self) -> None:
        """Integers are parsed, invalid values use the default."""
        with patch.dict(os.environ, {"SEQ_TEST_INT": "42", "SEQ_TEST_BAD": "forty"}):
            assert _get_env_int("SEQ_TEST_INT", 1) == 42
            assert _get_env_int("SEQ_TEST_BAD", 7) == 7

    def test_get_env_bool(self) -> None:
        """Truthy spellings are accepted case-insensitively."""
        for raw in ("true", "TRUE", "1", "yes"):
            with patch.dict(os.environ, {"SEQ_TEST_BOOL": raw}):
                assert _get_env_bool("SEQ_TEST_BOOL") is True
        with patch.dict(os.environ, {"SEQ_TEST_BOOL": "off"}):
            assert _get_env_bool("SEQ_TEST_BOOL", True) is False
        with patch.dict(os.environ, {}, clear=True):
            assert _get_env_bool("SEQ_TEST_BOOL", True) is True


class TestServerConfig:
    """Test server section."""

    def test_defaults(self) -> None:
        """Defaults match the documented values."""
        with patch.dict(os.environ, {}, clear=True):
            config = ServerConfig()
        assert config.name == "sequential-thinking-server"
        assert config.transport == "http"
        assert config.host == "127.0.0.1"
        assert config.port == 3000
        assert config.path == "/mcp"

    def test_docker_binds_all_interfaces(self) -> None:
        """DOCKER=true switches the default host."""
        with patch.dict(os.environ, {"DOCKER": "true"}, clear=True):
            assert ServerConfig().host == "0.0.0.0"  # nosec B104

    def test_overrides(self) -> None:
        """Environment overrides each field."""
        env = {
            "SERVER_NAME": "thinker",
            "SERVER_TRANSPORT": "stdio",
            "SERVER_HOST": "10.0.0.1",
            "PORT": "8080",
            "MCP_PATH": "/rpc",
        }
        with patch.dict(os.environ, env, clear=True):
            config = ServerConfig()
        assert (config.name, config.transport, config.host, config.port, config.path) == (
            "thinker",
            "stdio",
            "10.0.0.1",
            8080,
            "/rpc",
        )


class TestCorsConfig:
    """Test origin allow list."""

    def test_default_origins(self) -> None:
        """Localhost origins are allowed by default."""
        with patch.dict(os.environ, {}, clear=True):
            config = CorsConfig()
        assert config.allowed_origins == tuple(DEFAULT_ALLOWED_ORIGINS.split(","))
        assert config.is_allowed("http://localhost:3000")
        assert not config.is_allowed("http://evil.example")
        assert config.development is False

    def test_parses_and_strips(self) -> None:
        """Whitespace and empty entries are dropped."""
        config = CorsConfig(_allowed_origins_raw=" https://a.example , ,https://b.example ")
        assert config.allowed_origins == ("https://a.example", "https://b.example")

    def test_development_flag(self) -> None:
        """NODE_ENV or ENVIRONMENT enables development mode."""
        with patch.dict(os.environ, {"NODE_ENV": "development"}, clear=True):
            assert CorsConfig().development is True
        with patch.dict(os.environ, {"ENVIRONMENT": "Development"}, clear=True):
            assert CorsConfig().development is True


class TestSessionConfig:
    """Test session lifecycle section."""

    def test_defaults(self) -> None:
        """Sixty minutes idle, five minute sweeps."""
        with patch.dict(os.environ, {}, clear=True):
            config = SessionConfig()
        assert config.max_idle == timedelta(minutes=60)
        assert config.cleanup_interval == timedelta(minutes=5)
        assert config.retired_id_limit == 10000

    def test_overrides(self) -> None:
        """Environment overrides the timings."""
        env = {"SESSION_TIMEOUT_MINUTES": "5", "SESSION_CLEANUP_INTERVAL_SECONDS": "30"}
        with patch.dict(os.environ, env, clear=True):
            config = SessionConfig()
        assert config.max_idle == timedelta(minutes=5)
        assert config.cleanup_interval == timedelta(seconds=30)


class TestLoggingConfig:
    """Test logging section."""

    def test_normalizes_case(self) -> None:
        """Level is upper-cased and format lower-cased."""
        env = {"LOG_LEVEL": "debug", "LOG_FORMAT": "JSON"}
        with patch.dict(os.environ, env, clear=True):
            config = LoggingConfig()
        assert config.level == "DEBUG"
        assert config.format == "json"
        assert config.thought_logging is True

    def test_disable_thought_logging(self) -> None:
        """DISABLE_THOUGHT_LOGGING turns off thought rendering."""
        with patch.dict(os.environ, {"DISABLE_THOUGHT_LOGGING": "true"}, clear=True):
            assert LoggingConfig().thought_logging is False


class TestGlobalConfig:
    """Test the lazily loaded global config."""

    def test_reload_replaces_instance(self) -> None:
        """reload_config rereads the environment."""
        with patch.dict(os.environ, {"PORT": "4100"}, clear=True):
            config = reload_config()
            assert config.server.port == 4100
            assert get_config() is config
        reload_config()

    def test_to_dict(self) -> None:
        """to_dict exposes every section."""
        data = Config().to_dict()
        assert set(data) == {"server", "cors", "session", "logging"}
        assert data["server"]["path"] == Config().server.path
