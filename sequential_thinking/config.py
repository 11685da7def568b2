"""Sequential Thinking MCP Configuration.

Centralized configuration management with environment variable support
and Docker secrets integration.

Usage:
    from sequential_thinking.config import get_config
    print(get_config().server.name)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

from loguru import logger

DEFAULT_ALLOWED_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"


def _get_env(key: str, default: str = "") -> str:
    """Get environment variable, treating empty string as unset.

    Also checks Docker secrets path for sensitive values.
    """
    secrets_path = f"/run/secrets/{key.lower()}"
    if os.path.isfile(secrets_path):
        try:
            with Path(secrets_path).open() as f:
                value = f.read().strip()
                if value:
                    return value
        except OSError as e:
            logger.warning(f"Failed to read Docker secret {secrets_path}: {e}")

    value = os.getenv(key, default)
    return value if value else default


def _get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value:
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Invalid integer for {key}: {value}, using default {default}")
    return default


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get environment variable as boolean."""
    value = _get_env(key, "").lower()
    if not value:
        return default
    return value in ("true", "1", "yes")


def _default_host() -> str:
    # Containers need to listen on every interface to be reachable.
    fallback = "0.0.0.0" if _get_env_bool("DOCKER", False) else "127.0.0.1"  # nosec B104
    return _get_env("SERVER_HOST", fallback)


def _is_development() -> bool:
    env = _get_env("NODE_ENV", "") or _get_env("ENVIRONMENT", "")
    return env.lower() == "development"


@dataclass(frozen=True)
class ServerConfig:
    """Server runtime configuration."""

    name: str = field(default_factory=lambda: _get_env("SERVER_NAME", "sequential-thinking-server"))
    version: str = "0.2.0"
    transport: str = field(default_factory=lambda: _get_env("SERVER_TRANSPORT", "http"))
    host: str = field(default_factory=_default_host)
    port: int = field(default_factory=lambda: _get_env_int("PORT", 3000))
    path: str = field(default_factory=lambda: _get_env("MCP_PATH", "/mcp"))


@dataclass(frozen=True)
class CorsConfig:
    """Origin checking and CORS configuration."""

    _allowed_origins_raw: str = field(
        default_factory=lambda: _get_env("ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS)
    )
    development: bool = field(default_factory=_is_development)

    @property
    def allowed_origins(self) -> tuple[str, ...]:
        """Parse the comma-separated allowed origins list."""
        return tuple(
            origin.strip() for origin in self._allowed_origins_raw.split(",") if origin.strip()
        )

    def is_allowed(self, origin: str) -> bool:
        """Check whether a request Origin header is in the allow list."""
        return origin in self.allowed_origins


@dataclass(frozen=True)
class SessionConfig:
    """Session lifecycle configuration."""

    timeout_minutes: int = field(
        default_factory=lambda: _get_env_int("SESSION_TIMEOUT_MINUTES", 60)
    )
    cleanup_interval_seconds: int = field(
        default_factory=lambda: _get_env_int("SESSION_CLEANUP_INTERVAL_SECONDS", 300)
    )
    retired_id_limit: int = field(
        default_factory=lambda: _get_env_int("SESSION_RETIRED_ID_LIMIT", 10000)
    )

    @property
    def max_idle(self) -> timedelta:
        """Idle time after which the reaper evicts a session."""
        return timedelta(minutes=self.timeout_minutes)

    @property
    def cleanup_interval(self) -> timedelta:
        """Time between two reaper sweeps."""
        return timedelta(seconds=self.cleanup_interval_seconds)


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: _get_env("LOG_LEVEL", "INFO").upper())
    format: str = field(default_factory=lambda: _get_env("LOG_FORMAT", "text").lower())
    file: str = field(default_factory=lambda: _get_env("LOG_FILE", ""))
    thought_logging: bool = field(
        default_factory=lambda: not _get_env_bool("DISABLE_THOUGHT_LOGGING", False)
    )


@dataclass(frozen=True)
class Config:
    """Root configuration object."""

    server: ServerConfig = field(default_factory=ServerConfig)
    cors: CorsConfig = field(default_factory=CorsConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary (for logging/debugging)."""
        return {
            "server": {
                "name": self.server.name,
                "version": self.server.version,
                "transport": self.server.transport,
                "host": self.server.host,
                "port": self.server.port,
                "path": self.server.path,
            },
            "cors": {
                "allowed_origins": list(self.cors.allowed_origins),
                "development": self.cors.development,
            },
            "session": {
                "timeout_minutes": self.session.timeout_minutes,
                "cleanup_interval_seconds": self.session.cleanup_interval_seconds,
            },
            "logging": {
                "level": self.logging.level,
                "format": self.logging.format,
                "thought_logging": self.logging.thought_logging,
            },
        }


# Global config instance (lazy-loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Reload configuration (for testing)."""
    global _config
    _config = Config()
    return _config
