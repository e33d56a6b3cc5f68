"""
Configuration management for the registration ledger server.

All configuration is done via environment variables. This module provides
typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - QUERY_DEFAULT_LIMIT never exceeds QUERY_MAX_LIMIT
    - The owner guard is enabled unless explicitly disabled

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Document new settings in this module docstring and DESIGN.md
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_dir: Directory for the SQLite database
        db_name: Database file name
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
        cache_size_pages: SQLite cache size in pages (negative = KB)
    """

    data_dir: str = "/var/lib/ledger"
    db_name: str = "ledger.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000
    cache_size_pages: int = -64000  # 64MB

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dir=os.getenv("DATA_DIR", "/var/lib/ledger"),
            db_name=os.getenv("LEDGER_DB_NAME", "ledger.db"),
            wal_mode=_env_bool("SQLITE_WAL_MODE", "true"),
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
            cache_size_pages=int(os.getenv("SQLITE_CACHE_SIZE", "-64000")),
        )


@dataclass(frozen=True)
class QueryConfig:
    """Pagination settings for list queries.

    Attributes:
        default_limit: Page size when the caller omits a limit
        max_limit: Upper bound applied to any requested limit
    """

    default_limit: int = 30
    max_limit: int = 100

    @classmethod
    def from_env(cls) -> QueryConfig:
        """Load configuration from environment variables."""
        return cls(
            default_limit=int(os.getenv("QUERY_DEFAULT_LIMIT", "30")),
            max_limit=int(os.getenv("QUERY_MAX_LIMIT", "100")),
        )

    def clamp(self, limit: int | None) -> int:
        """Apply the default and cap to a requested limit."""
        if limit is None:
            limit = self.default_limit
        return min(limit, self.max_limit)


@dataclass(frozen=True)
class AuthConfig:
    """Write authorization settings.

    Attributes:
        enforce_owner: Reject writes from senders other than the owner
    """

    enforce_owner: bool = True

    @classmethod
    def from_env(cls) -> AuthConfig:
        """Load configuration from environment variables."""
        return cls(enforce_owner=_env_bool("ENFORCE_OWNER", "true"))


@dataclass(frozen=True)
class HttpConfig:
    """HTTP server configuration.

    Attributes:
        host: Address to bind
        port: Port to listen on
        cors_origins: Allowed CORS origins
    """

    host: str = "0.0.0.0"
    port: int = 8081
    cors_origins: tuple[str, ...] = ("*",)

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        origins = os.getenv("HTTP_CORS_ORIGINS", "*")
        return cls(
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("HTTP_PORT", "8081")),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    Attributes:
        storage: Local storage configuration
        query: Pagination configuration
        auth: Write authorization configuration
        http: HTTP server configuration
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            query=QueryConfig.from_env(),
            auth=AuthConfig.from_env(),
            http=HttpConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.query.max_limit < 1:
            raise ValueError("QUERY_MAX_LIMIT must be at least 1")
        if self.query.default_limit < 1:
            raise ValueError("QUERY_DEFAULT_LIMIT must be at least 1")
        if self.query.default_limit > self.query.max_limit:
            raise ValueError("QUERY_DEFAULT_LIMIT must not exceed QUERY_MAX_LIMIT")

        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

        if not self.storage.db_name:
            raise ValueError("LEDGER_DB_NAME must not be empty")

        if not os.path.exists(self.storage.data_dir):
            logger.warning(
                f"Data directory does not exist: {self.storage.data_dir}. "
                "It will be created on first write."
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Server configuration loaded",
            extra={
                "data_dir": self.storage.data_dir,
                "db_name": self.storage.db_name,
                "wal_mode": self.storage.wal_mode,
                "default_limit": self.query.default_limit,
                "max_limit": self.query.max_limit,
                "enforce_owner": self.auth.enforce_owner,
                "http_bind": f"{self.http.host}:{self.http.port}",
                "log_level": self.observability.log_level,
            },
        )
