"""Configuration management for the Curator Library server.

Settings are loaded from ``CURATOR_LIBRARY_*`` environment variables (or a
``.env`` file) and validated with pydantic-settings:
1. Server metadata - name and version announced to MCP clients
2. Storage - where the transactional record store lives
3. Metadata source - bibliographic and cover endpoints plus their timeout
4. Lending - bounds on the per-book exclusive region
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseSettings):
    """Curator Library server configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CURATOR_LIBRARY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Server Metadata ===

    server_name: str = Field(
        default="curator-library",
        description="MCP server name used in protocol handshake",
        pattern=r"^[a-z0-9-]+$",
    )

    server_version: str = Field(
        default="0.1.0",
        description="Server version for capability negotiation",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    transport: str = Field(
        default="stdio",
        description="Primary transport mechanism",
        pattern=r"^(stdio|streamable_http)$",
    )

    # === Storage ===

    database_path: Path = Field(
        default=Path("data/curator_library.db"),
        description="SQLite database file path",
    )

    # === Metadata Enricher ===

    metadata_base_url: str = Field(
        default="https://openlibrary.org",
        description="Base URL of the bibliographic lookup service",
    )

    cover_base_url: str = Field(
        default="https://covers.openlibrary.org",
        description="Base URL of the cover image service",
    )

    metadata_timeout_seconds: float = Field(
        default=5.0,
        description="Upper bound for each external metadata or cover request",
        ge=0.1,
        le=60.0,
    )

    # === Lending ===

    lock_timeout_seconds: float = Field(
        default=10.0,
        description="How long a lending operation waits for the per-book lock",
        gt=0,
        le=300.0,
    )

    # === Development ===

    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    observability_enabled: bool = Field(
        default=True,
        description="Configure logfire tracing at server start",
    )

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Resolve the database path and make sure its directory exists."""
        abs_path = v.absolute()
        abs_path.parent.mkdir(parents=True, exist_ok=True)
        if not abs_path.parent.is_dir():
            raise ValueError(f"Database directory {abs_path.parent} is not accessible")
        return abs_path

    @field_validator("metadata_base_url", "cover_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v.rstrip("/")

    @property
    def is_development(self) -> bool:
        return self.debug or self.log_level == "DEBUG"

    @property
    def server_info(self) -> dict[str, str]:
        """Server information sent during the MCP handshake."""
        return {
            "name": self.server_name,
            "version": self.server_version,
            "transport": self.transport,
        }

    def get_database_url(self) -> str:
        return f"sqlite:///{self.database_path}"


class _ConfigStore:
    """Internal storage for configuration singleton."""

    _instance: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Get or create the global configuration instance."""
    if _ConfigStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ConfigStore._instance = ServerConfig()  # type: ignore[reportPrivateUsage]
    return _ConfigStore._instance  # type: ignore[reportPrivateUsage]


def set_config(config: ServerConfig) -> None:
    """Install a pre-built configuration (used by tests and embedding hosts)."""
    _ConfigStore._instance = config  # type: ignore[reportPrivateUsage]


def reset_config() -> None:
    """Reset configuration so the next ``get_config()`` reloads the environment."""
    _ConfigStore._instance = None  # type: ignore[reportPrivateUsage]
