"""Application configuration with validation."""

from enum import Enum
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Raised when application configuration is invalid for the environment."""
    pass


class Settings(BaseSettings):
    """
    Application settings with validation.

    Every field can be overridden by an environment variable of the same
    name (case-insensitive) or via a ``.env`` file.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # CORS Configuration
    cors_allowed_origins: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./cloudvault.db",
        description="Database connection URL"
    )
    db_pool_size: int = Field(
        default=5,
        description="Number of persistent database connections"
    )
    db_max_overflow: int = Field(
        default=10,
        description="Extra connections allowed during traffic bursts"
    )

    # Content store
    # Each account gets its own area: <storage_root>/<owner_id>/...
    storage_root: str = Field(
        default="./uploads",
        description="Root directory of the local content store"
    )
    stream_chunk_size: int = Field(
        default=64 * 1024,
        description="Chunk size in bytes for streaming reads and writes"
    )

    # Storage accounting
    quota_bytes: int = Field(
        default=16106127360,
        description="Per-account storage ceiling in bytes (15 GiB)"
    )
    max_upload_bytes: int = Field(
        default=100 * 1024 * 1024,
        description="Largest single file accepted by the upload endpoints"
    )
    max_batch_files: int = Field(
        default=50,
        description="Maximum number of files in one batch upload"
    )
    quota_snapshot_ttl_seconds: int = Field(
        default=300,
        description="Age after which a stored quota snapshot is recomputed on read"
    )

    # Trash
    trash_retention_days: int = Field(
        default=30,
        description="Days a trashed node is kept before permanent deletion"
    )

    # Hierarchy
    # Upper bound for parent-chain walks; exceeding it means the tree is corrupt.
    max_folder_depth: int = Field(
        default=256,
        description="Maximum parent-chain length walked during cycle checks"
    )

    # Identity
    # Authentication happens upstream; the gateway forwards the account id.
    identity_header: str = Field(
        default="X-User-Id",
        description="Request header carrying the authenticated account id"
    )

    # Public links
    public_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL used when rendering public download links"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    def get_cors_origins(self) -> List[str]:
        """
        Get CORS origins as a list.

        Parses comma-separated string and validates no wildcards.
        """
        origins = [origin.strip() for origin in self.cors_allowed_origins.split(',') if origin.strip()]

        if "*" in origins:
            raise ValueError(
                "Wildcard CORS (*) not allowed. "
                "Specify explicit origins in CORS_ALLOWED_ORIGINS"
            )

        return origins

    def public_link(self, token: str) -> str:
        """Render the public download URL for a share token."""
        return f"{self.public_base_url.rstrip('/')}/api/files/public/{token}"

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('quota_bytes', 'trash_retention_days', 'max_folder_depth', 'stream_chunk_size')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    def validate_production_config(self) -> None:
        """Validate configuration for production environment.

        Raises:
            ConfigurationError: If production config is insecure.
        """
        errors: list[str] = []

        origins = self.get_cors_origins()
        localhost_origins = [o for o in origins if "localhost" in o or "127.0.0.1" in o]
        if localhost_origins:
            errors.append(
                f"CORS allows localhost origins: {localhost_origins}. "
                "Remove localhost origins for production."
            )

        if "localhost" in self.public_base_url:
            errors.append(
                "PUBLIC_BASE_URL points at localhost. "
                "Public share links would be unusable."
            )

        if errors and self.environment == Environment.PRODUCTION:
            raise ConfigurationError(
                "Production configuration is insecure:\n  - " + "\n  - ".join(errors)
            )

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
