"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from printbroker.constants import DEFAULT_CLEANUP_MAX_AGE_DAYS, DEFAULT_PRINTER_PROTOCOL


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database (no default: a worker without a connection target refuses to start)
    database_url: str | None = None
    database_pool_size: int = 10
    database_max_overflow: int = 20
    database_create_tables: bool = True

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_key: str | None = None
    public_base_url: str = "http://localhost:8000"

    # Blob storage
    storage_path: str = "./data/blobs"
    storage_signing_key: str = "your-signing-key-change-in-production"
    storage_signing_algorithm: str = "HS256"
    storage_url_ttl_seconds: int = 3600

    # Worker Configuration
    worker_poll_interval_seconds: float = 1.0
    worker_drain_pause_seconds: float = 0.2
    fetch_chunk_size: int = 64 * 1024

    # Spooler
    lp_command: str = "lp"
    lpadmin_command: str = "lpadmin"
    default_printer_protocol: str = DEFAULT_PRINTER_PROTOCOL

    # Cleanup
    cleanup_max_age_days: int = DEFAULT_CLEANUP_MAX_AGE_DAYS
    cleanup_batch_size: int = 100
    reaper_interval_seconds: int = 86400

    # Observability
    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://localhost:4317"
    otel_service_name: str = "printbroker"
    log_level: str = "INFO"
    log_format: str = "json"  # json or console


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
