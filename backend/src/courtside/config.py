"""Application configuration via pydantic-settings."""

from functools import lru_cache

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Authority settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API Settings
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # CORS - comma-separated origins (env var: CORS_ORIGINS)
    cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173"

    @computed_field
    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # Queue and match rules
    queue_capacity: int = 10
    default_target_score: int = 21
    confirmation_timeout_seconds: float = 60.0
    park_disputes: bool = True

    # Court
    timezone: str = "Asia/Bangkok"
    champion_cooldown_minutes: int = 15
    court_status_interval_seconds: float = 30.0

    # Match archive (DuckDB file, or :memory:)
    archive_path: str = ":memory:"

    # Real-time channel
    rate_limit_max_events: int = 30
    rate_limit_window_seconds: float = 10.0
    outbox_size: int = 256


class ClientSettings(BaseSettings):
    """Connection settings supplied to the client library (env prefix COURTSIDE_)."""

    model_config = SettingsConfigDict(
        env_prefix="COURTSIDE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    server_url: str = "http://localhost:8000"
    auto_connect: bool = True
    reconnection_attempts: int = 5
    reconnection_delay: float = 1.0  # Base delay, doubled per failed attempt
    reconnection_delay_max: float = 5.0
    connection_timeout: float = 10.0
    snapshot_timeout: float = 10.0

    @computed_field
    @property
    def channel_url(self) -> str:
        """WebSocket URL derived from the HTTP server URL."""
        base = self.server_url.rstrip("/")
        if base.startswith("https://"):
            base = "wss://" + base[len("https://"):]
        elif base.startswith("http://"):
            base = "ws://" + base[len("http://"):]
        return f"{base}/ws"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
