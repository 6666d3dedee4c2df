"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "leakwatch"
    debug: bool = False
    log_level: str = "INFO"

    # Storage
    database_path: str = "data/leakwatch.db"

    # Alert lifecycle
    asset_id: str = "pipeline-main"
    alert_polling_enabled: bool = True
    poll_interval_seconds: float = 2.0

    # Read windows
    recent_limit: int = 10
    history_limit: int = 20
    sensors_limit: int = 50
    analytics_limit: int = 20

    # HTTP
    cors_allow_origins: list[str] = ["*"]
    host: str = "0.0.0.0"
    port: int = 5000

    model_config = {"env_prefix": "LEAKWATCH_"}


settings = Settings()
