"""Configuration management using Pydantic Settings.

Loads configuration from environment variables with .env file support.
"""

from typing import Dict, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration."""

    # Server Configuration
    app_env: str = "development"
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    # Shared Database Configuration
    db_enabled: bool = True
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "postgres"
    db_password: str = ""
    db_name: str = "kirimku"
    db_ssl_mode: str = "disable"
    db_max_open_conns: int = 25
    db_max_idle_conns: int = 25
    db_conn_max_lifetime: int = 300  # seconds
    db_conn_max_idle_time: int = 600  # seconds
    db_connect_timeout: int = 10  # seconds
    db_statement_timeout: int = 0  # milliseconds, 0 = server default
    db_health_check_period: int = 30  # seconds

    # Tenant Resolution
    tenant_default_type: str = "shared"
    tenant_overrides: Dict[str, str] = {}
    tenant_cache_ttl: int = 3600  # seconds

    # Carrier Webhook Secrets (empty = signature check skipped)
    jne_webhook_secret: Optional[str] = None
    sicepat_webhook_secret: Optional[str] = None
    ninjavan_webhook_secret: Optional[str] = None

    # Tracking Sink
    forward_tracking_url: Optional[str] = None

    # GlitchTip Error Monitoring
    glitchtip_dsn: Optional[str] = None

    class Config:
        """Pydantic config."""

        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    def webhook_secret_for(self, courier_code: str) -> str:
        """Return the HMAC secret configured for a courier, or empty string."""
        return getattr(self, f"{courier_code}_webhook_secret", None) or ""


# Create a global settings instance
settings = Settings()
