import logging
from typing import Optional
from pathlib import Path
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

log = logging.getLogger(__name__)


class Settings(BaseSettings):
    # --- Bot Core ---
    discord_token: SecretStr = Field(..., alias="DISCORD_TOKEN")
    command_prefix: str = Field("$", alias="COMMAND_PREFIX")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # --- Database ---
    contest_db_path: Optional[Path] = Field(None, alias="CONTEST_DB_PATH")
    contest_db_dir: Optional[Path] = Field(None, alias="CONTEST_DB_DIR")
    contest_db_busy_timeout_ms: int = Field(15000, alias="CONTEST_DB_BUSY_TIMEOUT_MS")

    # --- Dashboard ---
    dashboard_enabled: bool = Field(True, alias="DASHBOARD_ENABLED")
    dashboard_host: str = Field("0.0.0.0", alias="DASHBOARD_HOST")
    dashboard_port: int = Field(3000, alias="DASHBOARD_PORT")
    dashboard_public_url: Optional[str] = Field(None, alias="DASHBOARD_PUBLIC_URL")
    dashboard_session_ttl_seconds: int = Field(12 * 3600, alias="DASHBOARD_SESSION_TTL_SECONDS")

    # --- Discord OAuth (dashboard login) ---
    discord_client_id: Optional[str] = Field(None, alias="DISCORD_CLIENT_ID")
    discord_client_secret: Optional[SecretStr] = Field(None, alias="DISCORD_CLIENT_SECRET")
    discord_callback_url: Optional[str] = Field(None, alias="DISCORD_CALLBACK_URL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra env vars
    )

    def callback_url(self) -> str:
        """OAuth redirect target; defaults to the local dashboard port like the old express app."""
        if self.discord_callback_url:
            return self.discord_callback_url
        base = (self.dashboard_public_url or f"http://localhost:{self.dashboard_port}").rstrip("/")
        return f"{base}/auth/discord/callback"


# Singleton instance
try:
    settings = Settings()
except Exception as e:
    # Missing token on first setup: keep imports working, main_bot refuses to start later
    log.warning("Config loading warning: %s", e)

    class DummySettings(Settings):
        discord_token: SecretStr = SecretStr("")

    settings = DummySettings()

log.debug("Config loaded; dashboard=%s", getattr(settings, "dashboard_enabled", None))


def get_settings() -> Settings:
    """Return the shared settings instance used across the bot."""
    return settings


__all__ = ["Settings", "settings", "get_settings"]
