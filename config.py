"""
Configuration module for OI Pump Alerts Bot.
Loads environment variables and provides application settings.
"""
from pathlib import Path
from typing import Dict

from pydantic_settings import BaseSettings, SettingsConfigDict


# Channel name of the bot configured by BOT_TOKEN
MAIN_CHANNEL = "main"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Telegram Bot Configuration
    bot_token: str

    # Extra delivery bots users can pick as their alert channel
    # Format (JSON): {"scalp": "123:ABC", "intraday": "456:DEF"}
    additional_bots: Dict[str, str] = {}

    # Database Configuration
    database_path: str = "./data/oi_alerts.db"

    # Exchange Configuration
    binance_futures_rest_url: str = "https://fapi.binance.com"
    request_timeout: int = 10

    # Monitoring Settings
    monitor_interval_seconds: int = 60
    oi_retention_minutes: int = 30
    oi_alert_cooldown_minutes: int = 5
    oi_lookup_tolerance_minutes: int = 1

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def bot_tokens(self) -> Dict[str, str]:
        """All delivery channels, main bot included."""
        tokens = {MAIN_CHANNEL: self.bot_token}
        tokens.update(self.additional_bots)
        return tokens


def get_settings() -> Settings:
    """Get application settings singleton."""
    return Settings()


# Create data directory if it doesn't exist
def ensure_data_directory():
    """Ensure the data directory exists for the database."""
    settings = get_settings()
    db_path = Path(settings.database_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
