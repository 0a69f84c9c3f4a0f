"""Configuration loading for PriceSentry.

Settings live in ``~/.config/pricesentry/config.toml``. Secrets left empty in
the file fall back to environment variables.
"""

import os
from pathlib import Path
from typing import Any, Optional

import toml
from pydantic import BaseModel, Field, field_validator


CONFIG_DIR = Path.home() / ".config" / "pricesentry"
CONFIG_PATH = CONFIG_DIR / "config.toml"
DEFAULT_DB_PATH = CONFIG_DIR / "pricesentry.db"


class MonitorSettings(BaseModel):
    """Scheduler settings."""

    interval_seconds: float = Field(default=60.0, gt=0, description="Seconds between cycles")
    db_path: Path = Field(default=DEFAULT_DB_PATH, description="SQLite database file")

    @field_validator("db_path")
    @classmethod
    def expand_home(cls, value: Path) -> Path:
        return value.expanduser()


class PriceSettings(BaseModel):
    """Price oracle settings."""

    cache_ttl_seconds: float = Field(default=60.0, gt=0, description="Price cache TTL")
    timeout_seconds: float = Field(default=10.0, gt=0, description="HTTP timeout")
    coingecko_url: str = Field(
        default="https://api.coingecko.com/api/v3",
        description="CoinGecko API base URL",
    )


class SmtpSettings(BaseModel):
    """Outbound email settings."""

    host: Optional[str] = Field(default=None, description="SMTP server host")
    port: int = Field(default=587, description="SMTP server port")
    secure: bool = Field(default=False, description="Use implicit TLS (SMTPS)")
    user: Optional[str] = Field(default=None, description="SMTP login")
    password: Optional[str] = Field(default=None, description="SMTP password")
    sender_name: str = Field(default="PriceSentry Alerts", description="From display name")
    timeout_seconds: float = Field(default=10.0, gt=0, description="SMTP timeout")

    @property
    def configured(self) -> bool:
        return bool(self.host)


class TelegramSettings(BaseModel):
    """Telegram Bot API settings."""

    bot_token: Optional[str] = Field(default=None, description="Bot token")
    timeout_seconds: float = Field(default=10.0, gt=0, description="HTTP timeout")

    @property
    def configured(self) -> bool:
        return bool(self.bot_token)


class LoggingSettings(BaseModel):
    """Logging settings."""

    level: str = Field(default="INFO", description="Log level name")


class Config(BaseModel):
    """Top-level PriceSentry configuration."""

    monitor: MonitorSettings = Field(default_factory=MonitorSettings)
    prices: PriceSettings = Field(default_factory=PriceSettings)
    smtp: SmtpSettings = Field(default_factory=SmtpSettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# (section, key) -> environment variable consulted when the file leaves it empty
ENV_FALLBACKS = {
    ("smtp", "host"): "SMTP_HOST",
    ("smtp", "port"): "SMTP_PORT",
    ("smtp", "user"): "SMTP_USER",
    ("smtp", "password"): "SMTP_PASS",
    ("smtp", "secure"): "SMTP_SECURE",
    ("telegram", "bot_token"): "TELEGRAM_BOT_TOKEN",
    ("logging", "level"): "PRICESENTRY_LOG_LEVEL",
}


def _apply_env(raw: dict[str, Any]) -> dict[str, Any]:
    """Fill empty secret/config values from the environment."""
    for (section, key), env_name in ENV_FALLBACKS.items():
        values = raw.setdefault(section, {})
        if values.get(key) in (None, ""):
            env_value = os.environ.get(env_name)
            if env_value:
                if key == "secure":
                    values[key] = env_value.lower() == "true"
                else:
                    values[key] = env_value
    return raw


def load_config(path: Optional[Path] = None) -> Config:
    """Load configuration from a TOML file and the environment.

    A missing file is not an error: defaults plus environment apply.

    Args:
        path: Config file path. Defaults to ``~/.config/pricesentry/config.toml``.

    Returns:
        Validated configuration.

    Raises:
        ValueError: If the file exists but cannot be parsed or validated.
    """
    config_path = path or CONFIG_PATH
    raw: dict[str, Any] = {}
    if config_path.exists():
        try:
            raw = toml.load(config_path)
        except toml.TomlDecodeError as e:
            raise ValueError(f"Invalid config file {config_path}: {e}") from e
    return Config.model_validate(_apply_env(raw))


def create_template_config(path: Optional[Path] = None) -> Path:
    """Write a template configuration file.

    Args:
        path: Where to write. Defaults to ``~/.config/pricesentry/config.toml``.

    Returns:
        The path written.
    """
    config_path = path or CONFIG_PATH
    config_path.parent.mkdir(parents=True, exist_ok=True)

    template = {
        "monitor": {
            "interval_seconds": 60,
            "db_path": str(DEFAULT_DB_PATH),
        },
        "prices": {
            "cache_ttl_seconds": 60,
            "timeout_seconds": 10,
        },
        "smtp": {
            "host": "",  # Leave empty to use SMTP_HOST env var
            "port": 587,
            "secure": False,
            "user": "",  # Leave empty to use SMTP_USER env var
            "password": "",  # Leave empty to use SMTP_PASS env var
        },
        "telegram": {
            "bot_token": "",  # Leave empty to use TELEGRAM_BOT_TOKEN env var
        },
        "logging": {
            "level": "INFO",
        },
    }

    with open(config_path, "w") as f:
        toml.dump(template, f)

    return config_path
