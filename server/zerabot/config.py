"""
ZeraBot Configuration

Centralized configuration. All environment variables MUST be defined here.
No os.getenv() calls allowed elsewhere.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from zerabot.core.types import ZeraBotError

PRODUCTION = "production"
DEVELOPMENT = "development"


class ConfigurationError(ZeraBotError):
    """Raised when required configuration is missing or invalid."""
    pass


def _require_env(name: str, description: str) -> str:
    """Get a required environment variable or raise ConfigurationError."""
    value = os.environ.get(name)
    if not value:
        raise ConfigurationError(
            f"Missing required environment variable: {name}\n"
            f"Description: {description}\n"
            f"Please set this in your .env file or environment."
        )
    return value


def _optional_env(name: str, default: str = "") -> str:
    """Get an optional environment variable with a default."""
    return os.environ.get(name, default)


def _optional_env_int(name: str, default: int) -> int:
    """Get an optional integer environment variable with a default."""
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Invalid integer value for {name}: {value}")


def _optional_env_float(name: str, default: float) -> float:
    """Get an optional float environment variable with a default."""
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"Invalid number value for {name}: {value}")


def _optional_env_int_set(name: str) -> frozenset[int]:
    """Parse a comma-separated list of chat ids."""
    raw = os.environ.get(name, "")
    parts = [p.strip() for p in raw.split(",") if p.strip()]
    try:
        return frozenset(int(p) for p in parts)
    except ValueError:
        raise ConfigurationError(f"Invalid chat id list for {name}: {raw}")


@dataclass(frozen=True)
class TelegramConfig:
    """Telegram Bot API and webhook configuration."""
    bot_token: str
    webhook_secret: str
    domain: str = ""
    ngrok_url: str = ""
    api_base_url: str = "https://api.telegram.org"

    @property
    def webhook_path(self) -> str:
        return f"/{self.webhook_secret}"

    def webhook_url(self, environment: str) -> str:
        """Public URL Telegram posts updates to."""
        if environment == DEVELOPMENT and self.ngrok_url:
            return f"{self.ngrok_url.rstrip('/')}{self.webhook_path}"
        return f"https://{self.domain}{self.webhook_path}"


@dataclass(frozen=True)
class RedisConfig:
    """Subscription store connection configuration."""
    url: str
    key_prefix: str = "zerabot"


@dataclass(frozen=True)
class WebhookServerConfig:
    """HTTP listener for Telegram updates."""
    host: str
    port: int


@dataclass(frozen=True)
class IngestConfig:
    """Validator block ingestion configuration."""
    host: str
    port: int
    trusted_domain: str
    interval_seconds: float = 3.0
    burst: int = 1
    queue_size: int = 100


@dataclass(frozen=True)
class NotificationConfig:
    """Proposal rendering and fan-out configuration."""
    explorer_txn_url: str = ""
    dev_chat_ids: frozenset[int] = field(default_factory=frozenset)
    startup_chat_id: Optional[int] = None
    max_concurrent_sends: int = 10


@dataclass(frozen=True)
class Settings:
    """Root configuration container."""
    environment: str
    telegram: TelegramConfig
    redis: RedisConfig
    webhook_server: WebhookServerConfig
    ingest: IngestConfig
    notifications: NotificationConfig
    shutdown_timeout_seconds: float = 10.0
    log_level: str = "INFO"

    @property
    def is_development(self) -> bool:
        return self.environment == DEVELOPMENT

    @property
    def webhook_url(self) -> str:
        return self.telegram.webhook_url(self.environment)


def load_settings() -> Settings:
    """
    Load all settings from environment variables.

    Defaults to production when ENVIRONMENT is unset. DOMAIN is only
    required in production; development may publish the webhook through
    NGROK_URL instead.
    """
    environment = _optional_env("ENVIRONMENT", PRODUCTION).strip().lower() or PRODUCTION
    if environment not in (PRODUCTION, DEVELOPMENT):
        raise ConfigurationError(
            f"Invalid ENVIRONMENT: {environment} (expected '{PRODUCTION}' or '{DEVELOPMENT}')"
        )

    if environment == PRODUCTION:
        domain = _require_env("DOMAIN", "Public domain serving the Telegram webhook")
    else:
        domain = _optional_env("DOMAIN", "")
        if not domain and not _optional_env("NGROK_URL", ""):
            raise ConfigurationError("Development mode needs NGROK_URL or DOMAIN to publish the webhook")

    telegram = TelegramConfig(
        bot_token=_require_env("TELEGRAM_BOT_TOKEN", "Bot token issued by @BotFather"),
        webhook_secret=_require_env("WEBHOOK_SECRET", "Secret path segment of the webhook URL"),
        domain=domain,
        ngrok_url=_optional_env("NGROK_URL", ""),
        api_base_url=_optional_env("TELEGRAM_API_URL", "https://api.telegram.org"),
    )

    redis = RedisConfig(
        url=_optional_env("REDIS_URL", "redis://localhost:6379/0"),
        key_prefix=_optional_env("REDIS_KEY_PREFIX", "zerabot"),
    )

    webhook_server = WebhookServerConfig(
        host=_optional_env("WEBHOOK_HOST", "0.0.0.0"),
        port=_optional_env_int("WEBHOOK_PORT", 8080),
    )

    ingest = IngestConfig(
        host=_optional_env("INGEST_HOST", "0.0.0.0"),
        port=_optional_env_int("INGEST_PORT", 50051),
        trusted_domain=_optional_env("GRPC_ADDR", ""),
        interval_seconds=_optional_env_float("INGEST_INTERVAL_SECONDS", 3.0),
        burst=_optional_env_int("INGEST_BURST", 1),
        queue_size=_optional_env_int("INGEST_QUEUE_SIZE", 100),
    )

    startup_chat = _optional_env("STARTUP_CHAT_ID", "")
    try:
        startup_chat_id = int(startup_chat) if startup_chat else None
    except ValueError:
        raise ConfigurationError(f"Invalid integer value for STARTUP_CHAT_ID: {startup_chat}")

    notifications = NotificationConfig(
        explorer_txn_url=_optional_env("EXPLORER_TXN_URL", ""),
        dev_chat_ids=_optional_env_int_set("DEV_CHAT_IDS"),
        startup_chat_id=startup_chat_id,
        max_concurrent_sends=_optional_env_int("MAX_CONCURRENT_SENDS", 10),
    )

    return Settings(
        environment=environment,
        telegram=telegram,
        redis=redis,
        webhook_server=webhook_server,
        ingest=ingest,
        notifications=notifications,
        shutdown_timeout_seconds=_optional_env_float("SHUTDOWN_TIMEOUT_SECONDS", 10.0),
        log_level=_optional_env("LOG_LEVEL", "INFO").upper(),
    )
