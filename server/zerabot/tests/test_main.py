"""
Tests for zerabot.main

Every service is patched out; these cover startup failure teardown.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from zerabot.config import (
    PRODUCTION,
    IngestConfig,
    NotificationConfig,
    RedisConfig,
    Settings,
    TelegramConfig,
    WebhookServerConfig,
)
from zerabot.core.types import GatewayError
from zerabot.main import run


@pytest.fixture
def settings():
    return Settings(
        environment=PRODUCTION,
        telegram=TelegramConfig(bot_token="123:abc", webhook_secret="s3cret", domain="bot.example"),
        redis=RedisConfig(url="redis://localhost:6379/0"),
        webhook_server=WebhookServerConfig(host="127.0.0.1", port=0),
        ingest=IngestConfig(host="127.0.0.1", port=0, trusted_domain="validator.example"),
        notifications=NotificationConfig(),
        shutdown_timeout_seconds=1.0,
    )


@pytest.fixture
def services():
    with patch("zerabot.main.SubscriptionStore") as store_cls, \
         patch("zerabot.main.TelegramGateway") as gateway_cls, \
         patch("zerabot.main.WebhookServer") as webhook_cls, \
         patch("zerabot.main.BlockIngestServer") as ingest_cls, \
         patch("zerabot.main.ProposalWorker") as worker_cls:
        store = store_cls.return_value = AsyncMock()
        gateway = gateway_cls.return_value = AsyncMock()
        gateway.get_me.return_value = {"username": "ZeraBot"}
        gateway.username = "ZeraBot"
        webhook = webhook_cls.return_value = AsyncMock()
        ingest = ingest_cls.return_value = AsyncMock()
        worker = worker_cls.return_value = MagicMock()
        worker.stop = AsyncMock()
        yield {
            "store": store,
            "gateway": gateway,
            "webhook": webhook,
            "ingest": ingest,
            "worker": worker,
        }


async def test_ingest_bind_failure_still_tears_everything_down(settings, services):
    services["ingest"].start.side_effect = OSError("address already in use")

    with pytest.raises(OSError, match="address already in use"):
        await run(settings)

    services["worker"].start.assert_called_once()
    services["ingest"].stop.assert_awaited_once()
    services["webhook"].stop.assert_awaited_once()
    services["worker"].stop.assert_awaited_once_with(timeout=1.0)
    services["gateway"].close.assert_awaited_once()
    services["store"].close.assert_awaited_once()


async def test_webhook_setup_failure_closes_gateway_and_store(settings, services):
    services["gateway"].setup_webhook.side_effect = GatewayError("bad webhook", method="setWebhook")

    with pytest.raises(GatewayError):
        await run(settings)

    services["worker"].start.assert_not_called()
    services["webhook"].start.assert_not_awaited()
    services["gateway"].close.assert_awaited_once()
    services["store"].close.assert_awaited_once()
