"""
zerabot — top-level orchestrator

Runs every service in a single async event loop:
  - webhook server:  Telegram updates → CommandRouter → SubscriptionStore
  - ingest server:   validator blocks → IngestionGate → proposal queue
  - proposal worker: queue → extraction → rendering → NotificationFanout

Usage:
    cd server
    python -m zerabot.main                 # reads .env from the working directory
    python -m zerabot.main --env-file prod.env
    zerabot                                # console script, same options
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional

from dotenv import load_dotenv

from zerabot.config import ConfigurationError, Settings, load_settings
from zerabot.core.types import GatewayError, StoreUnavailableError
from zerabot.fanout import NotificationFanout
from zerabot.ingest import (
    BlockIngestServer,
    IngestionGate,
    ProposalWorker,
    SenderAuthenticator,
    TokenBucket,
)
from zerabot.models.block import Block
from zerabot.store import SubscriptionStore
from zerabot.telegram import CommandRouter, TelegramGateway, WebhookServer

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s — %(message)s"

logger = logging.getLogger("zerabot")


async def run(settings: Settings) -> None:
    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown_event.set)

    # ── Subscription store ─────────────────────────────────────────
    store = SubscriptionStore(settings.redis.url, key_prefix=settings.redis.key_prefix)
    await store.connect()

    gateway = TelegramGateway(
        settings.telegram.bot_token,
        api_base_url=settings.telegram.api_base_url,
    )
    webhook_server: Optional[WebhookServer] = None
    ingest_server: Optional[BlockIngestServer] = None
    worker: Optional[ProposalWorker] = None

    try:
        # ── Telegram ───────────────────────────────────────────────
        await gateway.connect()
        me = await gateway.get_me()
        logger.info(f"Authorized on account {me.get('username', '')}")
        await gateway.setup_webhook(settings.webhook_url)

        router = CommandRouter(store, gateway, bot_username=gateway.username)
        webhook_server = WebhookServer(
            router,
            settings.telegram.webhook_secret,
            host=settings.webhook_server.host,
            port=settings.webhook_server.port,
            health_check=store.ping,
        )

        # ── Proposal pipeline ──────────────────────────────────────
        allowed_chat_ids = settings.notifications.dev_chat_ids if settings.is_development else None
        if allowed_chat_ids is not None:
            if allowed_chat_ids:
                logger.info(f"Development mode — notifications limited to {len(allowed_chat_ids)} chat(s)")
            else:
                logger.warning("Development mode with empty DEV_CHAT_IDS — no notifications will be sent")

        fanout = NotificationFanout(
            store,
            gateway,
            allowed_chat_ids=allowed_chat_ids,
            max_concurrent_sends=settings.notifications.max_concurrent_sends,
        )

        queue: asyncio.Queue[Block] = asyncio.Queue(maxsize=settings.ingest.queue_size)
        worker = ProposalWorker(
            queue,
            fanout,
            explorer_txn_url=settings.notifications.explorer_txn_url,
        )

        limiter = TokenBucket(
            interval=settings.ingest.interval_seconds,
            burst=settings.ingest.burst,
        )
        authenticator = SenderAuthenticator(
            settings.ingest.trusted_domain,
            allow_all=settings.is_development,
        )
        if settings.is_development:
            logger.warning("Development mode — validator sender authentication disabled")
        elif not settings.ingest.trusted_domain:
            logger.warning("GRPC_ADDR is not set — every validator block will be rejected")

        gate = IngestionGate(limiter, authenticator, queue)
        ingest_server = BlockIngestServer(gate, host=settings.ingest.host, port=settings.ingest.port)

        # ── Start services ─────────────────────────────────────────
        logger.info(f"Starting zerabot ({settings.environment})")

        worker.start()
        await webhook_server.start()
        await ingest_server.start()

        startup_chat_id = settings.notifications.startup_chat_id
        if startup_chat_id is not None:
            try:
                await gateway.send_message(startup_chat_id, "✅ Zera Bot is up")
            except GatewayError as e:
                logger.warning(f"Startup message failed (non-fatal): {e}")

        await shutdown_event.wait()
    finally:
        # ── Teardown ───────────────────────────────────────────────
        logger.info("Shutting down...")

        if ingest_server is not None:
            await ingest_server.stop()
        if webhook_server is not None:
            await webhook_server.stop()
        if worker is not None:
            await worker.stop(timeout=settings.shutdown_timeout_seconds)
        await gateway.close()
        await store.close()

    ingest_stats = ingest_server.get_stats()
    gate_stats = gate.stats
    worker_stats = worker.stats
    fanout_stats = fanout.stats
    logger.info(
        f"Final — blocks received: {ingest_stats.blocks_received}, "
        f"admitted: {gate_stats.admitted}, "
        f"rate limited: {gate_stats.rate_limited}, "
        f"auth rejected: {gate_stats.auth_rejected}, "
        f"proposals notified: {worker_stats.proposals_notified}, "
        f"messages delivered: {fanout_stats.messages_delivered}, "
        f"commands handled: {webhook_server.commands_handled}"
    )


def cli() -> None:
    parser = argparse.ArgumentParser(description="zerabot governance proposal notifier")
    parser.add_argument("--env-file", default=".env", help="dotenv file to load before reading settings")
    args = parser.parse_args()

    load_dotenv(args.env_file)

    try:
        settings = load_settings()
    except ConfigurationError as e:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    try:
        asyncio.run(run(settings))
    except (StoreUnavailableError, GatewayError, OSError) as e:
        logger.error(f"Startup failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
