"""
ZeraBot Service

Telegram notification bot for ZERA governance proposals. Validators push
freshly broadcast blocks to the bot; proposals that landed with an OK status
are rendered and fanned out to every chat subscribed to the proposal's symbol.

Architecture:
    validator -> ingest.server -> ingest.gate -> queue -> ingest.worker
              -> governance -> fanout -> telegram.client

    telegram webhook -> telegram.webhook -> telegram.commands -> store

Components:
    - symbols: ticker parsing and canonicalization
    - store: Redis-backed subscription registry
    - fanout: per-chat notification delivery
    - governance: proposal extraction and rendering
    - ingest: rate limiting, sender authentication, block queue and worker
    - telegram: Bot API client, webhook server, command router
"""
