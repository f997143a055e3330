"""Wiring of the record store, sync coordinator and transports for one process."""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import Callable, Optional

from .config import Settings, load_settings
from .logging import get_logger
from .store import KeyValueStore, RecordStore
from .sync import SyncCoordinator, WebhookTransport, probe_connectivity
from .sync.coordinator import Transport

LOG = get_logger("registry")


@dataclass
class Registry:
    settings: Settings
    store: RecordStore
    coordinator: SyncCoordinator


def build_registry(
    settings: Optional[Settings] = None,
    *,
    transport: Optional[Transport] = None,
    connectivity: Optional[Callable[[], bool]] = None,
    insecure: bool = False,
) -> Registry:
    """Create the store and coordinator once at startup; consumers share this instance."""
    settings = settings or load_settings()
    store = RecordStore(KeyValueStore(settings.db_path))

    if settings.seed_webhook_url and not store.webhook_url():
        LOG.info("Seeding webhook URL from GRAVE_WEBHOOK_URL")
        store.set_webhook_url(settings.seed_webhook_url)

    transport = transport or WebhookTransport(timeout=settings.http_timeout, verify_tls=not insecure)
    coordinator = SyncCoordinator(
        store,
        transport,
        connectivity=connectivity or partial(probe_connectivity, settings.probe_url),
    )

    LOG.info("Registry ready")
    LOG.info(f"Database path      : {settings.db_path}")
    LOG.info(f"Records in store   : {len(store.records())}")
    LOG.info(f"Webhook configured : {bool(store.webhook_url())}")
    LOG.info(f"Transcribe model   : {settings.transcribe_model}")
    return Registry(settings=settings, store=store, coordinator=coordinator)
