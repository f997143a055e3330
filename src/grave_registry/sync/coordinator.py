"""Batch synchronization of unsynced records to the configured webhook."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import httpx
import requests

from ..errors import TransportError
from ..logging import get_logger
from ..store.records import RecordStore

LOG = get_logger("sync-coordinator")

# JSON body declared as plain text; Apps Script web apps accept it without a preflight.
BATCH_CONTENT_TYPE = "text/plain"

STATUS_SYNCED = "synced"
STATUS_NOTHING_TO_SYNC = "nothing_to_sync"
STATUS_OFFLINE = "offline"
STATUS_NOT_CONFIGURED = "not_configured"
STATUS_TRANSFER_FAILED = "transfer_failed"
STATUS_ALREADY_IN_PROGRESS = "already_in_progress"


class Transport(Protocol):
    def post(self, url: str, content_type: str, body: str) -> object: ...


@dataclass(frozen=True)
class SyncOutcome:
    status: str
    count: int = 0
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in {STATUS_SYNCED, STATUS_NOTHING_TO_SYNC}

    def message(self) -> str:
        if self.status == STATUS_SYNCED:
            return f"{self.count} stèle(s) synchronisée(s) !"
        if self.status == STATUS_NOTHING_TO_SYNC:
            return "Toutes les données sont déjà synchronisées."
        if self.status == STATUS_OFFLINE:
            return "Vous devez être en ligne pour synchroniser."
        if self.status == STATUS_NOT_CONFIGURED:
            return "Veuillez configurer l'URL du Webhook."
        if self.status == STATUS_ALREADY_IN_PROGRESS:
            return "Une synchronisation est déjà en cours."
        return f"Échec du transfert: {self.detail or 'erreur réseau'}"


class SyncCoordinator:
    """Pushes every unsynced record to the webhook in one POST.

    Checks run in order: connectivity, endpoint, backlog. A POST that
    completes at the transport level marks the whole batch synced whatever
    the response says; a transport error leaves every flag untouched.
    Concurrent calls are rejected with `already_in_progress`.
    """

    def __init__(
        self,
        store: RecordStore,
        transport: Transport,
        *,
        connectivity: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.store = store
        self.transport = transport
        self.connectivity = connectivity
        self._in_flight = threading.Lock()

    def is_online(self, online: Optional[bool] = None) -> bool:
        if online is not None:
            return bool(online)
        if self.connectivity is None:
            return True
        return bool(self.connectivity())

    def sync(self, endpoint: Optional[str] = None, *, online: Optional[bool] = None) -> SyncOutcome:
        if not self._in_flight.acquire(blocking=False):
            LOG.warning("Sync requested while another sync is running; rejected")
            return SyncOutcome(STATUS_ALREADY_IN_PROGRESS)
        try:
            return self._run(endpoint, online)
        finally:
            self._in_flight.release()

    def _run(self, endpoint: Optional[str], online: Optional[bool]) -> SyncOutcome:
        if not self.is_online(online):
            LOG.info("Sync skipped: offline")
            return SyncOutcome(STATUS_OFFLINE)

        url = (endpoint or "").strip() or self.store.webhook_url()
        if not url:
            LOG.info("Sync skipped: no webhook URL configured")
            return SyncOutcome(STATUS_NOT_CONFIGURED)

        unsynced = self.store.unsynced_records()
        if not unsynced:
            LOG.info("Sync skipped: all records already synced")
            return SyncOutcome(STATUS_NOTHING_TO_SYNC)

        body = json.dumps({"data": [r.to_dict() for r in unsynced]}, ensure_ascii=False)
        LOG.info(f"Sending {len(unsynced)} unsynced record(s)")
        try:
            self.transport.post(url, BATCH_CONTENT_TYPE, body)
        except (TransportError, requests.RequestException, httpx.TransportError, OSError) as exc:
            LOG.error(f"Transfer failed; {len(unsynced)} record(s) stay unsynced: {exc}")
            return SyncOutcome(STATUS_TRANSFER_FAILED, detail=str(exc))

        self.store.mark_all_synced(r.id for r in unsynced)
        LOG.info(f"Sync completed. synced={len(unsynced)}")
        return SyncOutcome(STATUS_SYNCED, count=len(unsynced))
