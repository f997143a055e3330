"""Webhook synchronization of unsynced grave records."""

from .coordinator import (
    STATUS_ALREADY_IN_PROGRESS,
    STATUS_NOT_CONFIGURED,
    STATUS_NOTHING_TO_SYNC,
    STATUS_OFFLINE,
    STATUS_SYNCED,
    STATUS_TRANSFER_FAILED,
    SyncCoordinator,
    SyncOutcome,
)
from .transport import WebhookTransport, probe_connectivity

__all__ = [
    "SyncCoordinator",
    "SyncOutcome",
    "WebhookTransport",
    "probe_connectivity",
    "STATUS_SYNCED",
    "STATUS_NOTHING_TO_SYNC",
    "STATUS_OFFLINE",
    "STATUS_NOT_CONFIGURED",
    "STATUS_TRANSFER_FAILED",
    "STATUS_ALREADY_IN_PROGRESS",
]
