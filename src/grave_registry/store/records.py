"""Local record store: durable collection of grave records and stele numbering."""

from __future__ import annotations

import json
import threading
from dataclasses import replace
from typing import Iterable, List, Optional

from ..domain.models import GraveRecord
from ..errors import NotFound, PersistenceFailure, RecordValidationError
from ..logging import get_logger
from .kv import KeyValueStore

LOG = get_logger("store-records")

RECORDS_KEY = "grave_records_local"
COUNTER_KEY = "grave_stele_counter"
WEBHOOK_KEY = "grave_webhook_url"


def _parse_counter(raw: Optional[str]) -> int:
    if raw is None or not raw.strip():
        return 0
    try:
        value = int(raw.strip())
    except ValueError:
        # A damaged counter must never hand out a number twice.
        raise PersistenceFailure(f"stele counter is not an integer: {raw!r}")
    return max(value, 0)


def _dump(records: Iterable[GraveRecord]) -> str:
    return json.dumps([r.to_dict() for r in records], ensure_ascii=False)


def _parse_records(raw: Optional[str]) -> List[GraveRecord]:
    if raw is None or not raw.strip():
        return []
    try:
        data = json.loads(raw)
    except ValueError as exc:
        LOG.warning(f"Persisted record collection is not valid JSON; starting empty ({exc})")
        return []
    if not isinstance(data, list):
        LOG.warning("Persisted record collection is not a list; starting empty")
        return []
    try:
        return [GraveRecord.from_dict(item) for item in data]
    except RecordValidationError as exc:
        LOG.warning(f"Persisted record collection is corrupt; starting empty ({exc})")
        return []


class RecordStore:
    """Sole owner of the grave record collection and the stele counter.

    - The collection is kept newest-first and persisted as one JSON blob,
      fully replaced on every write.
    - The counter lives under its own key and is incremented in the same
      transaction as the collection write, so a failed append spends nothing.
    - Mutations are serialized by an instance lock.
    """

    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv
        self._lock = threading.RLock()
        self._records: List[GraveRecord] = []
        self.load()

    # ---------------- reads ----------------
    def load(self) -> List[GraveRecord]:
        """Reload the collection from persistence; unreadable data yields an empty list."""
        with self._lock:
            try:
                raw = self.kv.get(RECORDS_KEY)
            except PersistenceFailure as exc:
                LOG.warning(f"Could not read record collection; starting empty ({exc})")
                raw = None
            self._records = _parse_records(raw)
            LOG.debug(f"Loaded {len(self._records)} record(s)")
            return list(self._records)

    def records(self) -> List[GraveRecord]:
        with self._lock:
            return list(self._records)

    def get(self, record_id: str) -> GraveRecord:
        with self._lock:
            for record in self._records:
                if record.id == record_id:
                    return record
        raise NotFound(record_id)

    def unsynced_records(self) -> List[GraveRecord]:
        with self._lock:
            return [r for r in self._records if not r.is_synced]

    def next_stele_number(self) -> int:
        """Number the next append would receive (nothing is spent)."""
        return _parse_counter(self.kv.get(COUNTER_KEY)) + 1

    # ---------------- writes ----------------
    def _commit(self, records: List[GraveRecord]) -> None:
        self.kv.set(RECORDS_KEY, _dump(records))
        self._records = records

    def append(self, record: GraveRecord) -> GraveRecord:
        with self._lock:
            if any(r.id == record.id for r in self._records):
                raise RecordValidationError(f"duplicate record id {record.id!r}")
            with self.kv.transaction() as txn:
                stele_number = _parse_counter(txn.get(COUNTER_KEY)) + 1
                stamped = replace(record, stele_number=stele_number)
                updated = [stamped] + self._records
                txn.set(COUNTER_KEY, str(stele_number))
                txn.set(RECORDS_KEY, _dump(updated))
            self._records = updated
        LOG.info(f"Recorded stèle n°{stele_number} (id={stamped.id[:8]}, people={len(stamped.people)})")
        return stamped

    def update(self, record: GraveRecord) -> None:
        with self._lock:
            for idx, existing in enumerate(self._records):
                if existing.id == record.id:
                    break
            else:
                raise NotFound(record.id)
            if not isinstance(record.stele_number, int) or record.stele_number < 1:
                raise RecordValidationError(f"steleNumber must be a positive integer, got {record.stele_number!r}")
            updated = list(self._records)
            updated[idx] = record
            self._commit(updated)
        LOG.info(f"Updated record id={record.id[:8]}")

    def delete(self, record_id: str) -> None:
        with self._lock:
            updated = [r for r in self._records if r.id != record_id]
            removed = len(self._records) - len(updated)
            self._commit(updated)
        if removed:
            LOG.info(f"Deleted record id={record_id[:8]}")
        else:
            LOG.debug(f"Delete of unknown id={record_id}; nothing removed")

    def mark_all_synced(self, ids: Iterable[str]) -> None:
        wanted = set(ids)
        with self._lock:
            updated = [
                replace(r, is_synced=True) if r.id in wanted and not r.is_synced else r
                for r in self._records
            ]
            self._commit(updated)
        LOG.info(f"Marked {len(wanted)} record id(s) as synced")

    # ---------------- endpoint configuration ----------------
    def webhook_url(self) -> Optional[str]:
        try:
            raw = self.kv.get(WEBHOOK_KEY)
        except PersistenceFailure as exc:
            LOG.warning(f"Could not read webhook URL: {exc}")
            return None
        return raw.strip() if raw and raw.strip() else None

    def set_webhook_url(self, url: Optional[str]) -> None:
        self.kv.set(WEBHOOK_KEY, (url or "").strip())
        LOG.info(f"Webhook URL {'configured' if url and url.strip() else 'cleared'}")
