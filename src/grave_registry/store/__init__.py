"""Local persistence for grave records.

Modules:
- kv: SQLite-backed key/value substrate with atomic transactions
- records: RecordStore owning the record collection and stele counter
"""

from .kv import KeyValueStore
from .records import COUNTER_KEY, RECORDS_KEY, WEBHOOK_KEY, RecordStore

__all__ = [
    "KeyValueStore",
    "RecordStore",
    "RECORDS_KEY",
    "COUNTER_KEY",
    "WEBHOOK_KEY",
]
