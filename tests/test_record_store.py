from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace

import pytest

from conftest import make_record

from grave_registry.errors import NotFound, PersistenceFailure, RecordValidationError
from grave_registry.store import COUNTER_KEY, RECORDS_KEY, KeyValueStore, RecordStore


def test_append_assigns_increasing_numbers_across_restarts(db_path: str) -> None:
    numbers = []
    for i in range(5):
        # Fresh instances simulate process restarts between captures.
        store = RecordStore(KeyValueStore(db_path))
        numbers.append(store.append(make_record(f"Personne {i}")).stele_number)
    assert numbers == [1, 2, 3, 4, 5]


def test_append_then_load_returns_record_first_with_fields_intact(store: RecordStore) -> None:
    store.append(make_record("Ancien"))
    rec = make_record("Louis Dubois", lat=48.8566, lng=2.3522)
    stamped = store.append(rec)

    loaded = store.load()
    assert loaded[0] == stamped
    assert loaded[0].people[0].name == "Louis Dubois"
    assert loaded[0].people[0].epitaph == "Repose en paix"
    assert loaded[0].lat == pytest.approx(48.8566)
    assert loaded[0].condition == "Moyen"
    assert loaded[0].is_synced is False
    assert [r.stele_number for r in loaded] == [2, 1]


def test_delete_removes_one_record_and_keeps_counter(store: RecordStore) -> None:
    a = store.append(make_record("A"))
    b = store.append(make_record("B"))
    store.delete(b.id)

    assert [r.id for r in store.load()] == [a.id]
    c = store.append(make_record("C"))
    assert c.stele_number == 3


def test_counter_survives_deleting_everything(db_path: str) -> None:
    store = RecordStore(KeyValueStore(db_path))
    ids = [store.append(make_record(str(i))).id for i in range(3)]
    for rid in ids:
        store.delete(rid)
    reopened = RecordStore(KeyValueStore(db_path))
    assert reopened.records() == []
    assert reopened.append(make_record("D")).stele_number == 4


def test_delete_unknown_id_is_noop(store: RecordStore) -> None:
    a = store.append(make_record("A"))
    store.delete("does-not-exist")
    assert [r.id for r in store.records()] == [a.id]


def test_update_replaces_all_fields(store: RecordStore) -> None:
    a = store.append(make_record("A"))
    changed = replace(a, aisle_number="B7", condition="Très mauvais", people=[])
    store.update(changed)

    reloaded = RecordStore(store.kv).get(a.id)
    assert reloaded.aisle_number == "B7"
    assert reloaded.condition == "Très mauvais"
    assert reloaded.people == []


def test_update_unknown_id_raises_not_found(store: RecordStore) -> None:
    with pytest.raises(NotFound):
        store.update(make_record("ghost"))


def test_unsynced_records_keeps_collection_order(store: RecordStore) -> None:
    recs = [store.append(make_record(str(i))) for i in range(5)]
    store.mark_all_synced({recs[1].id, recs[3].id})

    unsynced = store.unsynced_records()
    assert [r.id for r in unsynced] == [recs[4].id, recs[2].id, recs[0].id]
    assert all(not r.is_synced for r in unsynced)


def test_mark_all_synced_is_idempotent(store: RecordStore) -> None:
    recs = [store.append(make_record(str(i))) for i in range(3)]
    ids = {recs[0].id, recs[2].id}
    store.mark_all_synced(ids)
    once = store.load()
    store.mark_all_synced(ids)
    assert store.load() == once
    assert [r.is_synced for r in once] == [True, False, True]


def test_corrupt_collection_loads_as_empty_but_counter_continues(store: RecordStore) -> None:
    store.append(make_record("A"))
    store.append(make_record("B"))
    store.kv.set(RECORDS_KEY, "{not json")

    assert store.load() == []
    assert store.append(make_record("C")).stele_number == 3


def test_wrong_shape_collection_loads_as_empty(store: RecordStore) -> None:
    store.kv.set(RECORDS_KEY, '{"data": []}')
    assert store.load() == []
    store.kv.set(RECORDS_KEY, '[{"id": "x", "condition": "Cassée"}]')
    assert store.load() == []


class _FailingWrites(KeyValueStore):
    def __init__(self, db_path: str) -> None:
        super().__init__(db_path)
        self.fail = False

    def set(self, key: str, value: str) -> None:
        if self.fail:
            raise PersistenceFailure("disk full")
        super().set(key, value)


class _BrokenCollectionWrite:
    def __init__(self, txn) -> None:
        self._txn = txn

    def get(self, key: str):
        return self._txn.get(key)

    def set(self, key: str, value: str) -> None:
        if key == RECORDS_KEY:
            raise PersistenceFailure("disk full")
        self._txn.set(key, value)


class _FailingCollectionTransaction(KeyValueStore):
    def __init__(self, db_path: str) -> None:
        super().__init__(db_path)
        self.fail = False

    @contextmanager
    def transaction(self):
        with super().transaction() as txn:
            yield _BrokenCollectionWrite(txn) if self.fail else txn


def test_failed_append_spends_no_number(db_path: str) -> None:
    kv = _FailingCollectionTransaction(db_path)
    store = RecordStore(kv)
    store.append(make_record("A"))

    kv.fail = True
    with pytest.raises(PersistenceFailure):
        store.append(make_record("B"))
    kv.fail = False

    assert len(store.records()) == 1
    assert kv.get(COUNTER_KEY) == "1"
    assert store.append(make_record("C")).stele_number == 2


def test_failed_update_leaves_memory_and_disk_unchanged(db_path: str) -> None:
    kv = _FailingWrites(db_path)
    store = RecordStore(kv)
    a = store.append(make_record("A"))
    kv.fail = True

    with pytest.raises(PersistenceFailure):
        store.update(replace(a, aisle_number="Z9"))
    with pytest.raises(PersistenceFailure):
        store.delete(a.id)

    assert store.get(a.id).aisle_number == "A3"
    kv.fail = False
    assert RecordStore(kv).get(a.id).aisle_number == "A3"


def test_transaction_rolls_back_on_error(db_path: str) -> None:
    kv = KeyValueStore(db_path)
    kv.set("k", "before")
    with pytest.raises(RuntimeError):
        with kv.transaction() as txn:
            txn.set("k", "after")
            raise RuntimeError("abort")
    assert kv.get("k") == "before"


def test_webhook_url_roundtrip(store: RecordStore) -> None:
    assert store.webhook_url() is None
    store.set_webhook_url("  https://script.google.com/macros/s/abc/exec ")
    assert store.webhook_url() == "https://script.google.com/macros/s/abc/exec"
    store.set_webhook_url("")
    assert store.webhook_url() is None


def test_next_stele_number_does_not_spend(store: RecordStore) -> None:
    assert store.next_stele_number() == 1
    assert store.next_stele_number() == 1
    store.append(make_record("A"))
    assert store.next_stele_number() == 2


@pytest.mark.parametrize("number", [None, 0, -4])
def test_update_rejects_missing_or_non_positive_stele_number(store: RecordStore, number) -> None:
    a = store.append(make_record("A"))
    with pytest.raises(RecordValidationError):
        store.update(replace(a, stele_number=number))
    assert RecordStore(store.kv).get(a.id).stele_number == 1
