from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import List, Optional

import pytest

# Ensure src/ is importable when tests run from the repo root without an install
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src")))

from grave_registry.capture import new_record
from grave_registry.domain.models import GraveRecord, Person
from grave_registry.store import KeyValueStore, RecordStore


class RecordingTransport:
    """Transport double that remembers calls and can fail on demand."""

    def __init__(self, error: Optional[Exception] = None, status_code: int = 200) -> None:
        self.error = error
        self.status_code = status_code
        self.calls: List[tuple] = []

    def post(self, url: str, content_type: str, body: str) -> dict:
        self.calls.append((url, content_type, body))
        if self.error is not None:
            raise self.error
        return {"status_code": self.status_code, "text": ""}


def make_record(name: str = "Jeanne Martin", *, lat: Optional[float] = None, lng: Optional[float] = None, **kw) -> GraveRecord:
    return new_record(
        photo_url="data:image/jpeg;base64,AAAA",
        people=[Person(name=name, birth_date="1901", death_date="1975", epitaph="Repose en paix")],
        aisle_number=kw.pop("aisle_number", "A3"),
        condition=kw.pop("condition", "Moyen"),
        lat=lat,
        lng=lng,
    )


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "var" / "grave_db" / "registry.sqlite3")


@pytest.fixture
def store(db_path: str) -> RecordStore:
    return RecordStore(KeyValueStore(db_path))
