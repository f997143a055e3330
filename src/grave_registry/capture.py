"""Building new, unstamped grave records from a photo and form fields."""

from __future__ import annotations

import base64
import mimetypes
import os
import time
import uuid
from typing import List, Optional, Sequence

from .domain.models import GraveRecord, Person
from .errors import RecordValidationError
from .logging import get_logger

LOG = get_logger("capture")

_IMAGE_EXTS = {".jpg", ".jpeg", ".jpe", ".jfif", ".png", ".webp", ".heic"}


def photo_data_url(path: str) -> str:
    """Return the image at `path` as a base64 data URL."""
    mime, _ = mimetypes.guess_type(path)
    if not mime:
        ext = os.path.splitext(path)[1].lower()
        mime = "image/jpeg" if ext in _IMAGE_EXTS else None
    if not mime or not mime.startswith("image/"):
        raise RecordValidationError(f"Unsupported photo type for {path}: {mime}")
    with open(path, "rb") as f:
        data = f.read()
    LOG.debug(f"Encoded photo {os.path.basename(path)} ({len(data)} bytes, {mime})")
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def new_record(
    *,
    photo_url: str = "",
    people: Optional[Sequence[Person]] = None,
    aisle_number: str = "",
    condition: Optional[str] = None,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
) -> GraveRecord:
    """Return a fresh record awaiting its stele number.

    Coordinates come as a pair; a single one is dropped.
    """
    if (lat is None) != (lng is None):
        LOG.warning("Only one GPS coordinate supplied; storing the record without location")
        lat = lng = None
    kept: List[Person] = list(people or [])
    return GraveRecord(
        id=str(uuid.uuid4()),
        timestamp=int(time.time() * 1000),
        aisle_number=(aisle_number or "").strip(),
        condition=condition,
        photo_url=photo_url,
        people=kept,
        is_synced=False,
        lat=lat,
        lng=lng,
    )
