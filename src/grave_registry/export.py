"""CSV export of the registry: one row per person, marker fields repeated."""

from __future__ import annotations

import csv
import io
from typing import Iterable, List, Optional, Tuple

from .domain.models import GraveRecord
from .logging import get_logger

LOG = get_logger("export")

CSV_HEADERS: List[str] = ["N° Stèle", "Allée", "État", "X", "Y", "Nom", "Naissance", "Décès", "Épitaphe"]


def _cell(value: Optional[object]) -> str:
    return "" if value is None else str(value)


def _render(records: Iterable[GraveRecord]) -> Tuple[str, int]:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    rows = 0
    for r in records:
        for p in r.people:
            writer.writerow([
                _cell(r.stele_number),
                r.aisle_number,
                r.condition,
                _cell(r.lat),
                _cell(r.lng),
                p.name,
                p.birth_date,
                p.death_date,
                p.epitaph,
            ])
            rows += 1
    LOG.debug(f"Rendered {rows} CSV row(s)")
    return buf.getvalue(), rows


def records_to_csv(records: Iterable[GraveRecord]) -> str:
    """Return the CSV text; records without any person contribute no rows."""
    return _render(records)[0]


def write_csv(records: Iterable[GraveRecord], path: str) -> int:
    """Write the registry CSV to `path`; returns the number of data rows."""
    text, rows = _render(records)
    # utf-8-sig so spreadsheet tools pick up the accented headers
    with open(path, "w", encoding="utf-8-sig", newline="") as f:
        f.write(text)
    LOG.info(f"Wrote {rows} row(s) to {path}")
    return rows
