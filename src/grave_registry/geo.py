"""Map helpers: located records, bounds to fit, GeoJSON for map widgets."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple

from .domain.models import GraveRecord


def located_records(records: Iterable[GraveRecord]) -> List[GraveRecord]:
    return [r for r in records if r.has_location]


def bounds(records: Iterable[GraveRecord]) -> Optional[Tuple[float, float, float, float]]:
    """Return (south, west, north, east) over located records, or None."""
    located = located_records(records)
    if not located:
        return None
    lats = [r.lat for r in located]
    lngs = [r.lng for r in located]
    return (min(lats), min(lngs), max(lats), max(lngs))


def to_geojson(records: Iterable[GraveRecord]) -> Dict[str, Any]:
    features = []
    for r in located_records(records):
        features.append({
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [r.lng, r.lat]},
            "properties": {
                "id": r.id,
                "steleNumber": r.stele_number,
                "aisleNumber": r.aisle_number,
                "condition": r.condition,
                "names": [p.name for p in r.people if p.name],
                "isSynced": r.is_synced,
            },
        })
    return {"type": "FeatureCollection", "features": features}
