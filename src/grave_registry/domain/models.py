from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import RecordValidationError
from .constants import CONDITION_CHOICES, CONDITION_DEFAULT


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _coord(value: Any, name: str) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise RecordValidationError(f"{name} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise RecordValidationError(f"invalid {name}: {value!r}")


def normalize_condition(value: Any) -> str:
    """Return the canonical condition label, matching case-insensitively."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return CONDITION_DEFAULT
    candidate = str(value).strip()
    if candidate in CONDITION_CHOICES:
        return candidate
    for choice in CONDITION_CHOICES:
        if choice.lower() == candidate.lower():
            return choice
    raise RecordValidationError(
        f"unknown condition {candidate!r}; expected one of {', '.join(CONDITION_CHOICES)}"
    )


@dataclass
class Person:
    name: str = ""
    birth_date: str = ""
    birth_place: str = ""
    death_date: str = ""
    death_place: str = ""
    epitaph: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "birthDate": self.birth_date,
            "birthPlace": self.birth_place,
            "deathDate": self.death_date,
            "deathPlace": self.death_place,
            "epitaph": self.epitaph,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Person":
        if not isinstance(data, dict):
            raise RecordValidationError("person must be an object")
        return cls(
            name=_text(data.get("name")),
            birth_date=_text(data.get("birthDate")),
            birth_place=_text(data.get("birthPlace")),
            death_date=_text(data.get("deathDate")),
            death_place=_text(data.get("deathPlace")),
            epitaph=_text(data.get("epitaph")),
        )


@dataclass
class GraveRecord:
    """One observed grave marker.

    `stele_number` stays None until the record store stamps it. Coordinates
    are optional; both must be present for the record to appear on a map.
    """

    id: str
    timestamp: int                  # ms since epoch
    stele_number: Optional[int] = None
    aisle_number: str = ""
    condition: str = CONDITION_DEFAULT
    photo_url: str = ""
    people: List[Person] = field(default_factory=list)
    is_synced: bool = False
    lat: Optional[float] = None
    lng: Optional[float] = None

    def __post_init__(self) -> None:
        if not self.id:
            raise RecordValidationError("record id required")
        self.condition = normalize_condition(self.condition)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "steleNumber": self.stele_number,
            "aisleNumber": self.aisle_number,
            "condition": self.condition,
            "photoUrl": self.photo_url,
            "people": [p.to_dict() for p in self.people],
            "timestamp": self.timestamp,
            "isSynced": self.is_synced,
        }
        if self.lat is not None:
            out["lat"] = self.lat
        if self.lng is not None:
            out["lng"] = self.lng
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "GraveRecord":
        if not isinstance(data, dict):
            raise RecordValidationError("record must be an object")
        rid = data.get("id")
        if not isinstance(rid, str) or not rid.strip():
            raise RecordValidationError("record id required")
        people_raw = data.get("people") or []
        if not isinstance(people_raw, list):
            raise RecordValidationError("people must be a list")
        stele = data.get("steleNumber")
        if stele is not None:
            if isinstance(stele, bool):
                raise RecordValidationError("steleNumber must be an integer")
            try:
                stele = int(stele)
            except (TypeError, ValueError):
                raise RecordValidationError(f"invalid steleNumber: {stele!r}")
            if stele < 1:
                raise RecordValidationError(f"steleNumber must be positive: {stele}")
        try:
            timestamp = int(data.get("timestamp") or 0)
        except (TypeError, ValueError):
            raise RecordValidationError(f"invalid timestamp: {data.get('timestamp')!r}")
        return cls(
            id=rid,
            timestamp=timestamp,
            stele_number=stele,
            aisle_number=_text(data.get("aisleNumber")),
            condition=data.get("condition"),
            photo_url=_text(data.get("photoUrl")),
            people=[Person.from_dict(p) for p in people_raw],
            is_synced=bool(data.get("isSynced", False)),
            lat=_coord(data.get("lat"), "lat"),
            lng=_coord(data.get("lng"), "lng"),
        )

    @property
    def has_location(self) -> bool:
        return self.lat is not None and self.lng is not None
