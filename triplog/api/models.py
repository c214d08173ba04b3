"""Shared data structures for the trip log pipeline.

The tokenizer, header resolver, normalizer, aggregation engine and map
service all exchange these types, so they live in one place to keep the
modules free of circular imports.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import urlparse

TRIP = "Trip"
NIGHT = "Notte"

CONFIRMED_STATUSES = {"prenotato", "pagato", "confermato"}
LONG_DRIVE_KM = 500

RawRow = Sequence[str]


class CanonicalField(str, Enum):
    """Logical columns understood by the pipeline, in resolution order."""

    INC = "inc"
    DAYS = "days"
    DATE = "date"
    ACTIVITY = "activity"
    FROM = "from"
    TO = "to"
    PLACE = "place"
    KM = "km"
    LODGING = "lodging"
    STATUS = "status"
    COST = "cost"
    NOTES = "notes"
    ADDRESS = "address"
    LINK = "link"


@dataclass(frozen=True)
class HeaderIndex:
    """Column position of each canonical field, or None when absent."""

    positions: Mapping[CanonicalField, Optional[int]]

    def position(self, canonical: CanonicalField) -> Optional[int]:
        return self.positions.get(canonical)

    def is_present(self, canonical: CanonicalField) -> bool:
        return self.position(canonical) is not None

    def cell(self, row: RawRow, canonical: CanonicalField) -> str:
        """Return the trimmed cell for ``canonical`` ("" if absent or out of range)."""
        i = self.position(canonical)
        if i is None or i >= len(row):
            return ""
        return str(row[i] or "").strip()


def normalize_http_url(url: str) -> str:
    """Return ``url`` if it is an absolute http(s) URL, else an empty string."""
    value = (url or "").strip()
    if not value or value == "?":
        return ""
    try:
        parsed = urlparse(value)
    except ValueError:
        return ""
    if parsed.scheme in ("http", "https") and parsed.netloc:
        return value
    return ""


def _js_number(value: float) -> str:
    # 120.0 -> "120", 1.5 -> "1.5"
    if value.is_integer():
        return str(int(value))
    return repr(value)


@dataclass(frozen=True)
class TripRecord:
    """A single normalized row of the trip log."""

    inc: str = ""
    days: str = ""
    date: str = ""
    activity: str = ""
    origin: str = ""
    destination: str = ""
    place: str = ""
    km: str = ""
    lodging: str = ""
    status: str = ""
    cost: str = ""
    notes: str = ""
    address: str = ""
    link: str = ""

    # Derived
    date_iso: str = ""
    km_value: float = 0.0
    cost_value: float = 0.0
    city: str = ""
    full_address: str = ""

    @property
    def is_trip(self) -> bool:
        return self.activity == TRIP

    @property
    def is_night(self) -> bool:
        return self.activity == NIGHT

    @property
    def is_confirmed(self) -> bool:
        return self.status.lower() in CONFIRMED_STATUSES

    @property
    def is_long_drive(self) -> bool:
        return self.km_value >= LONG_DRIVE_KM

    @property
    def safe_link(self) -> str:
        return normalize_http_url(self.link)

    def search_text(self) -> str:
        """Every field value, derived ones included, joined for free-text search."""
        values = [
            self.inc, self.days, self.date, self.activity, self.origin,
            self.destination, self.place, self.km, self.lodging, self.status,
            self.cost, self.notes, self.address, self.link, self.date_iso,
            _js_number(self.km_value), _js_number(self.cost_value),
            self.city, self.full_address,
        ]
        return " ".join(values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inc": self.inc,
            "days": self.days,
            "date": self.date,
            "activity": self.activity,
            "from": self.origin,
            "to": self.destination,
            "place": self.place,
            "km": self.km,
            "lodging": self.lodging,
            "status": self.status,
            "cost": self.cost,
            "notes": self.notes,
            "address": self.address,
            "link": self.link,
            "date_iso": self.date_iso,
            "km_value": self.km_value,
            "cost_value": self.cost_value,
            "city": self.city,
            "full_address": self.full_address,
            "is_confirmed": self.is_confirmed,
            "is_long_drive": self.is_long_drive,
            "safe_link": self.safe_link,
        }


@dataclass(frozen=True)
class FilterCriteria:
    """Optional filters; empty strings mean "no constraint"."""

    text: str = ""
    activity: str = ""
    city: str = ""
    status: str = ""

    @classmethod
    def from_mapping(cls, args: Mapping[str, Any]) -> "FilterCriteria":
        """Build criteria from query-string style keys (q, type, city, status)."""
        return cls(
            text=str(args.get("q") or "").strip().lower(),
            activity=str(args.get("type") or "").strip(),
            city=str(args.get("city") or "").strip(),
            status=str(args.get("status") or "").strip(),
        )


@dataclass
class Summary:
    """Headline figures for a filtered subset."""

    rows: int = 0
    days: int = 0
    trips: int = 0
    nights: int = 0
    km: float = 0.0
    cost: float = 0.0

    def to_dict(self) -> dict:
        return {
            "rows": self.rows,
            "days": self.days,
            "trips": self.trips,
            "nights": self.nights,
            "km": self.km,
            "cost": self.cost,
        }


@dataclass
class CityAggregate:
    """Per derived-city rollup."""

    city: str
    nights: int = 0
    trips_out: int = 0
    trips_in: int = 0
    km: float = 0.0
    cost: float = 0.0

    def to_dict(self) -> dict:
        return {
            "city": self.city,
            "nights": self.nights,
            "trips_out": self.trips_out,
            "trips_in": self.trips_in,
            "km": self.km,
            "cost": self.cost,
        }


@dataclass
class DayBreakdown:
    """Records of a single ISO date split into trips and nights."""

    date_iso: str
    trips: List[TripRecord] = field(default_factory=list)
    nights: List[TripRecord] = field(default_factory=list)
    others: List[TripRecord] = field(default_factory=list)
    km: float = 0.0
    cost: float = 0.0

    def to_dict(self) -> dict:
        return {
            "date_iso": self.date_iso,
            "trips": [r.to_dict() for r in self.trips],
            "nights": [r.to_dict() for r in self.nights],
            "others": [r.to_dict() for r in self.others],
            "km": self.km,
            "cost": self.cost,
        }


@dataclass(frozen=True)
class GeocodeResult:
    """Coordinates for a normalized query."""

    lat: float
    lng: float
    display: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Optional["GeocodeResult"]:
        """Rebuild a cached entry, or None if it is malformed."""
        try:
            lat = float(data["lat"])
            lng = float(data["lng"])
        except (KeyError, TypeError, ValueError):
            return None
        if not (math.isfinite(lat) and math.isfinite(lng)):
            return None
        return cls(lat=lat, lng=lng, display=str(data.get("display") or ""))

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng, "display": self.display}
