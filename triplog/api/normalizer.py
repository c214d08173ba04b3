"""Row normalization: raw CSV rows to sorted :class:`TripRecord` sets."""

from __future__ import annotations

import logging
import math
import re
from datetime import date
from typing import List, Optional, Sequence

from triplog.api.csv_parser import parse_csv
from triplog.api.errors import LoadError
from triplog.api.headers import MANDATORY_FIELDS, resolve_headers
from triplog.api.models import TRIP, CanonicalField, HeaderIndex, RawRow, TripRecord

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^([0-9]{1,2})/([0-9]{1,2})/([0-9]{4})$")
_NON_NUMERIC_RE = re.compile(r"[^0-9,.\-]")

_MISSING_COLUMN_MESSAGES = {
    CanonicalField.DATE: "Non trovo la colonna Data/Date (rinomina o aggiungi alias).",
}


def to_iso(value: str) -> str:
    """Convert ``d/m/yyyy`` text to ``yyyy-mm-dd``; "" when it doesn't parse."""
    m = _DATE_RE.match((value or "").strip())
    if not m:
        return ""
    day, month, year = (int(g) for g in m.groups())
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return ""


def safe_num(value: str) -> float:
    """Lenient number parsing for hand-typed km/cost cells; 0 on failure."""
    s = _NON_NUMERIC_RE.sub("", (value or "").strip()).replace(",", ".", 1)
    if not s:
        return 0.0
    try:
        n = float(s)
    except ValueError:
        return 0.0
    return n if math.isfinite(n) else 0.0


def _first(*values: str) -> str:
    for v in values:
        if v:
            return v
    return ""


def normalize_row(row: RawRow, idx: HeaderIndex) -> Optional[TripRecord]:
    """Build a record from ``row``; None when its date is unusable."""
    def cell(canonical: CanonicalField) -> str:
        return idx.cell(row, canonical)

    date_text = cell(CanonicalField.DATE)
    date_iso = to_iso(date_text)
    if not date_iso:
        return None

    origin = cell(CanonicalField.FROM)
    destination = cell(CanonicalField.TO)
    place = cell(CanonicalField.PLACE)
    address = cell(CanonicalField.ADDRESS)
    km = cell(CanonicalField.KM)
    cost = cell(CanonicalField.COST)

    return TripRecord(
        inc=cell(CanonicalField.INC),
        days=cell(CanonicalField.DAYS),
        date=date_text,
        activity=cell(CanonicalField.ACTIVITY),
        origin=origin,
        destination=destination,
        place=place,
        km=km,
        lodging=cell(CanonicalField.LODGING),
        status=cell(CanonicalField.STATUS),
        cost=cost,
        notes=cell(CanonicalField.NOTES),
        address=address,
        link=cell(CanonicalField.LINK),
        date_iso=date_iso,
        km_value=safe_num(km),
        cost_value=safe_num(cost),
        city=_first(place, destination, origin),
        full_address=_first(address, place, destination, origin),
    )


def sort_records(records: Sequence[TripRecord]) -> List[TripRecord]:
    """Ascending by ISO date, "Trip" rows first within a date."""
    return sorted(records, key=lambda r: (r.date_iso, 0 if r.activity == TRIP else 1))


def build_records(matrix: Sequence[RawRow]) -> List[TripRecord]:
    """Turn a tokenized export (header first) into the sorted working set.

    Raises:
        LoadError: If the matrix is empty or has no date column
    """
    if not matrix:
        raise LoadError("CSV vuoto o non leggibile.")

    idx = resolve_headers(matrix[0])
    for canonical in MANDATORY_FIELDS:
        if not idx.is_present(canonical):
            raise LoadError(_MISSING_COLUMN_MESSAGES.get(
                canonical, f"Non trovo la colonna {canonical.value} (rinomina o aggiungi alias)."))

    records = []
    rejected = 0
    for row in matrix[1:]:
        record = normalize_row(row, idx)
        if record is None:
            rejected += 1
            continue
        records.append(record)

    logger.info(f"Normalized {len(records)} rows ({rejected} without a usable date)")
    return sort_records(records)


def load_records_from_text(text: str) -> List[TripRecord]:
    """Tokenize and normalize an export in one go."""
    return build_records(parse_csv(text or ""))


__all__ = [
    "build_records",
    "load_records_from_text",
    "normalize_row",
    "safe_num",
    "sort_records",
    "to_iso",
]
