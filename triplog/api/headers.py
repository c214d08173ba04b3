"""Header alias resolution.

Spreadsheet exports come with whatever column titles the author typed, in
Italian or English, with or without accents. ``resolve_headers`` maps them
onto :class:`CanonicalField` positions.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from triplog.api.models import CanonicalField, HeaderIndex

logger = logging.getLogger(__name__)

HEADER_ALIASES: Dict[CanonicalField, List[str]] = {
    CanonicalField.INC: ["inc", "index", "#", "id"],
    CanonicalField.DAYS: ["n days", "n. days", "days", "giorni", "durata"],
    CanonicalField.DATE: ["data", "date", "giorno"],
    CanonicalField.ACTIVITY: ["attività", "attivita", "activity", "tipo", "type"],
    CanonicalField.FROM: ["partenza", "da", "from", "start", "origine", "departure"],
    CanonicalField.TO: ["arrivo", "a", "to", "end", "destinazione", "arrival"],
    CanonicalField.PLACE: ["luogo", "citta", "città", "city", "location", "tappa", "stop"],
    CanonicalField.KM: ["km", "kms", "distanza", "distance"],
    CanonicalField.LODGING: ["pernottamento", "hotel", "alloggio", "accommodation", "lodging"],
    CanonicalField.STATUS: ["stato", "status", "prenotazione", "booking status"],
    CanonicalField.COST: ["costo", "cost", "prezzo", "price", "budget"],
    CanonicalField.NOTES: ["note", "notes", "commenti", "comment", "memo"],
    CanonicalField.ADDRESS: ["indirizzo", "address", "location address", "place address"],
    CanonicalField.LINK: ["link", "url", "booking link", "website"],
}

MANDATORY_FIELDS = (CanonicalField.DATE,)

_SEPARATORS_RE = re.compile(r"[_\-]+")
_PUNCT_RE = re.compile(r"[^\w\s.]")
_SPACES_RE = re.compile(r"\s+")


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def keyify_header(value: str) -> str:
    """Normalize a header cell or alias for comparison."""
    s = strip_diacritics(str(value or "").strip().casefold())
    s = _SEPARATORS_RE.sub(" ", s)
    s = _PUNCT_RE.sub(" ", s)
    s = _SPACES_RE.sub(" ", s)
    return s.strip()


def resolve_headers(
    header_row: Sequence[str],
    aliases: Optional[Mapping[CanonicalField, Iterable[str]]] = None,
) -> HeaderIndex:
    """Map each canonical field to the first header column matching one of its aliases.

    Fields are resolved in declaration order; a column claimed by an earlier
    field is skipped for later ones. Unmatched fields are absent (None).
    """
    table = HEADER_ALIASES if aliases is None else aliases
    header_keys = [keyify_header(h) for h in header_row]
    claimed: Set[int] = set()
    positions: Dict[CanonicalField, Optional[int]] = {}

    for canonical in CanonicalField:
        wanted = {keyify_header(a) for a in table.get(canonical, ())}
        found = None
        for i, key in enumerate(header_keys):
            if i in claimed:
                continue
            if key in wanted:
                found = i
                break
        positions[canonical] = found
        if found is not None:
            claimed.add(found)

    missing = [f.value for f in CanonicalField if positions[f] is None]
    if missing:
        logger.debug("Header fields not found: %s", ", ".join(missing))

    return HeaderIndex(positions=positions)


__all__ = [
    "HEADER_ALIASES",
    "MANDATORY_FIELDS",
    "keyify_header",
    "resolve_headers",
    "strip_diacritics",
]
