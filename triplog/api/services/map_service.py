# triplog/api/services/map_service.py
"""Service layer for map-related operations."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from triplog.api.geocoding import Geocoder
from triplog.api.models import NIGHT, TRIP, TripRecord

logger = logging.getLogger(__name__)

ROUTE = "route"
NIGHTS = "night"
MAP_MODES = (ROUTE, NIGHTS)


@dataclass(frozen=True)
class NightStop:
    """An overnight stay to place on the map."""

    label: str
    address: str
    date_iso: str = ""
    lodging: str = ""


class MapService:
    """Chooses which places to geocode and turns hits into markers and lines."""

    @staticmethod
    def validate_coordinates(lat: float, lng: float) -> bool:
        """Validate that coordinates are within valid ranges."""
        return -90 <= lat <= 90 and -180 <= lng <= 180

    @staticmethod
    def build_route_stops(records: Sequence[TripRecord]) -> List[str]:
        """Unique from/to/place values in the order they first appear."""
        stops: Dict[str, None] = {}
        for r in records:
            for candidate in (r.origin, r.destination, r.place):
                city = candidate.strip()
                if city and city not in stops:
                    stops[city] = None
        return list(stops)

    @staticmethod
    def build_night_stops(records: Sequence[TripRecord]) -> List[NightStop]:
        """Overnight stays that have an address, de-duplicated by label and address."""
        stops: Dict[str, NightStop] = {}
        nights = [r for r in records if r.activity == NIGHT]
        for i, r in enumerate(nights):
            label = r.place or r.destination or r.origin or f"Pernottamento {i + 1}"
            addr = r.address.strip()
            if not addr:
                continue
            key = f"{label}__{addr}"
            if key not in stops:
                stops[key] = NightStop(label=label, address=addr, date_iso=r.date_iso, lodging=r.lodging)
        return list(stops.values())

    @staticmethod
    def calculate_bounds(markers: Sequence[Dict[str, Any]]) -> Dict[str, float]:
        """Bounding box (north/south/east/west) of the markers, {} if none."""
        lats = [m["lat"] for m in markers]
        lngs = [m["lng"] for m in markers]

        if not lats or not lngs:
            return {}

        return {
            'north': max(lats),
            'south': min(lats),
            'east': max(lngs),
            'west': min(lngs)
        }

    @staticmethod
    async def render_route_map(geocoder: Geocoder, records: Sequence[TripRecord]) -> Dict[str, Any]:
        """Geocode every route stop and connect the endpoints of each trip."""
        stops = MapService.build_route_stops(records)
        hits = await geocoder.resolve_many(stops)

        markers = []
        for city in stops:
            hit = hits.get(city)
            if hit is None or not MapService.validate_coordinates(hit.lat, hit.lng):
                continue
            markers.append({"label": city, "query": city, "lat": hit.lat, "lng": hit.lng,
                            "display": hit.display})

        lines = []
        for r in records:
            if r.activity != TRIP:
                continue
            a = hits.get(r.origin)
            b = hits.get(r.destination)
            if a and b:
                lines.append({
                    "from": r.origin,
                    "to": r.destination,
                    "path": [[a.lat, a.lng], [b.lat, b.lng]],
                    "km": r.km_value,
                })

        if markers or lines:
            message = f"{len(markers)} tappe geocodificate · {len(lines)} tratte"
        else:
            message = "Nessuna tappa geocodificata. Controlla Partenza/Arrivo/Luogo con nomi più completi."

        logger.info(f"Route map: {len(markers)}/{len(stops)} stops, {len(lines)} lines")
        return {
            "mode": ROUTE,
            "markers": markers,
            "lines": lines,
            "bounds": MapService.calculate_bounds(markers),
            "message": message,
        }

    @staticmethod
    async def render_night_map(geocoder: Geocoder, records: Sequence[TripRecord]) -> Dict[str, Any]:
        """Geocode the address of every overnight stay."""
        stops = MapService.build_night_stops(records)

        markers = []
        for stop in stops:
            hit = await geocoder.resolve(stop.address)
            if hit is None or not MapService.validate_coordinates(hit.lat, hit.lng):
                continue
            markers.append({
                "label": stop.label,
                "query": stop.address,
                "lat": hit.lat,
                "lng": hit.lng,
                "display": hit.display,
                "lodging": stop.lodging,
                "date_iso": stop.date_iso,
            })

        if markers:
            message = f"{len(markers)} pernottamenti geocodificati"
        else:
            message = "Nessun pernottamento geocodificato. Verifica la colonna Indirizzo nelle righe Notte."

        logger.info(f"Night map: {len(markers)}/{len(stops)} stays")
        return {
            "mode": NIGHTS,
            "markers": markers,
            "lines": [],
            "bounds": MapService.calculate_bounds(markers),
            "message": message,
        }

    @staticmethod
    async def render(geocoder: Geocoder, records: Sequence[TripRecord], mode: str = ROUTE) -> Optional[Dict[str, Any]]:
        """Dispatch on ``mode``; None for an unknown mode."""
        if mode == ROUTE:
            return await MapService.render_route_map(geocoder, records)
        if mode == NIGHTS:
            return await MapService.render_night_map(geocoder, records)
        logger.warning(f"Unknown map mode '{mode}'")
        return None


# Export for use in other modules
__all__ = ['MapService', 'NightStop', 'MAP_MODES']
