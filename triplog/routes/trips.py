# triplog/routes/trips.py
"""Trip log routes and blueprint configuration."""

import asyncio
import logging

from flask import Blueprint, jsonify, request

from triplog.api.errors import LoadError
from triplog.api.filters import bookings_by_city, city_rollup, daily_breakdown, filter_options, summarize
from triplog.api.models import FilterCriteria
from triplog.api.services.map_service import MAP_MODES, MapService
from triplog.api.services.trip_service import TripSession

logger = logging.getLogger(__name__)


def create_trips_blueprint(trip_session: TripSession):
    """Create and configure the trips blueprint.

    Args:
        trip_session: Session owning the records and the geocoder

    Returns:
        Configured Flask Blueprint
    """
    trips_bp = Blueprint("trips", __name__, url_prefix="/trips")

    def _filtered():
        return trip_session.filtered(FilterCriteria.from_mapping(request.args))

    @trips_bp.route("/health")
    def health():
        """Health check endpoint."""
        return jsonify({"status": "ok", "service": "trips"})

    @trips_bp.route("/api/reload", methods=["POST"])
    def api_reload():
        """Re-fetch the published export."""
        try:
            records = trip_session.reload()
        except LoadError as e:
            return jsonify({"error": str(e), "status": trip_session.status}), 502
        return jsonify({"status": trip_session.status, "rows": len(records)})

    @trips_bp.route("/api/records")
    def api_records():
        records = _filtered()
        return jsonify({
            "status": trip_session.status,
            "count": len(records),
            "records": [r.to_dict() for r in records],
        })

    @trips_bp.route("/api/summary")
    def api_summary():
        records = _filtered()
        return jsonify({
            "summary": summarize(records).to_dict(),
            "cities": [c.to_dict() for c in city_rollup(records)],
        })

    @trips_bp.route("/api/filters")
    def api_filters():
        return jsonify(filter_options(trip_session.records))

    @trips_bp.route("/api/timeline")
    def api_timeline():
        return jsonify([day.to_dict() for day in daily_breakdown(_filtered())])

    @trips_bp.route("/api/bookings")
    def api_bookings():
        return jsonify([
            {"city": city, "nights": len(items), "records": [r.to_dict() for r in items]}
            for city, items in bookings_by_city(_filtered())
        ])

    @trips_bp.route("/api/map")
    def api_map():
        """Geocode the stops of the filtered records for the map view."""
        mode = request.args.get("mode", "route")
        if mode not in MAP_MODES:
            return jsonify({"error": f"Unknown map mode: {mode}"}), 400
        result = asyncio.run(MapService.render(trip_session.geocoder, _filtered(), mode))
        return jsonify(result)

    @trips_bp.route("/api/geocode")
    def api_geocode():
        query = request.args.get("q", "")
        hit = asyncio.run(trip_session.geocoder.resolve(query))
        return jsonify({"query": query.strip(), "result": hit.to_dict() if hit else None})

    @trips_bp.route("/api/geocode/cache", methods=["DELETE"])
    def api_clear_geocode_cache():
        result = trip_session.geocoder.clear_cache()
        if not result.ok:
            logger.warning(f"Geocode cache clear failed: {result.error}")
        return jsonify({"cleared": result.ok, "message": "Cache mappa svuotata."})

    return trips_bp


__all__ = ['create_trips_blueprint']
