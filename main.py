"""
Trip log – main application entry point

* Flask app serving the normalized trip log, its summaries and the geocoded
  map data as JSON under `/trips`.
* One `TripSession` per process owns the records, the load status and the
  rate-limited geocoder shared by every request.
"""

import os
import logging

from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv

from triplog.api.config import get_port
from triplog.api.errors import LoadError
from triplog.api.services.trip_service import TripSession
from triplog.routes import create_trips_blueprint

# --------------------------------------------------------------------------- #
# Environment & logging
# --------------------------------------------------------------------------- #
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(trip_session=None, load_on_start=True):
    """Build the Flask application.

    Args:
        trip_session: Session to serve; a configured one is created when None
        load_on_start: Fetch the configured export before serving

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)

    flask_secret_key = os.getenv("FLASK_SECRET_KEY") or os.urandom(32).hex()
    if "FLASK_SECRET_KEY" not in os.environ:
        logger.warning("No FLASK_SECRET_KEY found. Generated a temporary key.")
    app.secret_key = flask_secret_key

    # CORS for local dev / cross‑origin front‑end requests
    CORS(app, origins="*")

    if trip_session is None:
        trip_session = TripSession()

    if load_on_start and trip_session.source_url:
        try:
            trip_session.reload()
        except LoadError as e:
            logger.error(f"Initial load failed: {e}")

    app.extensions["triplog"] = trip_session
    app.register_blueprint(create_trips_blueprint(trip_session))

    @app.route("/debug")
    def debug():
        """Simple JSON health endpoint."""
        return {
            "status": "ok",
            "rows": len(trip_session.records),
            "source": trip_session.status,
            "geocode_cache_entries": len(trip_session.geocoder.cache),
            "geocode_outbound_calls": trip_session.geocoder.outbound_calls,
        }

    return app


# --------------------------------------------------------------------------- #
# Local development runner ( `python main.py` )
# --------------------------------------------------------------------------- #
if __name__ == "__main__":
    port = get_port()
    logger.info("Starting trip log on http://localhost:%d", port)
    create_app().run(host="0.0.0.0", port=port, debug=False)
