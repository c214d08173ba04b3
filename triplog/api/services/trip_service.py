# triplog/api/services/trip_service.py
"""Service layer owning the loaded trip log and its geocoder."""

import logging
import threading
import time
from typing import List, Optional

import requests
from tenacity import RetryError, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from triplog.api.config import get_csv_source_config
from triplog.api.errors import LoadError
from triplog.api.filters import apply_filters
from triplog.api.geocoding import Geocoder, create_geocoder
from triplog.api.models import FilterCriteria, TripRecord
from triplog.api.normalizer import load_records_from_text

logger = logging.getLogger(__name__)


def fetch_export(url: str, timeout: float = 15, retries: int = 3,
                 session: Optional[requests.Session] = None) -> str:
    """Download the published export text.

    Raises:
        LoadError: If the URL is missing or the download keeps failing
    """
    if not url:
        raise LoadError("Nessuna sorgente CSV configurata.")

    http = session or requests.Session()

    @retry(
        stop=stop_after_attempt(max(1, retries)),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(requests.RequestException),
    )
    def _get() -> requests.Response:
        # "t" defeats intermediate caches of the published sheet
        response = http.get(url, params={"t": int(time.time() * 1000)}, timeout=timeout)
        response.raise_for_status()
        return response

    try:
        response = _get()
    except RetryError as e:
        logger.error(f"Failed to fetch CSV export: {e.last_attempt.exception()}")
        raise LoadError("Impossibile caricare il CSV pubblicato.") from e

    # Published sheets are UTF-8 but often served as text/csv without a charset
    return response.content.decode("utf-8-sig", errors="replace")


class TripSession:
    """Current record set, load status and geocoder for one application.

    A failed load leaves the previously loaded records in place.
    """

    def __init__(self, geocoder: Optional[Geocoder] = None, source_url: Optional[str] = None):
        cfg = get_csv_source_config()
        self.source_url = cfg["url"] if source_url is None else source_url
        self.timeout = cfg["timeout"]
        self.retries = cfg["retries"]
        self.geocoder = geocoder or create_geocoder()
        self.records: List[TripRecord] = []
        self.status: str = ""
        self.last_error: Optional[str] = None
        self._lock = threading.Lock()

    def load_text(self, text: str) -> List[TripRecord]:
        """Replace the record set with the contents of ``text``.

        Raises:
            LoadError: If the text can't produce a record set
        """
        try:
            records = load_records_from_text(text)
        except LoadError as e:
            self._fail(e)
            raise

        with self._lock:
            self.records = records
            self.status = f"Fonte: Google Sheets (righe: {len(records)})"
            self.last_error = None
        logger.info(f"Loaded {len(records)} trip records")
        return records

    def reload(self, session: Optional[requests.Session] = None) -> List[TripRecord]:
        """Fetch the configured export and load it.

        Raises:
            LoadError: If fetching or parsing fails
        """
        self.status = "Carico dati…"
        try:
            text = fetch_export(self.source_url, self.timeout, self.retries, session=session)
        except LoadError as e:
            self._fail(e)
            raise
        return self.load_text(text)

    def _fail(self, error: LoadError) -> None:
        logger.warning(f"Load failed, keeping {len(self.records)} previous records: {error}")
        self.status = f"Errore: {error}"
        self.last_error = str(error)

    def filtered(self, criteria: Optional[FilterCriteria] = None) -> List[TripRecord]:
        return apply_filters(self.records, criteria or FilterCriteria())


__all__ = ["TripSession", "fetch_export"]
