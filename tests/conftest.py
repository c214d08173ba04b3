import time

import pytest

from triplog.api.geocoding import GeocodeCache, Geocoder, RateLimiter
from triplog.api.storage import JsonFileStore


SAMPLE_CSV = (
    "Inc,N. Days,Data,Attività,Partenza,Arrivo,Luogo,Km,Pernottamento,Stato,Costo,Note,Indirizzo,Link\n"
    "1,1,5/3/2024,Notte,,,Milano,,Hotel Duomo,Prenotato,\"120,50\",,Via Roma 1 Milano,https://example.com/h1\n"
    "2,1,5/3/2024,Trip,Torino,Milano,,140 km,,,30,autostrada,,\n"
    "3,2,6/3/2024,Trip,Milano,Roma,,575,,,\"45,5\",\"sosta, pranzo\",,?\n"
    "4,2,6/3/2024,Notte,,Roma,,,B&B Centro,da prenotare,90,,Via Nazionale 10 Roma,\n"
    "5,2,7/3/2024,Notte,,,Roma,,B&B Centro,Pagato,90,,Via Nazionale 10 Roma,\n"
    "6,,2024-03-08,Trip,Roma,Napoli,,230,,,,,,\n"
    "\n"
)


class FakeFetcher:
    """Stands in for the HTTP call; records when and what was asked."""

    def __init__(self, responses=None, error=None):
        self.responses = responses or {}
        self.error = error
        self.calls = []
        self.call_times = []

    async def __call__(self, query):
        self.calls.append(query)
        self.call_times.append(time.monotonic())
        if self.error is not None:
            raise self.error
        return self.responses.get(query, [])


def nominatim_hit(lat, lon, name):
    return [{"lat": str(lat), "lon": str(lon), "display_name": name}]


@pytest.fixture
def sample_csv():
    return SAMPLE_CSV


@pytest.fixture
def store(tmp_path):
    return JsonFileStore(tmp_path / "cache")


@pytest.fixture
def fetcher():
    return FakeFetcher({
        "Milano": nominatim_hit(45.4642, 9.19, "Milano, Lombardia, Italia"),
        "Roma": nominatim_hit(41.8933, 12.4829, "Roma, Lazio, Italia"),
        "Torino": nominatim_hit(45.0703, 7.6869, "Torino, Piemonte, Italia"),
        "Via Roma 1 Milano": nominatim_hit(45.46, 9.18, "Via Roma, Milano"),
        "Via Nazionale 10 Roma": nominatim_hit(41.90, 12.49, "Via Nazionale, Roma"),
    })


@pytest.fixture
def geocoder(store, fetcher):
    # No spacing, so tests that don't look at the rate limit stay fast
    return Geocoder(GeocodeCache(store, "geocode_cache_v2"), RateLimiter(0), fetcher)
