# api/config.py
"""Configuration management for the trip log service."""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def get_csv_source_config():
    """Get configuration for fetching the published tabular export."""
    return {
        "url": os.getenv("TRIPLOG_CSV_URL", ""),
        "timeout": float(os.getenv("TRIPLOG_FETCH_TIMEOUT", "15")),
        "retries": int(os.getenv("TRIPLOG_FETCH_RETRIES", "3")),
    }


def get_geocode_config():
    """Get geocoding service configuration."""
    return {
        "endpoint": os.getenv("GEOCODE_ENDPOINT", "https://nominatim.openstreetmap.org/search"),
        "min_interval_ms": int(os.getenv("GEOCODE_MIN_INTERVAL_MS", "1100")),
        "timeout": float(os.getenv("GEOCODE_TIMEOUT", "10")),
        "user_agent": os.getenv("GEOCODE_USER_AGENT", "triplog/0.1"),
    }


def get_storage_config():
    """Get durable cache storage configuration."""
    default_dir = Path.home() / ".triplog"
    return {
        "cache_dir": Path(os.getenv("TRIPLOG_CACHE_DIR", str(default_dir))),
        "cache_key": os.getenv("GEOCODE_CACHE_KEY", "geocode_cache_v2"),
    }


def get_port():
    """Get port configuration."""
    return int(os.getenv("PORT", 5000))
