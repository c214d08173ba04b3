# triplog/routes/__init__.py
from .trips import create_trips_blueprint

__all__ = ["create_trips_blueprint"]
