"""Resilient remote-fetch layer for fediverse (ActivityPub) data."""

from fedifetch.errors import FediFetchError, FetchErrorClass
from fedifetch.factory import create_remote_client
from fedifetch.remote.client import RemoteDataClient


__version__ = "0.1.0"

__all__ = [
    "FediFetchError",
    "FetchErrorClass",
    "RemoteDataClient",
    "__version__",
    "create_remote_client",
]
