"""
Source loading: fetching or parsing GeoJSON, normalising polygon winding and
building the source's index.
"""

from .data_loader import DataLoader, LoadResult, INVALID_GEOJSON_MESSAGE
from .fetch import fetch_json
from .winding import rewind

__all__ = [
    "DataLoader",
    "LoadResult",
    "INVALID_GEOJSON_MESSAGE",
    "fetch_json",
    "rewind"
]
