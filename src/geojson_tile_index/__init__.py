"""
GeoJSON Tile Index

Loads arbitrary GeoJSON and serves it as vector tiles at any z/x/y, either
by slicing and simplifying the geometries into a tile pyramid or by
clustering points with user-defined property aggregation.
"""

__version__ = "1.0.0"

from . import aggregation
from . import indexing
from . import loading
from . import monitoring
from . import retrieval
from . import utils
from .params import SourceParams
from .worker_source import GeoJSONWorkerSource

__all__ = [
    "aggregation",
    "indexing",
    "loading",
    "monitoring",
    "retrieval",
    "utils",
    "SourceParams",
    "GeoJSONWorkerSource"
]
