"""
Tile retrieval.

The source registry holding one installed index per source, the retriever
answering tile requests against it and the vector tile encoder.
"""

from .source_registry import SourceRegistry
from .tile_retriever import TileAddress, TileRetriever
from .tile_encoder import GeoJSONWrapper, encode_tile

__all__ = [
    "SourceRegistry",
    "TileAddress",
    "TileRetriever",
    "GeoJSONWrapper",
    "encode_tile"
]
