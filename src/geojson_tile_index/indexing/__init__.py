"""
Tile indexing.

Two interchangeable index types answer ``get_tile(z, x, y)``:

- TiledIndex slices arbitrary geometries into vector tiles
- ClusterIndex aggregates points into a hierarchical cluster tree

IndexBuilder picks one according to the source parameters.
"""

from .base import TileIndex
from .tiled_index import TiledIndex
from .cluster_index import ClusterIndex
from .index_builder import IndexBuilder, get_supercluster_options

__all__ = [
    "TileIndex",
    "TiledIndex",
    "ClusterIndex",
    "IndexBuilder",
    "get_supercluster_options"
]
