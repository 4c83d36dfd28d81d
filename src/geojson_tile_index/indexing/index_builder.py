"""
Index Builder

Chooses and constructs the index of a source: a ClusterIndex when clustering
is requested, a TiledIndex otherwise. Custom cluster aggregates are taken out
of the clustering options and turned into a ClusterPropertyAccumulator before
the options are handed to the cluster index.
"""

import time
from typing import Any, Dict, Mapping, Optional, Tuple

import structlog

from .base import TileIndex, iter_features
from .cluster_index import ClusterIndex
from .tiled_index import TiledIndex
from ..aggregation.accumulator import ClusterPropertyAccumulator
from ..params import SourceParams
from ..utils.exceptions import ConfigError, IndexBuildError


def get_supercluster_options(
    params: SourceParams
) -> Tuple[Dict[str, Any], Optional[ClusterPropertyAccumulator]]:
    """
    Split clustering options into index options and an accumulator.

    Args:
        params: Source parameters; never modified

    Returns:
        Options without ``aggregates`` and the accumulator bound to them, or
        None when no aggregates were requested

    Raises:
        ConfigError: If the aggregate definition is invalid
    """
    options = dict(params.supercluster_options or {})
    aggregates = options.pop("aggregates", None)

    accumulator = None
    if aggregates:
        accumulator = ClusterPropertyAccumulator(aggregates)

    return options, accumulator


class IndexBuilder:
    """Builds the tile index for a source's GeoJSON."""

    def __init__(self):
        self.logger = structlog.get_logger(component="IndexBuilder")

    def build(self, geojson: Mapping[str, Any], params: SourceParams) -> TileIndex:
        """
        Build a cluster or tiled index.

        Args:
            geojson: Parsed, rewound GeoJSON
            params: Source parameters selecting the mode and its options

        Returns:
            Fully built index

        Raises:
            ConfigError: If options or aggregates are invalid
            IndexBuildError: If the tiling or clustering step fails
        """
        start_time = time.time()
        mode = "cluster" if params.cluster else "tiled"

        try:
            if params.cluster:
                options, accumulator = get_supercluster_options(params)
                index = ClusterIndex.from_options(options, accumulator).load(iter_features(geojson))
            else:
                index = TiledIndex.from_geojson(geojson, params.geojson_vt_options)

        except (ConfigError, IndexBuildError) as e:
            self.logger.error("Index build failed", source=params.source, mode=mode, error=str(e))
            raise
        except Exception as e:
            self.logger.error("Index build failed", source=params.source, mode=mode, error=str(e))
            raise IndexBuildError(f"Failed to build {mode} index: {e}", e) from e

        self.logger.info(
            "Index built",
            source=params.source,
            mode=mode,
            max_zoom=index.max_zoom,
            duration_seconds=time.time() - start_time
        )
        return index
