"""
Tile Retriever

Answers tile requests against the installed index of a source. A missing
source and an empty tile are both ordinary outcomes and yield None.
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import structlog

from .source_registry import SourceRegistry
from ..indexing.projection import tile_to_bbox
from ..monitoring.metrics import MetricsCollector


@dataclass(frozen=True)
class TileAddress:
    """Address of one tile in the quad-tree pyramid."""
    z: int
    x: int
    y: int

    @property
    def tile_id(self) -> str:
        return f"{self.z}/{self.x}/{self.y}"

    @property
    def bbox(self) -> Tuple[float, float, float, float]:
        """(west, south, east, north) in degrees."""
        return tile_to_bbox(self.z, self.x, self.y)

    def clamp_zoom(self, max_zoom: int) -> "TileAddress":
        """The same x/y at ``min(z, max_zoom)``."""
        return TileAddress(min(self.z, max_zoom), self.x, self.y)

    @classmethod
    def coerce(cls, value: Union["TileAddress", Mapping[str, Any], Tuple[int, int, int]]) -> "TileAddress":
        """Accept a TileAddress, a ``{"z", "x", "y"}`` mapping or a (z, x, y) tuple."""
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            return cls(int(value["z"]), int(value["x"]), int(value["y"]))
        z, x, y = value
        return cls(int(z), int(x), int(y))


class TileRetriever:
    """Looks up tile features of registered sources."""

    def __init__(self, registry: SourceRegistry, metrics: Optional[MetricsCollector] = None):
        self.registry = registry
        self.metrics = metrics or MetricsCollector(enabled=False)
        self.logger = structlog.get_logger(component="TileRetriever")

    def get_tile(
        self,
        source: str,
        address: TileAddress,
        max_zoom: Optional[int] = None
    ) -> Optional[List[Dict[str, Any]]]:
        """
        Return the tile-local features of a source at an address.

        Args:
            source: Source id
            address: Requested tile
            max_zoom: Zoom the request is clamped to; without one the address
                goes to the index unchanged

        Returns:
            Tile features ready for encoding, or None when the source is not
            loaded or the tile is empty
        """
        tile = self.get_tile_data(source, address, max_zoom)
        return tile["features"] if tile is not None else None

    def get_tile_data(
        self,
        source: str,
        address: TileAddress,
        max_zoom: Optional[int] = None
    ) -> Optional[Dict[str, Any]]:
        """Like ``get_tile`` but returns the whole tile, including its extent."""
        start_time = time.perf_counter()

        index = self.registry.get(source)
        if index is None:
            self.logger.debug("Tile requested for unknown source", source=source, tile_id=address.tile_id)
            self.metrics.increment_counter('tile_requests_total', labels={'status': 'unknown_source'})
            return None

        clamped = address if max_zoom is None else address.clamp_zoom(max_zoom)
        tile = index.get_tile(clamped.z, clamped.x, clamped.y)

        self.metrics.record_histogram('tile_retrieval_duration_seconds', time.perf_counter() - start_time)

        if not tile or not tile.get("features"):
            self.metrics.increment_counter('tile_requests_total', labels={'status': 'empty'})
            return None

        self.metrics.increment_counter('tile_requests_total', labels={'status': 'hit'})
        self.logger.debug(
            "Tile retrieved",
            source=source,
            tile_id=address.tile_id,
            clamped_tile_id=clamped.tile_id,
            feature_count=len(tile["features"])
        )
        return tile
