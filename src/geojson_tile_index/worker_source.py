"""
GeoJSON Worker Source

Facade tying the loader, registry, retriever and encoder together: load a
source, serve encoded tiles from it, drop it.
"""

from typing import Any, Dict, Mapping, Optional, Union

import structlog

from .loading.data_loader import DataLoader, GeoJSONResolver, LoadResult
from .monitoring.metrics import MetricsCollector
from .params import SourceParams
from .retrieval.source_registry import SourceRegistry
from .retrieval.tile_encoder import GeoJSONWrapper, encode_tile
from .retrieval.tile_retriever import TileAddress, TileRetriever
from .utils.config import Config
from .utils.exceptions import InputError


class GeoJSONWorkerSource:
    """
    Serves vector tiles for GeoJSON sources loaded at runtime.

    Example:
        worker = GeoJSONWorkerSource()
        await worker.load_data({"source": "quakes", "data": geojson, "cluster": True})
        tile = worker.load_vector_data({"source": "quakes", "coord": {"z": 0, "x": 0, "y": 0}})
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        registry: Optional[SourceRegistry] = None,
        load_geojson: Optional[GeoJSONResolver] = None,
        metrics: Optional[MetricsCollector] = None,
        loader: Optional[DataLoader] = None
    ):
        self.config = config or Config()
        self.registry = registry or SourceRegistry()
        self.metrics = metrics or MetricsCollector(enabled=self.config.metrics_enabled)
        self.loader = loader or DataLoader(
            self.registry,
            config=self.config,
            metrics=self.metrics,
            load_geojson=load_geojson
        )
        self.retriever = TileRetriever(self.registry, metrics=self.metrics)
        # maxZoom given when each source was loaded, the default tile clamp
        self._source_max_zoom: Dict[str, Optional[int]] = {}
        self.logger = structlog.get_logger(component="GeoJSONWorkerSource")

    async def load_data(self, params: Union[SourceParams, Mapping[str, Any]]) -> LoadResult:
        """Fetch or parse the source's GeoJSON and install a fresh index for it."""
        params = SourceParams.from_dict(params)
        result = await self.loader.load(params)
        if result.installed:
            self._source_max_zoom[params.source] = params.max_zoom
        return result

    def get_tile(
        self,
        source: str,
        coord: Union[TileAddress, Mapping[str, Any]],
        max_zoom: Optional[int] = None
    ) -> Optional[GeoJSONWrapper]:
        """
        Look up one tile of a loaded source without encoding it.

        ``max_zoom`` defaults to the ``maxZoom`` the source was loaded with.
        When neither is given the index answers the address as requested.
        """
        try:
            address = TileAddress.coerce(coord)
        except (KeyError, TypeError, ValueError) as e:
            raise InputError(f"Invalid tile coordinate: {coord!r}") from e

        if max_zoom is None:
            max_zoom = self._source_max_zoom.get(source)

        tile = self.retriever.get_tile_data(source, address, max_zoom)
        if tile is None:
            return None

        return GeoJSONWrapper(
            tile["features"],
            name=self.config.layer_name,
            extent=tile.get("extent", 4096)
        )

    def load_vector_data(self, params: Mapping[str, Any]) -> Optional[GeoJSONWrapper]:
        """
        Encode one tile of a loaded source.

        Args:
            params: ``source``, ``coord`` ({z, x, y} or TileAddress) and
                optionally ``maxZoom``

        Returns:
            Wrapper with the encoded tile in ``raw_data``, or None when the
            source is unknown or the tile is empty
        """
        source = params.get("source")
        if not source:
            raise InputError("Missing required parameter: source")

        coord = params.get("coord")
        if coord is None:
            raise InputError("Missing required parameter: coord")

        wrapper = self.get_tile(source, coord, params.get("maxZoom", params.get("max_zoom")))
        if wrapper is None:
            return None

        encode_tile(wrapper)

        self.logger.debug(
            "Vector tile encoded",
            source=source,
            features=len(wrapper),
            size_bytes=len(wrapper.raw_data)
        )
        return wrapper

    def remove_source(self, source: str) -> bool:
        """Drop a source; returns False if it was not loaded."""
        removed = self.registry.remove(source)
        self._source_max_zoom.pop(source, None)
        self.metrics.set_gauge('registered_sources', len(self.registry))
        return removed

    def stats(self) -> Dict[str, Any]:
        """Loaded sources with their index mode and maximum zoom."""
        sources = {}
        for source in self.registry.sources():
            index = self.registry.get(source)
            if index is not None:
                sources[source] = {
                    "mode": index.mode,
                    "max_zoom": index.max_zoom,
                    "generation": self.registry.generation(source)
                }
        return {"sources": sources, "count": len(sources)}

    def close(self) -> None:
        self.loader.close()
