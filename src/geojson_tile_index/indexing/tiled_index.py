"""
Tiled Index

Slices full resolution GeoJSON geometries into vector tiles on request.
Features are projected once to unit Web Mercator and kept in a GeoDataFrame
whose spatial index selects the candidates of a tile; each candidate is then
clipped to the buffered tile, simplified for the zoom level and converted to
integer tile coordinates.

Options follow the geojson-vt names (``maxZoom``, ``tolerance``, ``extent``,
``buffer``, ``promoteId``, ``generateId``).
"""

import time
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np
import geopandas as gpd
import pandas as pd
import shapely
from shapely.geometry import box, mapping, shape
from shapely.geometry.base import BaseGeometry
import structlog

from .base import (
    TileIndex,
    GEOMETRY_TYPE_CODES,
    POINT,
    LINESTRING,
    POLYGON,
    iter_features,
    normalize_options,
)
from .projection import project_geometry
from ..utils.exceptions import ConfigError, IndexBuildError


# Deepest zoom at which x/y still fit the tile scheme
MAX_TILE_ZOOM = 24

OPTION_ALIASES: Dict[str, Optional[str]] = {
    "maxZoom": "max_zoom",
    "promoteId": "promote_id",
    "generateId": "generate_id",
    # geojson-vt pre-slicing and debugging knobs, no effect on on-demand slicing
    "indexMaxZoom": None,
    "indexMaxPoints": None,
    "lineMetrics": None,
    "debug": None,
}


class TiledIndex(TileIndex):
    """
    On-demand tile pyramid over arbitrary GeoJSON geometries.

    The index is immutable once built; ``get_tile`` has no side effects and
    may be called from several threads.
    """

    mode = "tiled"

    def __init__(
        self,
        features: gpd.GeoDataFrame,
        max_zoom: int = 14,
        tolerance: float = 3.0,
        extent: int = 4096,
        buffer: int = 64
    ):
        """
        Args:
            features: GeoDataFrame in unit Web Mercator with ``feature_id``
                and ``properties`` columns
            max_zoom: Zoom at which geometries are no longer simplified
            tolerance: Simplification tolerance in tile pixels
            extent: Tile extent in tile coordinates
            buffer: Buffer around each tile in tile coordinates
        """
        if not 0 <= int(max_zoom) <= MAX_TILE_ZOOM:
            raise ConfigError(f"maxZoom should be in the 0-{MAX_TILE_ZOOM} range")
        if extent <= 0:
            raise ConfigError("extent must be positive")

        self._features = features
        self._max_zoom = int(max_zoom)
        self.tolerance = float(tolerance)
        self.extent = int(extent)
        self.buffer = int(buffer)

        # Build the spatial index eagerly so readers never trigger it
        self._features.sindex

        self.logger = structlog.get_logger(index_type="TiledIndex")

    @property
    def max_zoom(self) -> int:
        return self._max_zoom

    @property
    def feature_count(self) -> int:
        return len(self._features)

    @classmethod
    def from_geojson(
        cls,
        geojson: Mapping[str, Any],
        options: Optional[Mapping[str, Any]] = None
    ) -> "TiledIndex":
        """
        Build an index from a GeoJSON object.

        Args:
            geojson: FeatureCollection, Feature or geometry in WGS84
            options: geojson-vt style options

        Returns:
            Ready to query index

        Raises:
            IndexBuildError: If a geometry cannot be parsed
        """
        start_time = time.time()
        kwargs = normalize_options(
            options,
            OPTION_ALIASES,
            ("max_zoom", "tolerance", "extent", "buffer", "promote_id", "generate_id"),
            "TiledIndex"
        )
        promote_id = kwargs.pop("promote_id", None)
        generate_id = bool(kwargs.pop("generate_id", False))

        ids: List[Any] = []
        properties: List[Dict[str, Any]] = []
        geometries: List[BaseGeometry] = []

        for position, feature in enumerate(iter_features(geojson)):
            if not isinstance(feature, Mapping):
                raise IndexBuildError(f"Feature {position} is not an object")

            geometry = feature.get("geometry")
            if not geometry:
                continue

            try:
                geom = shape(geometry)
            except Exception as e:
                raise IndexBuildError(f"Invalid geometry in feature {position}: {e}", e) from e

            if geom.is_empty:
                continue

            props = dict(feature.get("properties") or {})
            if promote_id:
                feature_id = props.get(promote_id)
            elif generate_id:
                feature_id = position
            else:
                feature_id = feature.get("id")

            # Collections are indexed part by part so every row has one type
            parts = list(geom.geoms) if geom.geom_type == "GeometryCollection" else [geom]
            for part in parts:
                if part.is_empty:
                    continue
                ids.append(feature_id)
                properties.append(props)
                geometries.append(project_geometry(part))

        gdf = gpd.GeoDataFrame(
            {
                "feature_id": pd.Series(ids, dtype=object),
                "properties": pd.Series(properties, dtype=object)
            },
            geometry=gpd.GeoSeries(geometries)
        )

        index = cls(gdf, **kwargs)
        index.logger.info(
            "Tiled index built",
            feature_count=len(gdf),
            max_zoom=index.max_zoom,
            build_time=time.time() - start_time
        )
        return index

    def get_tile(self, z: int, x: int, y: int) -> Optional[Dict[str, Any]]:
        z, x, y = int(z), int(x), int(y)
        if z < 0 or z > MAX_TILE_ZOOM:
            return None

        z2 = 1 << z
        if not (0 <= x < z2 and 0 <= y < z2) or self._features.empty:
            return None

        bounds = self._buffered_bounds(z2, x, y)
        candidates = self._features.sindex.query(box(*bounds))
        if len(candidates) == 0:
            return None

        tolerance = 0.0 if z >= self._max_zoom else self.tolerance / (z2 * self.extent)
        offset = np.array([self.extent * x, self.extent * y], dtype=float)
        scale = float(self.extent * z2)

        def to_tile_coords(coords):
            return np.rint(coords * scale - offset)

        features = []
        for position in np.sort(candidates):
            row = self._features.iloc[position]
            type_code = GEOMETRY_TYPE_CODES.get(row.geometry.geom_type)
            if type_code is None:
                continue

            clipped = self._clip(row.geometry, bounds, type_code)
            if clipped is None:
                continue

            if tolerance and type_code != POINT:
                clipped = clipped.simplify(tolerance)

            tile_geom = shapely.transform(clipped, to_tile_coords)
            if self._is_degenerate(tile_geom, type_code):
                continue

            feature = {
                "type": type_code,
                "geometry": mapping(tile_geom),
                "tags": dict(row["properties"])
            }
            if row["feature_id"] is not None:
                feature["id"] = row["feature_id"]
            features.append(feature)

        if not features:
            return None

        return {"z": z, "x": x, "y": y, "extent": self.extent, "features": features}

    def _buffered_bounds(self, z2: int, x: int, y: int) -> Tuple[float, float, float, float]:
        k = self.buffer / self.extent
        return ((x - k) / z2, (y - k) / z2, (x + 1 + k) / z2, (y + 1 + k) / z2)

    @staticmethod
    def _clip(
        geom: BaseGeometry,
        bounds: Tuple[float, float, float, float],
        type_code: int
    ) -> Optional[BaseGeometry]:
        """Clip a geometry to the tile bounds keeping only parts of its own dimension."""
        if type_code == POINT:
            # points on the tile edge belong to the tile
            clipped = geom.intersection(box(*bounds))
        else:
            clipped = shapely.clip_by_rect(geom, *bounds)

        if clipped.is_empty:
            return None

        if clipped.geom_type == "GeometryCollection":
            parts = [
                part for part in clipped.geoms
                if GEOMETRY_TYPE_CODES.get(part.geom_type) == type_code and not part.is_empty
            ]
            if not parts:
                return None
            if type_code == POLYGON:
                clipped = shapely.MultiPolygon([p for g in parts for p in getattr(g, "geoms", [g])])
            elif type_code == LINESTRING:
                clipped = shapely.MultiLineString([p for g in parts for p in getattr(g, "geoms", [g])])
            else:
                clipped = shapely.MultiPoint([p for g in parts for p in getattr(g, "geoms", [g])])

        if GEOMETRY_TYPE_CODES.get(clipped.geom_type) != type_code:
            return None

        return clipped

    @staticmethod
    def _is_degenerate(geom: BaseGeometry, type_code: int) -> bool:
        if geom.is_empty:
            return True
        if type_code == POLYGON:
            return geom.area == 0
        if type_code == LINESTRING:
            return geom.length == 0
        return False
