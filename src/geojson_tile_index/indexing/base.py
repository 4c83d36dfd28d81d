"""
Common interface of the tile indexes.

An index is built once from GeoJSON and then only read. ``get_tile`` returns a
tile dictionary whose ``features`` use one shape for both index types::

    {"id": 7, "type": 3, "geometry": {"type": "Polygon", ...}, "tags": {...}}

``type`` is the vector tile geometry type (1 point, 2 line, 3 polygon) and
``geometry`` is a GeoJSON geometry in integer tile coordinates
(``0..extent``, y down).
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional

import structlog

from ..utils.exceptions import IndexBuildError


POINT, LINESTRING, POLYGON = 1, 2, 3

GEOMETRY_TYPE_CODES = {
    "Point": POINT,
    "MultiPoint": POINT,
    "LineString": LINESTRING,
    "MultiLineString": LINESTRING,
    "LinearRing": LINESTRING,
    "Polygon": POLYGON,
    "MultiPolygon": POLYGON,
}

GEOJSON_GEOMETRY_TYPES = (
    "Point", "MultiPoint", "LineString", "MultiLineString",
    "Polygon", "MultiPolygon", "GeometryCollection"
)

logger = structlog.get_logger(component="indexing")


class TileIndex(ABC):
    """A spatial index answering tile queries."""

    #: ``"tiled"`` or ``"cluster"``
    mode: str = ""

    @property
    @abstractmethod
    def max_zoom(self) -> int:
        """Deepest zoom level the index resolves."""

    @abstractmethod
    def get_tile(self, z: int, x: int, y: int) -> Optional[Dict[str, Any]]:
        """
        Return the tile at ``z/x/y``.

        Returns:
            ``{"z", "x", "y", "extent", "features"}`` or None when the tile is
            empty or outside the pyramid
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} mode={self.mode} max_zoom={self.max_zoom}>"


def normalize_options(
    options: Optional[Mapping[str, Any]],
    aliases: Mapping[str, Optional[str]],
    accepted: Iterable[str],
    index_type: str
) -> Dict[str, Any]:
    """
    Translate camelCase option names to keyword arguments.

    Args:
        options: Options as supplied by the caller
        aliases: camelCase name -> keyword name; None marks a recognised
            option with no effect here
        accepted: Keyword names the index constructor takes
        index_type: Index name used in log events

    Returns:
        Keyword arguments for the index constructor
    """
    accepted = set(accepted)
    kwargs: Dict[str, Any] = {}

    for key, value in (options or {}).items():
        name = aliases.get(key, key)
        if name is None:
            logger.debug("Ignoring option", index_type=index_type, option=key)
            continue
        if name not in accepted:
            logger.warning("Dropping unknown option", index_type=index_type, option=key)
            continue
        kwargs[name] = value

    return kwargs


def iter_features(geojson: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    """
    Return the features of a FeatureCollection, Feature or bare geometry.

    Raises:
        IndexBuildError: If the object is not GeoJSON
    """
    if not isinstance(geojson, Mapping):
        raise IndexBuildError("GeoJSON input must be an object")

    geojson_type = geojson.get("type")

    if geojson_type == "FeatureCollection":
        features = geojson.get("features")
        if not isinstance(features, list):
            raise IndexBuildError("FeatureCollection.features must be an array")
        return features

    if geojson_type == "Feature":
        return [geojson]

    if geojson_type in GEOJSON_GEOMETRY_TYPES:
        return [{"type": "Feature", "geometry": geojson, "properties": {}}]

    raise IndexBuildError(f"Unsupported GeoJSON type: {geojson_type!r}")
