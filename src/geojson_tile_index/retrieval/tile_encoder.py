"""
Tile encoding.

Wraps the tile-local features of one tile as a single named layer and
encodes it as a Mapbox Vector Tile with mapbox_vector_tile.
"""

import json
import math
import numbers
from typing import Any, Dict, Iterator, List, Optional

import mapbox_vector_tile
from mapbox_vector_tile.encoder import on_invalid_geometry_make_valid
from shapely.geometry import shape


DEFAULT_LAYER_NAME = "_geojsonTileLayer"
DEFAULT_EXTENT = 4096
MVT_VERSION = 2


def to_mvt_value(value: Any) -> Any:
    """Convert a property value to a type vector tiles can store, None to drop it."""
    if value is None:
        return None
    if isinstance(value, (bool, str)):
        return value
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real):
        return float(value)
    return json.dumps(value, default=str, sort_keys=True)


def to_geojson_value(value: Any) -> Any:
    """JSON has no infinity or NaN; such floats become None."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


class GeoJSONWrapper:
    """
    One tile's features presented as a vector tile layer.

    ``raw_data`` holds the encoded tile once ``encode_tile`` has run.
    """

    def __init__(
        self,
        features: List[Dict[str, Any]],
        name: str = DEFAULT_LAYER_NAME,
        extent: int = DEFAULT_EXTENT
    ):
        self.features = features
        self.name = name
        self.extent = extent
        self.version = MVT_VERSION
        self.raw_data: Optional[bytes] = None

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return iter(self.features)

    def __getitem__(self, i: int) -> Dict[str, Any]:
        return self.features[i]

    def to_layer(self) -> Dict[str, Any]:
        """Layer dictionary in the form mapbox_vector_tile.encode expects."""
        layer_features = []
        for feature in self.features:
            properties = {}
            for key, value in (feature.get("tags") or {}).items():
                mvt_value = to_mvt_value(value)
                if mvt_value is not None:
                    properties[str(key)] = mvt_value

            layer_feature = {
                "geometry": shape(feature["geometry"]),
                "properties": properties
            }

            feature_id = feature.get("id")
            if isinstance(feature_id, numbers.Integral) and not isinstance(feature_id, bool) and feature_id >= 0:
                layer_feature["id"] = int(feature_id)

            layer_features.append(layer_feature)

        return {"name": self.name, "features": layer_features}

    def to_geojson(self) -> Dict[str, Any]:
        """Features as a GeoJSON FeatureCollection in tile coordinates."""
        features = []
        for feature in self.features:
            geojson_feature = {
                "type": "Feature",
                "geometry": feature["geometry"],
                "properties": {
                    key: to_geojson_value(value)
                    for key, value in (feature.get("tags") or {}).items()
                }
            }
            if feature.get("id") is not None:
                geojson_feature["id"] = feature["id"]
            features.append(geojson_feature)
        return {"type": "FeatureCollection", "features": features}


def encode_tile(wrapper: GeoJSONWrapper) -> bytes:
    """
    Encode a wrapper as a one-layer vector tile and keep the bytes on it.

    Args:
        wrapper: Tile features in tile coordinates (y down)

    Returns:
        Protobuf encoded tile
    """
    raw = mapbox_vector_tile.encode(
        [wrapper.to_layer()],
        default_options={
            "extents": wrapper.extent,
            "y_coord_down": True,
            "on_invalid_geometry": on_invalid_geometry_make_valid,
        }
    )
    wrapper.raw_data = bytes(raw)
    return wrapper.raw_data
