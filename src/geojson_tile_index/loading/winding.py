"""
Polygon winding normalisation.

Rewrites polygon rings in place so exterior rings run clockwise and holes
counter-clockwise (or the reverse with ``clockwise=False``, the RFC 7946
convention). Running it twice changes nothing.
"""

from typing import Any, List

from shapely.geometry import LinearRing


def _rewind_ring(ring: List[Any], clockwise: bool) -> None:
    # rings with fewer than three positions have no orientation
    if not isinstance(ring, list) or len(ring) < 3:
        return
    try:
        is_ccw = LinearRing([position[:2] for position in ring]).is_ccw
    except (ValueError, TypeError):
        return
    if is_ccw == clockwise:
        ring.reverse()


def _rewind_rings(rings: List[Any], clockwise: bool) -> None:
    if not isinstance(rings, list):
        return
    for i, ring in enumerate(rings):
        # exterior ring first, holes wind the other way
        _rewind_ring(ring, clockwise if i == 0 else not clockwise)


def rewind(geojson: Any, clockwise: bool = True) -> Any:
    """
    Normalise ring winding of every polygon in a GeoJSON object.

    Args:
        geojson: FeatureCollection, Feature or geometry; modified in place
        clockwise: Wind exterior rings clockwise

    Returns:
        The same object
    """
    if not isinstance(geojson, dict):
        return geojson

    geojson_type = geojson.get("type")

    if geojson_type == "FeatureCollection":
        for feature in geojson.get("features") or []:
            rewind(feature, clockwise)
    elif geojson_type == "Feature":
        rewind(geojson.get("geometry"), clockwise)
    elif geojson_type == "GeometryCollection":
        for geometry in geojson.get("geometries") or []:
            rewind(geometry, clockwise)
    elif geojson_type == "Polygon":
        _rewind_rings(geojson.get("coordinates"), clockwise)
    elif geojson_type == "MultiPolygon":
        for polygon in geojson.get("coordinates") or []:
            _rewind_rings(polygon, clockwise)

    return geojson
