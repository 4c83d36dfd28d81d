"""
Web Mercator projection helpers.

Both index types work in "unit" Web Mercator space: longitude/latitude are
projected to EPSG:3857 and normalised so the world spans ``[0, 1]`` on both
axes with y pointing down. Tile ``(z, x, y)`` then covers
``[x / 2**z, (x + 1) / 2**z]`` horizontally.
"""

import math
from typing import Tuple

import numpy as np
from pyproj import Transformer
import shapely


WGS84_EPSG = 4326
WEB_MERCATOR_EPSG = 3857

# Earth circumference at equator in meters (EPSG:3857 world width)
EARTH_CIRCUMFERENCE = 2 * 20037508.342789244

# Latitude at which the Web Mercator world becomes square
MAX_LATITUDE = 85.0511287798066

_to_mercator = Transformer.from_crs(WGS84_EPSG, WEB_MERCATOR_EPSG, always_xy=True)
_from_mercator = Transformer.from_crs(WEB_MERCATOR_EPSG, WGS84_EPSG, always_xy=True)


def lonlat_to_unit(lon, lat):
    """
    Project longitude/latitude to unit Web Mercator coordinates.

    Accepts scalars or array-likes; latitudes beyond the Mercator limit are
    clamped.
    """
    scalar = np.ndim(lon) == 0
    lon_arr = np.atleast_1d(np.asarray(lon, dtype=float))
    lat_arr = np.clip(np.atleast_1d(np.asarray(lat, dtype=float)), -MAX_LATITUDE, MAX_LATITUDE)
    mx, my = _to_mercator.transform(lon_arr, lat_arr)
    ux = np.asarray(mx) / EARTH_CIRCUMFERENCE + 0.5
    uy = np.clip(0.5 - np.asarray(my) / EARTH_CIRCUMFERENCE, 0.0, 1.0)
    if scalar:
        return float(ux[0]), float(uy[0])
    return ux, uy


def unit_to_lonlat(x, y):
    """Inverse of ``lonlat_to_unit``."""
    scalar = np.ndim(x) == 0
    mx = (np.atleast_1d(np.asarray(x, dtype=float)) - 0.5) * EARTH_CIRCUMFERENCE
    my = (0.5 - np.atleast_1d(np.asarray(y, dtype=float))) * EARTH_CIRCUMFERENCE
    lon, lat = _from_mercator.transform(mx, my)
    lon = np.asarray(lon)
    lat = np.asarray(lat)
    if scalar:
        return float(lon[0]), float(lat[0])
    return lon, lat


def _project_coords(coords: np.ndarray) -> np.ndarray:
    ux, uy = lonlat_to_unit(coords[:, 0], coords[:, 1])
    return np.column_stack([ux, uy])


def project_geometry(geom):
    """Project a shapely geometry from WGS84 degrees to unit Web Mercator."""
    if geom is None or geom.is_empty:
        return geom
    return shapely.transform(geom, _project_coords)


def tile_to_bbox(z: int, x: int, y: int) -> Tuple[float, float, float, float]:
    """Convert tile coordinates to a (west, south, east, north) box in degrees."""
    n = 2.0 ** z

    lon_min = x / n * 360.0 - 180.0
    lon_max = (x + 1) / n * 360.0 - 180.0

    lat_min = math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * (y + 1) / n))))
    lat_max = math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * y / n))))

    return (lon_min, lat_min, lon_max, lat_max)


def lonlat_to_tile(lon: float, lat: float, z: int) -> Tuple[int, int]:
    """Return the (x, y) of the tile containing a point at zoom ``z``."""
    n = 2 ** z
    lat = max(-MAX_LATITUDE, min(MAX_LATITUDE, lat))

    x = int((lon + 180.0) / 360.0 * n)
    lat_rad = math.radians(lat)
    y = int((1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0 * n)

    return (min(max(x, 0), n - 1), min(max(y, 0), n - 1))
