"""
Cluster Index

Hierarchical point clustering in the manner of supercluster. Points are
projected to unit Web Mercator; then, from ``max_zoom`` down to ``min_zoom``,
every node not yet processed at that zoom absorbs its unprocessed neighbours
within ``radius / (extent * 2**zoom)``. A cluster is placed at the weighted
centre of its members and, when an accumulator is configured, its properties
are folded one member at a time.

Each zoom level keeps its nodes in a shapely STRtree so tile, bounding box
and neighbourhood queries stay logarithmic.
"""

import math
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np
import shapely
from shapely.geometry import box
from shapely.strtree import STRtree
import structlog

from .base import TileIndex, POINT, normalize_options
from .projection import lonlat_to_unit, unit_to_lonlat
from ..aggregation.accumulator import ClusterNode, ClusterPropertyAccumulator
from ..utils.exceptions import ClusterNotFoundError, ConfigError, IndexBuildError


# Cluster ids store the origin zoom in five bits
MAX_CLUSTER_ZOOM = 30

OPTION_ALIASES: Dict[str, Optional[str]] = {
    "minZoom": "min_zoom",
    "maxZoom": "max_zoom",
    "minPoints": "min_points",
    "generateId": "generate_id",
    # supercluster tuning and callback options with no counterpart here
    "nodeSize": None,
    "log": None,
    "map": None,
    "reduce": None,
    "initial": None,
}

Accumulator = Callable[[ClusterNode, ClusterNode], Dict[str, Any]]


class _Node:
    """A point or cluster at one zoom level of the tree."""

    __slots__ = ("x", "y", "zoom", "index", "cluster_id", "parent_id", "num_points", "properties")

    def __init__(self, x, y, index, num_points=1, properties=None, cluster_id=None):
        self.x = x
        self.y = y
        self.zoom = math.inf  # last zoom this node was processed at
        self.index = index  # position of the source point, -1 for clusters
        self.cluster_id = cluster_id
        self.parent_id = -1
        self.num_points = num_points
        self.properties = properties

    @property
    def is_cluster(self) -> bool:
        return self.num_points > 1


class _Level:
    """Spatial index over the nodes of one zoom level."""

    def __init__(self, nodes: List[_Node]):
        self.nodes = nodes
        self.coords = np.array([(n.x, n.y) for n in nodes], dtype=float).reshape(-1, 2)
        self.tree = STRtree(shapely.points(self.coords)) if nodes else None

    def range(self, min_x: float, min_y: float, max_x: float, max_y: float) -> List[int]:
        if self.tree is None:
            return []
        return sorted(self.tree.query(box(min_x, min_y, max_x, max_y)).tolist())

    def within(self, x: float, y: float, r: float) -> List[int]:
        if self.tree is None:
            return []
        ids = self.tree.query(box(x - r, y - r, x + r, y + r))
        if len(ids) == 0:
            return []
        deltas = self.coords[ids] - (x, y)
        mask = (deltas ** 2).sum(axis=1) <= r * r
        return sorted(ids[mask].tolist())


def _round(value: float) -> int:
    # half-up rounding to match tile coordinates produced by other clients
    return int(math.floor(value + 0.5))


def abbreviate_count(count: int) -> Union[int, str]:
    if count >= 10000:
        return f"{_round(count / 1000)}k"
    if count >= 1000:
        return f"{_round(count / 100) / 10:g}k"
    return count


class ClusterIndex(TileIndex):
    """
    Point cluster tree answering tile and cluster-navigation queries.

    Build with ``ClusterIndex(...).load(features)``; the index must not be
    modified afterwards.
    """

    mode = "cluster"

    def __init__(
        self,
        min_zoom: int = 0,
        max_zoom: int = 16,
        min_points: int = 2,
        radius: float = 40,
        extent: int = 512,
        generate_id: bool = False,
        accumulator: Optional[Accumulator] = None
    ):
        """
        Args:
            min_zoom: Lowest zoom at which clusters are generated
            max_zoom: Highest zoom at which clusters are generated
            min_points: Minimum number of points forming a cluster
            radius: Cluster radius in pixels of a tile of ``extent`` pixels
            extent: Tile extent the radius is relative to
            generate_id: Use the input position as id of raw point features
            accumulator: Callable merging two nodes' properties
        """
        if not 0 <= min_zoom <= max_zoom <= MAX_CLUSTER_ZOOM:
            raise ConfigError(f"Expected 0 <= minZoom <= maxZoom <= {MAX_CLUSTER_ZOOM}")
        if min_points < 1:
            raise ConfigError("minPoints must be at least 1")
        if radius < 0 or extent <= 0:
            raise ConfigError("radius must be non-negative and extent positive")

        self.min_zoom = int(min_zoom)
        self._max_zoom = int(max_zoom)
        self.min_points = int(min_points)
        self.radius = float(radius)
        self.extent = int(extent)
        self.generate_id = bool(generate_id)
        self.accumulator = accumulator

        self._points: List[Mapping[str, Any]] = []
        self._levels: Dict[int, _Level] = {}

        self.logger = structlog.get_logger(index_type="ClusterIndex")

    @classmethod
    def from_options(
        cls,
        options: Optional[Mapping[str, Any]] = None,
        accumulator: Optional[Accumulator] = None
    ) -> "ClusterIndex":
        """Create an index from supercluster style options."""
        kwargs = normalize_options(
            options,
            OPTION_ALIASES,
            ("min_zoom", "max_zoom", "min_points", "radius", "extent", "generate_id"),
            "ClusterIndex"
        )
        return cls(accumulator=accumulator, **kwargs)

    @property
    def max_zoom(self) -> int:
        return self._max_zoom

    @property
    def point_count(self) -> int:
        return len(self._points)

    # -------- construction --------

    def load(self, features: Sequence[Mapping[str, Any]]) -> "ClusterIndex":
        """
        Build the cluster tree from GeoJSON point features.

        Args:
            features: GeoJSON features; features without a Point geometry are
                skipped

        Returns:
            self, ready to query

        Raises:
            IndexBuildError: If a point has unusable coordinates
        """
        start_time = time.time()

        points = []
        lngs = []
        lats = []
        skipped = 0
        for position, feature in enumerate(features or []):
            geometry = feature.get("geometry") if isinstance(feature, Mapping) else None
            if not isinstance(geometry, Mapping) or geometry.get("type") != "Point":
                skipped += 1
                continue
            try:
                lng, lat = (float(c) for c in geometry["coordinates"][:2])
            except (KeyError, TypeError, ValueError) as e:
                raise IndexBuildError(f"Invalid point coordinates in feature {position}: {e}", e) from e
            points.append(feature)
            lngs.append(lng)
            lats.append(lat)

        if skipped:
            self.logger.warning("Skipped features without point geometry", skipped=skipped)

        self._points = points
        if points:
            xs, ys = lonlat_to_unit(np.array(lngs, dtype=float), np.array(lats, dtype=float))
        else:
            xs, ys = [], []

        nodes = [
            _Node(float(x), float(y), i, properties=point.get("properties") or {})
            for i, (x, y, point) in enumerate(zip(xs, ys, points))
        ]
        self._levels = {self._max_zoom + 1: _Level(nodes)}

        for zoom in range(self._max_zoom, self.min_zoom - 1, -1):
            nodes = self._cluster(nodes, zoom)
            self._levels[zoom] = _Level(nodes)
            self.logger.debug("Clustered zoom level", zoom=zoom, nodes=len(nodes))

        self.logger.info(
            "Cluster index built",
            point_count=len(points),
            min_zoom=self.min_zoom,
            max_zoom=self._max_zoom,
            aggregated=self.accumulator is not None,
            build_time=time.time() - start_time
        )
        return self

    def _cluster(self, nodes: List[_Node], zoom: int) -> List[_Node]:
        level = self._levels[zoom + 1]
        r = self.radius / (self.extent * 2 ** zoom)
        clustered: List[_Node] = []

        for i, p in enumerate(nodes):
            if p.zoom <= zoom:
                continue
            p.zoom = zoom

            neighbor_ids = level.within(p.x, p.y, r)

            num_points_origin = p.num_points
            num_points = num_points_origin
            for neighbor_id in neighbor_ids:
                b = nodes[neighbor_id]
                if b.zoom > zoom:
                    num_points += b.num_points

            if num_points > num_points_origin and num_points >= self.min_points:
                wx = p.x * num_points_origin
                wy = p.y * num_points_origin
                cluster_id = (i << 5) + (zoom + 1) + len(self._points)

                merged_count = num_points_origin
                merged_properties = None

                for neighbor_id in neighbor_ids:
                    b = nodes[neighbor_id]
                    if b.zoom <= zoom:
                        continue
                    b.zoom = zoom

                    wx += b.x * b.num_points
                    wy += b.y * b.num_points
                    b.parent_id = cluster_id

                    if self.accumulator is not None:
                        left = ClusterNode(
                            merged_count,
                            p.properties if merged_properties is None else merged_properties
                        )
                        merged_properties = self.accumulator(left, ClusterNode(b.num_points, b.properties))
                    merged_count += b.num_points

                p.parent_id = cluster_id
                clustered.append(_Node(
                    wx / num_points,
                    wy / num_points,
                    -1,
                    num_points=num_points,
                    properties=merged_properties or {},
                    cluster_id=cluster_id
                ))
            else:
                clustered.append(p)
                if num_points > 1:
                    for neighbor_id in neighbor_ids:
                        b = nodes[neighbor_id]
                        if b.zoom <= zoom:
                            continue
                        b.zoom = zoom
                        clustered.append(b)

        return clustered

    # -------- queries --------

    def _limit_zoom(self, zoom: float) -> int:
        return max(self.min_zoom, min(int(math.floor(zoom)), self._max_zoom + 1))

    def _origin_id(self, cluster_id: int) -> int:
        return (cluster_id - len(self._points)) >> 5

    def _origin_zoom(self, cluster_id: int) -> int:
        return (cluster_id - len(self._points)) % 32

    def get_tile(self, z: int, x: int, y: int) -> Optional[Dict[str, Any]]:
        z, x, y = int(z), int(x), int(y)
        if z < 0 or not self._levels:
            return None

        level = self._levels[self._limit_zoom(z)]
        z2 = 2 ** z
        p = self.radius / self.extent
        top = (y - p) / z2
        bottom = (y + 1 + p) / z2

        features: List[Dict[str, Any]] = []
        self._add_tile_features(level, level.range((x - p) / z2, top, (x + 1 + p) / z2, bottom), x, y, z2, features)

        # wrap points near the antimeridian into the edge tiles
        if x == 0:
            self._add_tile_features(level, level.range(1 - p / z2, top, 1, bottom), z2, y, z2, features)
        if x == z2 - 1:
            self._add_tile_features(level, level.range(0, top, p / z2, bottom), -1, y, z2, features)

        if not features:
            return None
        return {"z": z, "x": x, "y": y, "extent": self.extent, "features": features}

    def _add_tile_features(
        self,
        level: _Level,
        ids: List[int],
        x: int,
        y: int,
        z2: int,
        features: List[Dict[str, Any]]
    ) -> None:
        for i in ids:
            node = level.nodes[i]
            if node.is_cluster:
                tags = self._cluster_properties(node)
                feature_id = node.cluster_id
            else:
                tags = self._point_properties(node.index)
                feature_id = self._point_id(node.index)

            feature = {
                "type": POINT,
                "geometry": {
                    "type": "Point",
                    "coordinates": [
                        _round(self.extent * (node.x * z2 - x)),
                        _round(self.extent * (node.y * z2 - y))
                    ]
                },
                "tags": tags
            }
            if feature_id is not None:
                feature["id"] = feature_id
            features.append(feature)

    def get_clusters(self, bbox: Sequence[float], zoom: int) -> List[Dict[str, Any]]:
        """
        Return clusters and points within a (west, south, east, north) box.

        Args:
            bbox: Bounding box in degrees; boxes crossing the antimeridian are
                split
            zoom: Zoom level of the clusters

        Returns:
            GeoJSON features in WGS84
        """
        min_lng = ((bbox[0] + 180) % 360) - 180
        min_lat = max(-90.0, min(90.0, bbox[1]))
        max_lng = 180.0 if bbox[2] == 180 else ((bbox[2] + 180) % 360) - 180
        max_lat = max(-90.0, min(90.0, bbox[3]))

        if bbox[2] - bbox[0] >= 360:
            min_lng = -180.0
            max_lng = 180.0
        elif min_lng > max_lng:
            eastern = self.get_clusters([min_lng, min_lat, 180.0, max_lat], zoom)
            western = self.get_clusters([-180.0, min_lat, max_lng, max_lat], zoom)
            return eastern + western

        if not self._levels:
            return []

        level = self._levels[self._limit_zoom(zoom)]
        min_x, max_y = lonlat_to_unit(min_lng, min_lat)
        max_x, min_y = lonlat_to_unit(max_lng, max_lat)

        return [self._node_to_feature(level.nodes[i]) for i in level.range(min_x, min_y, max_x, max_y)]

    def get_children(self, cluster_id: int) -> List[Dict[str, Any]]:
        """
        Return the direct children (clusters or points) of a cluster.

        Raises:
            ClusterNotFoundError: If ``cluster_id`` is not a cluster of this index
        """
        origin_id = self._origin_id(cluster_id)
        origin_zoom = self._origin_zoom(cluster_id)
        level = self._levels.get(origin_zoom)
        if level is None or not 0 <= origin_id < len(level.nodes):
            raise ClusterNotFoundError(cluster_id)

        origin = level.nodes[origin_id]
        r = self.radius / (self.extent * 2 ** (origin_zoom - 1))
        children = [
            self._node_to_feature(level.nodes[i])
            for i in level.within(origin.x, origin.y, r)
            if level.nodes[i].parent_id == cluster_id
        ]

        if not children:
            raise ClusterNotFoundError(cluster_id)
        return children

    def get_leaves(self, cluster_id: int, limit: int = 10, offset: int = 0) -> List[Mapping[str, Any]]:
        """Return the original point features of a cluster, paginated."""
        leaves: List[Mapping[str, Any]] = []
        self._append_leaves(leaves, cluster_id, limit, offset, 0)
        return leaves

    def _append_leaves(self, result, cluster_id, limit, offset, skipped) -> int:
        for child in self.get_children(cluster_id):
            props = child["properties"]
            if props.get("cluster"):
                if skipped + props["point_count"] <= offset:
                    skipped += props["point_count"]
                else:
                    skipped = self._append_leaves(result, props["cluster_id"], limit, offset, skipped)
            elif skipped < offset:
                skipped += 1
            else:
                result.append(child)

            if len(result) == limit:
                break

        return skipped

    def get_cluster_expansion_zoom(self, cluster_id: int) -> int:
        """Zoom at which a cluster splits into more than one child."""
        expansion_zoom = self._origin_zoom(cluster_id) - 1
        while expansion_zoom <= self._max_zoom:
            children = self.get_children(cluster_id)
            expansion_zoom += 1
            if len(children) != 1:
                break
            cluster_id = children[0]["properties"].get("cluster_id")
            if cluster_id is None:
                break
        return expansion_zoom

    # -------- feature helpers --------

    def _cluster_properties(self, node: _Node) -> Dict[str, Any]:
        properties = dict(node.properties or {})
        properties.update({
            "cluster": True,
            "cluster_id": node.cluster_id,
            "point_count": node.num_points,
            "point_count_abbreviated": abbreviate_count(node.num_points),
        })
        return properties

    def _point_properties(self, index: int) -> Dict[str, Any]:
        properties = dict(self._points[index].get("properties") or {})
        if isinstance(self.accumulator, ClusterPropertyAccumulator):
            properties.update(self.accumulator.map_point(properties))
        return properties

    def _point_id(self, index: int) -> Any:
        if self.generate_id:
            return index
        return self._points[index].get("id")

    def _node_to_feature(self, node: _Node) -> Mapping[str, Any]:
        if not node.is_cluster:
            return self._points[node.index]

        lng, lat = unit_to_lonlat(node.x, node.y)
        return {
            "type": "Feature",
            "id": node.cluster_id,
            "properties": self._cluster_properties(node),
            "geometry": {"type": "Point", "coordinates": [lng, lat]}
        }
