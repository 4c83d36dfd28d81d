"""
Unit Tests for the index builder
"""

import unittest
from unittest.mock import patch

from geojson_tile_index.aggregation.accumulator import ClusterPropertyAccumulator
from geojson_tile_index.indexing.cluster_index import ClusterIndex
from geojson_tile_index.indexing.index_builder import IndexBuilder, get_supercluster_options
from geojson_tile_index.indexing.tiled_index import TiledIndex
from geojson_tile_index.params import SourceParams
from geojson_tile_index.utils.exceptions import ConfigError, IndexBuildError


POINTS = {
    "type": "FeatureCollection",
    "features": [
        {"type": "Feature", "properties": {"mag": 5}, "geometry": {"type": "Point", "coordinates": [10, 10]}}
    ]
}


class TestGetSuperclusterOptions(unittest.TestCase):

    def test_without_aggregates(self):
        params = SourceParams(source="s", data={}, cluster=True, supercluster_options={"radius": 50})
        options, accumulator = get_supercluster_options(params)

        self.assertEqual(options, {"radius": 50})
        self.assertIsNone(accumulator)

    def test_aggregates_become_accumulator(self):
        params = SourceParams(
            source="s",
            data={},
            cluster=True,
            supercluster_options={"radius": 50, "aggregates": {"maxMag": ["max", "mag"]}}
        )
        options, accumulator = get_supercluster_options(params)

        self.assertEqual(options, {"radius": 50})
        self.assertIsInstance(accumulator, ClusterPropertyAccumulator)
        self.assertEqual(accumulator.destinations, ["maxMag"])
        # caller's options are left untouched
        self.assertIn("aggregates", params.supercluster_options)

    def test_invalid_aggregates(self):
        params = SourceParams(
            source="s",
            data={},
            cluster=True,
            supercluster_options={"aggregates": {"maxMag": ["median", "mag"]}}
        )
        with self.assertRaises(ConfigError):
            get_supercluster_options(params)


class TestIndexBuilder(unittest.TestCase):

    def setUp(self):
        self.builder = IndexBuilder()

    def test_cluster_mode(self):
        params = SourceParams(
            source="quakes",
            data=POINTS,
            cluster=True,
            supercluster_options={"maxZoom": 12, "aggregates": {"maxMag": ["max", "mag"]}}
        )
        index = self.builder.build(POINTS, params)

        self.assertIsInstance(index, ClusterIndex)
        self.assertEqual(index.max_zoom, 12)
        tile = index.get_tile(0, 0, 0)
        self.assertEqual(tile["features"][0]["tags"]["maxMag"], 5)

    def test_tiled_mode(self):
        params = SourceParams(source="quakes", data=POINTS, geojson_vt_options={"maxZoom": 9})
        index = self.builder.build(POINTS, params)

        self.assertIsInstance(index, TiledIndex)
        self.assertEqual(index.max_zoom, 9)

    def test_cluster_options_ignored_in_tiled_mode(self):
        params = SourceParams(
            source="s",
            data=POINTS,
            supercluster_options={"aggregates": {"x": ["median", "y"]}}
        )
        self.assertIsInstance(self.builder.build(POINTS, params), TiledIndex)

    def test_config_error_propagates(self):
        params = SourceParams(source="s", data=POINTS, cluster=True, supercluster_options={"minZoom": 9, "maxZoom": 2})
        with self.assertRaises(ConfigError):
            self.builder.build(POINTS, params)

    def test_unexpected_failure_wrapped(self):
        params = SourceParams(source="s", data=POINTS)
        failure = RuntimeError("GEOS exploded")

        with patch.object(TiledIndex, "from_geojson", side_effect=failure):
            with self.assertRaises(IndexBuildError) as context:
                self.builder.build(POINTS, params)

        self.assertIs(context.exception.original, failure)
        self.assertIs(context.exception.__cause__, failure)

    def test_invalid_geojson(self):
        params = SourceParams(source="s", data={}, cluster=True)
        with self.assertRaises(IndexBuildError):
            self.builder.build({"type": "Nope"}, params)


if __name__ == '__main__':
    unittest.main(verbosity=2)
