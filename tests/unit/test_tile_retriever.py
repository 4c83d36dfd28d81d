"""
Unit Tests for the tile retriever
"""

import unittest
from unittest.mock import Mock

from geojson_tile_index.indexing.base import TileIndex
from geojson_tile_index.monitoring.metrics import MetricsCollector
from geojson_tile_index.retrieval.source_registry import SourceRegistry
from geojson_tile_index.retrieval.tile_retriever import TileAddress, TileRetriever


FEATURES = [{"id": 1, "type": 1, "geometry": {"type": "Point", "coordinates": [10, 10]}, "tags": {}}]


class TestTileAddress(unittest.TestCase):

    def test_tile_id_and_bbox(self):
        address = TileAddress(1, 1, 0)
        self.assertEqual(address.tile_id, "1/1/0")
        west, south, east, north = address.bbox
        self.assertEqual((west, east), (0.0, 180.0))
        self.assertAlmostEqual(south, 0.0)
        self.assertAlmostEqual(north, 85.0511287798066)

    def test_clamp_zoom(self):
        self.assertEqual(TileAddress(20, 3, 4).clamp_zoom(14), TileAddress(14, 3, 4))
        self.assertEqual(TileAddress(5, 3, 4).clamp_zoom(14), TileAddress(5, 3, 4))

    def test_coerce(self):
        expected = TileAddress(3, 2, 1)
        self.assertIs(TileAddress.coerce(expected), expected)
        self.assertEqual(TileAddress.coerce({"z": 3, "x": 2, "y": 1}), expected)
        self.assertEqual(TileAddress.coerce((3, 2, 1)), expected)
        self.assertEqual(TileAddress.coerce({"z": "3", "x": "2", "y": "1"}), expected)


class TestTileRetriever(unittest.TestCase):

    def setUp(self):
        self.registry = SourceRegistry()
        self.metrics = MetricsCollector()
        self.retriever = TileRetriever(self.registry, metrics=self.metrics)

        self.index = Mock(spec=TileIndex)
        self.index.mode = "tiled"
        self.index.max_zoom = 14
        self.index.get_tile.return_value = {"z": 2, "x": 1, "y": 1, "extent": 4096, "features": FEATURES}
        self.registry.install("roads", self.index, self.registry.begin_load("roads"))

    def test_unknown_source_returns_none(self):
        self.assertIsNone(self.retriever.get_tile("missing", TileAddress(0, 0, 0)))
        self.assertEqual(
            self.metrics.get_value("tile_requests_total", {"status": "unknown_source"}),
            1.0
        )

    def test_hit(self):
        features = self.retriever.get_tile("roads", TileAddress(2, 1, 1))

        self.assertEqual(features, FEATURES)
        self.index.get_tile.assert_called_once_with(2, 1, 1)
        self.assertEqual(self.metrics.get_value("tile_requests_total", {"status": "hit"}), 1.0)

    def test_empty_tile_returns_none(self):
        self.index.get_tile.return_value = None
        self.assertIsNone(self.retriever.get_tile("roads", TileAddress(2, 1, 1)))

        self.index.get_tile.return_value = {"z": 2, "x": 1, "y": 1, "extent": 4096, "features": []}
        self.assertIsNone(self.retriever.get_tile("roads", TileAddress(2, 1, 1)))
        self.assertEqual(self.metrics.get_value("tile_requests_total", {"status": "empty"}), 2.0)

    def test_zoom_clamped_to_requested_max_zoom(self):
        self.retriever.get_tile("roads", TileAddress(18, 5, 6), max_zoom=10)
        self.index.get_tile.assert_called_once_with(10, 5, 6)

    def test_zoom_not_clamped_without_max_zoom(self):
        self.retriever.get_tile("roads", TileAddress(18, 5, 6))
        self.index.get_tile.assert_called_once_with(18, 5, 6)

    def test_get_tile_data_includes_extent(self):
        tile = self.retriever.get_tile_data("roads", TileAddress(2, 1, 1))
        self.assertEqual(tile["extent"], 4096)
        self.assertEqual(tile["features"], FEATURES)


if __name__ == '__main__':
    unittest.main(verbosity=2)
