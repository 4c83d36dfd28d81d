"""
Integration Tests for the GeoJSON worker source

Loads real GeoJSON through the whole stack (loader, index builder, registry,
retriever, encoder) and decodes the resulting vector tiles.
"""

import copy
import json
import unittest

import mapbox_vector_tile

from geojson_tile_index import GeoJSONWorkerSource
from geojson_tile_index.indexing.projection import lonlat_to_tile
from geojson_tile_index.retrieval.tile_retriever import TileAddress
from geojson_tile_index.utils.config import Config
from geojson_tile_index.utils.exceptions import InputError


QUAKES = {
    "type": "FeatureCollection",
    "features": [
        {"type": "Feature", "properties": {"mag": 2.1}, "geometry": {"type": "Point", "coordinates": [-122.40, 37.78]}},
        {"type": "Feature", "properties": {"mag": 4.7}, "geometry": {"type": "Point", "coordinates": [-122.41, 37.77]}},
        {"type": "Feature", "properties": {"mag": "n/a"}, "geometry": {"type": "Point", "coordinates": [-122.42, 37.79]}},
        {"type": "Feature", "properties": {"mag": 6.0}, "geometry": {"type": "Point", "coordinates": [100.5, 13.75]}}
    ]
}

PARK = {
    "type": "FeatureCollection",
    "features": [
        {
            "type": "Feature",
            "id": 11,
            "properties": {"name": "park", "tags": ["green", "public"]},
            "geometry": {
                "type": "Polygon",
                "coordinates": [[[10, 40], [20, 40], [20, 50], [10, 50], [10, 40]]]
            }
        }
    ]
}


class TestGeoJSONWorkerSource(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.worker = GeoJSONWorkerSource(config=Config(layer_name="layer"))

    def tearDown(self):
        self.worker.close()

    async def test_single_point_cluster_scenario(self):
        await self.worker.load_data({
            "source": "one",
            "data": json.dumps({
                "type": "FeatureCollection",
                "features": [{"type": "Feature", "properties": {"mag": 5}, "geometry": {"type": "Point", "coordinates": [0, 0]}}]
            }),
            "cluster": True,
            "superclusterOptions": {"radius": 1, "maxZoom": 0, "aggregates": {"maxMag": ["max", "mag"]}}
        })

        wrapper = self.worker.load_vector_data({"source": "one", "coord": {"z": 0, "x": 0, "y": 0}})

        self.assertEqual(len(wrapper), 1)
        self.assertEqual(wrapper[0]["tags"]["maxMag"], 5)

        decoded = mapbox_vector_tile.decode(wrapper.raw_data)
        self.assertEqual(decoded["layer"]["features"][0]["properties"]["maxMag"], 5)

    async def test_clustered_tiles_aggregate_magnitudes(self):
        await self.worker.load_data({
            "source": "quakes",
            "data": copy.deepcopy(QUAKES),
            "cluster": True,
            "superclusterOptions": {
                "radius": 60,
                "aggregates": {"maxMag": ["max", "mag"], "total": ["sum", "mag"]}
            }
        })

        wrapper = self.worker.load_vector_data({"source": "quakes", "coord": {"z": 0, "x": 0, "y": 0}})
        features = list(wrapper)
        clusters = [f for f in features if f["tags"].get("cluster")]

        self.assertEqual(len(features), 2)
        self.assertEqual(len(clusters), 1)
        self.assertEqual(clusters[0]["tags"]["point_count"], 3)
        self.assertEqual(clusters[0]["tags"]["maxMag"], 4.7)
        self.assertAlmostEqual(clusters[0]["tags"]["total"], 6.8)

        lone = [f for f in features if not f["tags"].get("cluster")][0]
        self.assertEqual(lone["tags"]["maxMag"], 6.0)

        decoded = mapbox_vector_tile.decode(wrapper.raw_data)
        self.assertEqual(len(decoded["layer"]["features"]), 2)

    async def test_tiled_polygon(self):
        result = await self.worker.load_data({"source": "parks", "data": copy.deepcopy(PARK)})
        self.assertEqual(result.mode, "tiled")

        wrapper = self.worker.load_vector_data({"source": "parks", "coord": {"z": 2, "x": 2, "y": 1}})
        self.assertIsNotNone(wrapper)
        self.assertEqual(wrapper[0]["type"], 3)

        decoded = mapbox_vector_tile.decode(wrapper.raw_data)
        feature = decoded["layer"]["features"][0]
        self.assertEqual(feature["id"], 11)
        self.assertEqual(feature["properties"]["name"], "park")
        self.assertEqual(feature["properties"]["tags"], '["green", "public"]')
        self.assertIn(feature["geometry"]["type"], ("Polygon", "MultiPolygon"))

    async def test_tile_outside_polygon_is_none(self):
        await self.worker.load_data({"source": "parks", "data": copy.deepcopy(PARK)})

        self.assertIsNone(self.worker.load_vector_data({"source": "parks", "coord": {"z": 2, "x": 0, "y": 3}}))

    async def test_unknown_source_is_none(self):
        self.assertIsNone(self.worker.load_vector_data({"source": "nope", "coord": {"z": 0, "x": 0, "y": 0}}))

    async def test_zoom_clamped_to_load_max_zoom(self):
        await self.worker.load_data({"source": "parks", "data": copy.deepcopy(PARK), "maxZoom": 2})

        wrapper = self.worker.get_tile("parks", TileAddress(10, 2, 1))
        self.assertIsNotNone(wrapper)

        # an explicit request max zoom wins over the load default
        self.assertIsNone(self.worker.get_tile("parks", TileAddress(10, 2, 1), max_zoom=10))

    async def test_tiles_above_index_max_zoom_match_direct_query(self):
        await self.worker.load_data({"source": "parks", "data": copy.deepcopy(PARK)})
        address = TileAddress(15, *lonlat_to_tile(15, 45, 15))

        direct = self.worker.registry.get("parks").get_tile(address.z, address.x, address.y)
        wrapper = self.worker.get_tile("parks", address)

        self.assertEqual(len(direct["features"]), 1)
        self.assertIsNotNone(wrapper)
        self.assertEqual(list(wrapper), direct["features"])

    async def test_cluster_tiles_above_index_max_zoom(self):
        await self.worker.load_data({
            "source": "quakes",
            "data": copy.deepcopy(QUAKES),
            "cluster": True
        })
        address = TileAddress(17, *lonlat_to_tile(100.5, 13.75, 17))

        wrapper = self.worker.get_tile("quakes", address)

        self.assertIsNotNone(wrapper)
        self.assertEqual(len(wrapper), 1)
        self.assertEqual(wrapper[0]["tags"]["mag"], 6.0)

    async def test_invalid_data_leaves_registry_untouched(self):
        with self.assertRaises(InputError):
            await self.worker.load_data({"source": "bad", "data": "{invalid json"})

        self.assertEqual(len(self.worker.registry), 0)
        self.assertEqual(self.worker.stats(), {"sources": {}, "count": 0})

    async def test_remove_source(self):
        await self.worker.load_data({"source": "parks", "data": copy.deepcopy(PARK)})
        self.assertEqual(self.worker.stats()["count"], 1)

        self.assertTrue(self.worker.remove_source("parks"))
        self.assertFalse(self.worker.remove_source("parks"))
        self.assertIsNone(self.worker.load_vector_data({"source": "parks", "coord": {"z": 2, "x": 2, "y": 1}}))

    async def test_invalid_vector_tile_request(self):
        with self.assertRaises(InputError):
            self.worker.load_vector_data({"coord": {"z": 0, "x": 0, "y": 0}})
        with self.assertRaises(InputError):
            self.worker.load_vector_data({"source": "parks"})
        with self.assertRaises(InputError):
            self.worker.load_vector_data({"source": "parks", "coord": {"z": 0}})


if __name__ == '__main__':
    unittest.main(verbosity=2)
