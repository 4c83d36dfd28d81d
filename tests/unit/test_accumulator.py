"""
Unit Tests for the cluster property accumulator
"""

import math
import unittest

from geojson_tile_index.aggregation.accumulator import (
    ClusterNode,
    ClusterPropertyAccumulator,
    parse_aggregates,
)
from geojson_tile_index.utils.exceptions import ConfigError


class TestParseAggregates(unittest.TestCase):

    def test_valid_definition(self):
        rules = parse_aggregates({"maxMag": ["max", "mag"], "names": ("min_string", "name")})
        self.assertEqual([rule.destination for rule in rules], ["maxMag", "names"])
        self.assertEqual(rules[0].operation, "max")
        self.assertEqual(rules[0].source, "mag")

    def test_not_a_mapping(self):
        with self.assertRaises(ConfigError):
            parse_aggregates([["max", "mag"]])

    def test_malformed_entries(self):
        for entry in ("max", ["max"], ["max", "mag", "extra"], 3):
            with self.subTest(entry=entry):
                with self.assertRaises(ConfigError):
                    parse_aggregates({"maxMag": entry})

    def test_unknown_operation(self):
        with self.assertRaises(ConfigError):
            parse_aggregates({"medianMag": ["median", "mag"]})


class TestClusterPropertyAccumulator(unittest.TestCase):

    def setUp(self):
        self.accumulator = ClusterPropertyAccumulator({
            "maxMag": ["max", "mag"],
            "total": ["sum", "count"]
        })

    def test_two_raw_points_read_source_properties(self):
        a = ClusterNode(1, {"mag": 3, "count": 2})
        b = ClusterNode(1, {"mag": 5, "count": 4})

        self.assertEqual(self.accumulator.reduce(a, b), {"maxMag": 5, "total": 6})

    def test_cluster_and_point_read_destination_and_source(self):
        cluster = ClusterNode(4, {"maxMag": 6, "total": 10, "mag": 1})
        point = ClusterNode(1, {"mag": 2, "count": 1, "maxMag": 100})

        self.assertEqual(self.accumulator.reduce(cluster, point), {"maxMag": 6, "total": 11})
        self.assertEqual(self.accumulator.reduce(point, cluster), {"maxMag": 6, "total": 11})

    def test_two_clusters_read_destination_properties(self):
        a = ClusterNode(3, {"maxMag": 4, "total": 7})
        b = ClusterNode(2, {"maxMag": 8, "total": 1})

        self.assertEqual(self.accumulator(a, b), {"maxMag": 8, "total": 8})

    def test_missing_properties_do_not_poison_result(self):
        a = ClusterNode(1, {})
        b = ClusterNode(1, {"mag": 5})

        self.assertEqual(self.accumulator.reduce(a, b), {"maxMag": 5, "total": 0})

    def test_none_properties(self):
        a = ClusterNode(1, None)
        b = ClusterNode(1, {"mag": 2, "count": 1})

        self.assertEqual(self.accumulator.reduce(a, b), {"maxMag": 2, "total": 1})

    def test_merge_order_does_not_change_result(self):
        points = [ClusterNode(1, {"mag": m, "count": 1}) for m in (2, 9, 4, 7)]

        left = ClusterNode(2, self.accumulator.reduce(points[0], points[1]))
        right = ClusterNode(2, self.accumulator.reduce(points[2], points[3]))
        balanced = self.accumulator.reduce(left, right)

        running = ClusterNode(2, self.accumulator.reduce(points[3], points[2]))
        running = ClusterNode(3, self.accumulator.reduce(running, points[1]))
        sequential = self.accumulator.reduce(running, points[0])

        self.assertEqual(balanced, sequential)
        self.assertEqual(balanced, {"maxMag": 9, "total": 4})

    def test_map_point(self):
        self.assertEqual(self.accumulator.map_point({"mag": 5, "count": "3"}), {"maxMag": 5, "total": 3})
        self.assertEqual(self.accumulator.map_point(None), {"maxMag": -math.inf, "total": 0})

    def test_map_point_coerces_like_a_cluster(self):
        lone = self.accumulator.map_point({"mag": "n/a", "count": "n/a"})
        merged = self.accumulator.reduce(
            ClusterNode(1, {"mag": "n/a", "count": "n/a"}),
            ClusterNode(1, {"mag": "n/a", "count": "n/a"})
        )

        self.assertEqual(lone, {"maxMag": -math.inf, "total": 0})
        self.assertEqual(lone, merged)

    def test_map_point_string_and_boolean_operations(self):
        accumulator = ClusterPropertyAccumulator({
            "first": ["min_string", "name"],
            "all": ["and", "flag"],
            "any": ["or", "flag"]
        })

        self.assertEqual(
            accumulator.map_point({"name": "b", "flag": 0}),
            {"first": "b", "all": 0, "any": 0}
        )

    def test_destinations_and_repr(self):
        self.assertEqual(self.accumulator.destinations, ["maxMag", "total"])
        self.assertIn("maxMag", repr(self.accumulator))

    def test_is_cluster(self):
        self.assertFalse(ClusterNode(1).is_cluster)
        self.assertTrue(ClusterNode(2).is_cluster)


if __name__ == '__main__':
    unittest.main(verbosity=2)
