"""
Cluster property aggregation.

Named reduction functions and the accumulator that folds point properties
into cluster properties while the cluster tree is built.
"""

from .aggregate_functions import AGGREGATE_FUNCTIONS, get_aggregate_function, to_number
from .accumulator import ClusterNode, ClusterPropertyAccumulator, parse_aggregates

__all__ = [
    "AGGREGATE_FUNCTIONS",
    "get_aggregate_function",
    "to_number",
    "ClusterNode",
    "ClusterPropertyAccumulator",
    "parse_aggregates"
]
