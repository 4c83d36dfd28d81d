"""
Cluster Property Accumulator

Merges the properties of two cluster-tree nodes according to an aggregate
definition ``{destination: (operation, source)}``.

Read rule for each destination property:

- a raw point (``num_points == 1``) contributes ``properties[source]``
- a cluster (``num_points > 1``) contributes ``properties[destination]``,
  because earlier merges stored their result under the destination name

The cluster tree can therefore be aggregated in one bottom-up pass, in any
merge order, without going back to the source values of every leaf.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from .aggregate_functions import AGGREGATE_IDENTITIES, AggregateFunction, get_aggregate_function
from ..utils.exceptions import ConfigError


@dataclass
class ClusterNode:
    """A raw point or an already formed cluster, as seen by the accumulator."""
    num_points: int
    properties: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_cluster(self) -> bool:
        return self.num_points > 1


@dataclass(frozen=True)
class AggregateRule:
    destination: str
    operation: str
    source: str
    function: AggregateFunction

    @property
    def identity(self) -> Any:
        return AGGREGATE_IDENTITIES[self.operation]


def parse_aggregates(aggregates: Mapping[str, Sequence[str]]) -> List[AggregateRule]:
    """
    Validate an aggregate definition.

    Args:
        aggregates: Mapping of destination property to ``(operation, source)``

    Returns:
        One rule per destination property

    Raises:
        ConfigError: If the mapping or any entry is malformed, or an operation
            is not registered
    """
    if not isinstance(aggregates, Mapping):
        raise ConfigError("aggregates must be a mapping of property name to [operation, source]")

    rules = []
    for destination, entry in aggregates.items():
        if isinstance(entry, (str, bytes)) or not isinstance(entry, Sequence) or len(entry) != 2:
            raise ConfigError(
                f"Aggregate {destination!r} must be an [operation, source property] pair, got {entry!r}"
            )
        operation, source = entry
        rules.append(AggregateRule(
            destination=destination,
            operation=operation,
            source=source,
            function=get_aggregate_function(operation)
        ))
    return rules


class ClusterPropertyAccumulator:
    """
    Reduces two nodes' properties into the merged properties of a cluster.

    Instances hold only the validated aggregate definition and are safe to
    share between threads and merge orders.
    """

    def __init__(self, aggregates: Mapping[str, Sequence[str]]):
        self._rules: Tuple[AggregateRule, ...] = tuple(parse_aggregates(aggregates))

    @property
    def destinations(self) -> List[str]:
        return [rule.destination for rule in self._rules]

    @staticmethod
    def _operand(node: ClusterNode, rule: AggregateRule) -> Any:
        key = rule.destination if node.num_points > 1 else rule.source
        return node.properties.get(key) if node.properties else None

    def reduce(self, node_a: ClusterNode, node_b: ClusterNode) -> Dict[str, Any]:
        merged = {}
        for rule in self._rules:
            merged[rule.destination] = rule.function(
                self._operand(node_a, rule),
                self._operand(node_b, rule)
            )
        return merged

    __call__ = reduce

    def map_point(self, properties: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Initial destination values of a single raw point.

        The source value is folded with the identity of the operation, so a
        lone point carries the same coerced value a cluster would.
        """
        properties = properties or {}
        return {
            rule.destination: rule.function(rule.identity, properties.get(rule.source))
            for rule in self._rules
        }

    def __repr__(self) -> str:
        aggregates = {rule.destination: [rule.operation, rule.source] for rule in self._rules}
        return f"{self.__class__.__name__}({aggregates!r})"
