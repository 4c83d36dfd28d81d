"""
Aggregate Functions

Named binary reductions available to cluster aggregate definitions.
Numeric reductions coerce anything that is not a number (``None``, missing
values, non-numeric strings) to the identity element of the operation, so
folding them in any order gives the same result.
"""

import math
from types import MappingProxyType
from typing import Any, Callable, Mapping, Union

from ..utils.exceptions import ConfigError


Number = Union[int, float]
AggregateFunction = Callable[[Any, Any], Any]


def to_number(value: Any, default: Number) -> Number:
    """
    Coerce a property value to a number.

    Args:
        value: Raw property value
        default: Value returned when ``value`` is not numeric

    Returns:
        ``value`` as an int or float, or ``default``
    """
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return default
        return value

    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return default
        return default if math.isnan(number) else number

    return default


def _string_operands(a: Any, b: Any):
    # comparable keys for operands that may differ in type
    if type(a) is type(b):
        return a, b
    return str(a), str(b)


def agg_sum(a: Any, b: Any) -> Number:
    return to_number(a, 0) + to_number(b, 0)


def agg_min(a: Any, b: Any) -> Number:
    return min(to_number(a, math.inf), to_number(b, math.inf))


def agg_max(a: Any, b: Any) -> Number:
    return max(to_number(a, -math.inf), to_number(b, -math.inf))


def agg_min_string(a: Any, b: Any) -> Any:
    if a is None:
        return b
    if b is None:
        return a
    key_a, key_b = _string_operands(a, b)
    return a if key_a < key_b else b


def agg_max_string(a: Any, b: Any) -> Any:
    if a is None:
        return b
    if b is None:
        return a
    key_a, key_b = _string_operands(a, b)
    return a if key_a > key_b else b


def agg_and(a: Any, b: Any) -> Any:
    return a and b


def agg_or(a: Any, b: Any) -> Any:
    return a or b


AGGREGATE_FUNCTIONS: Mapping[str, AggregateFunction] = MappingProxyType({
    "sum": agg_sum,
    "min": agg_min,
    "max": agg_max,
    "min_string": agg_min_string,
    "max_string": agg_max_string,
    "and": agg_and,
    "or": agg_or,
})

# value that leaves the other operand of each reduction unchanged
AGGREGATE_IDENTITIES: Mapping[str, Any] = MappingProxyType({
    "sum": 0,
    "min": math.inf,
    "max": -math.inf,
    "min_string": None,
    "max_string": None,
    "and": True,
    "or": False,
})


def get_aggregate_function(name: str) -> AggregateFunction:
    """Look up a reduction by name, raising ``ConfigError`` for unknown names."""
    try:
        return AGGREGATE_FUNCTIONS[name]
    except (KeyError, TypeError):
        raise ConfigError(
            f"Unknown aggregate operation: {name!r} "
            f"(expected one of {', '.join(sorted(AGGREGATE_FUNCTIONS))})"
        ) from None
