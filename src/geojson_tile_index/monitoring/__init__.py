"""
Monitoring for source loads and tile retrieval.
"""

from .metrics import MetricsCollector

__all__ = [
    "MetricsCollector"
]
