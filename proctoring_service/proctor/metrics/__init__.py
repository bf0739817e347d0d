"""Live metrics for proctoring"""

from .aggregator import AggregatedFrame, MetricsAggregator

__all__ = ["AggregatedFrame", "MetricsAggregator"]
