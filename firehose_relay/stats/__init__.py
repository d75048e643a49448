"""Rate statistics."""

from .aggregator import MonotonicClock, StatsAggregator
from .ticker import StatsTicker

__all__ = ["MonotonicClock", "StatsAggregator", "StatsTicker"]
