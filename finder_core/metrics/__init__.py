"""
Metrics Module: pipeline counters, drop reasons, histograms.

All components of one process report into a single shared collector, so a
replay run or a test can read the whole pipeline's counts in one place.

Usage:
    from finder_core.metrics import get_metrics

    metrics = get_metrics()
    metrics.increment('fixes_in')
    metrics.increment_drop('implausible_jump')
    metrics.drops_for_stage('peers')
"""

from .counters import (
    DROP_REASONS,
    DROP_REASONS_BY_STAGE,
    MetricsCollector,
)

_shared = MetricsCollector()


def get_metrics() -> MetricsCollector:
    """Shared collector used by every pipeline component."""
    return _shared


def reset_metrics() -> MetricsCollector:
    """
    Clear the shared collector in place.

    Components keep the collector they captured at construction, so the
    instance is never replaced.
    """
    _shared.reset()
    return _shared


__all__ = [
    'DROP_REASONS',
    'DROP_REASONS_BY_STAGE',
    'MetricsCollector',
    'get_metrics',
    'reset_metrics',
]
