"""
Fusion pipeline counters.

Counts what enters the pipeline and what each filtering stage does with it.
A sample that is dropped or replaced is recorded under a reason code, and
every reason belongs to the stage that emits it:

- self:    own fixes and publish decisions
- heading: compass samples
- peers:   peer snapshots and the outlier gates
- replay:  recorded session input

Filter quantities (corrected distance, rejected jump size, publish
movement) go into bounded histograms for calibration runs.
"""

import logging
import statistics
import threading
from collections import Counter, deque
from typing import Deque, Dict, Optional

logger = logging.getLogger(__name__)


DROP_REASONS_BY_STAGE: Dict[str, Dict[str, str]] = {
    'self': {
        'malformed_fix': 'Own fix with non-finite coordinates',
        'write_suppressed': 'Own fix not worth publishing',
    },
    'heading': {
        'malformed_heading': 'Compass sample with non-finite heading',
        'compass_low_accuracy': 'Compass sample during low accuracy cooldown',
    },
    'peers': {
        'malformed_peer': 'Peer document or coordinates unusable',
        'inaccurate_fresh_fix': 'Fresh peer fix above accuracy ceiling, last good used',
        'implausible_jump': 'Fresh peer fix jumped too far, last good used',
        'stale_peer': 'Peer hidden after staleness ceiling',
    },
    'replay': {
        'replay_parse_error': 'Malformed session line',
    },
}

DROP_REASONS: Dict[str, str] = {
    reason: description
    for reasons in DROP_REASONS_BY_STAGE.values()
    for reason, description in reasons.items()
}

STAGE_OF_REASON: Dict[str, str] = {
    reason: stage
    for stage, reasons in DROP_REASONS_BY_STAGE.items()
    for reason in reasons
}

# Samples kept per histogram
HISTOGRAM_WINDOW = 2000


class MetricsCollector:
    """
    Thread-safe pipeline counters.

    Usage:
        metrics = MetricsCollector()
        metrics.increment('fixes_in')
        metrics.increment_drop('implausible_jump')
        metrics.record_histogram('corrected_distance_m', 42.0)

        metrics.drops_for_stage('peers')   # {'implausible_jump': 1}
        metrics.print_summary()
    """

    DROP_REASONS = DROP_REASONS

    def __init__(self, histogram_window: int = HISTOGRAM_WINDOW):
        """
        Initialize collector.

        Args:
            histogram_window: Most recent values kept per histogram
        """
        assert histogram_window > 0, "histogram_window must be positive"
        self.histogram_window = histogram_window

        self._lock = threading.Lock()
        self._counters: Counter = Counter()
        self._drops: Counter = Counter()
        self._histograms: Dict[str, Deque[float]] = {}

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def increment(self, counter_name: str, value: int = 1):
        with self._lock:
            self._counters[counter_name] += value

    def increment_drop(self, reason: str, value: int = 1):
        """
        Count a dropped or substituted sample.

        Unknown reasons are still counted (under no stage) and logged.
        """
        if reason not in DROP_REASONS:
            logger.warning("Unknown drop reason '%s'", reason)

        with self._lock:
            self._drops[reason] += value

    def record_histogram(self, histogram_name: str, value: float):
        with self._lock:
            samples = self._histograms.get(histogram_name)
            if samples is None:
                samples = deque(maxlen=self.histogram_window)
                self._histograms[histogram_name] = samples
            samples.append(value)

    def reset(self):
        """Clear everything (new session, or between tests)."""
        with self._lock:
            self._counters.clear()
            self._drops.clear()
            self._histograms.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_counter(self, counter_name: str) -> int:
        with self._lock:
            return self._counters[counter_name]

    def get_drop_count(self, reason: str) -> int:
        with self._lock:
            return self._drops[reason]

    def total_dropped(self) -> int:
        with self._lock:
            return sum(self._drops.values())

    def drops_for_stage(self, stage: str) -> Dict[str, int]:
        """
        Non-zero drop counts of one pipeline stage.

        Raises:
            KeyError: if the stage does not exist
        """
        reasons = DROP_REASONS_BY_STAGE[stage]
        with self._lock:
            return {r: self._drops[r] for r in reasons if self._drops[r]}

    def get_histogram_stats(self, histogram_name: str) -> Optional[Dict[str, float]]:
        """
        Summary statistics of a histogram.

        Returns:
            Dict with count, min, max, mean, median, p95; None if empty
        """
        with self._lock:
            samples = list(self._histograms.get(histogram_name, ()))

        if not samples:
            return None

        if len(samples) > 1:
            p95 = statistics.quantiles(samples, n=20, method='inclusive')[18]
        else:
            p95 = samples[0]

        return {
            'count': len(samples),
            'min': min(samples),
            'max': max(samples),
            'mean': statistics.mean(samples),
            'median': statistics.median(samples),
            'p95': p95,
        }

    def summary(self) -> dict:
        """
        Counters, per-stage drops and histogram statistics as plain data.

        Drops with an unknown reason are reported under 'unclassified'.
        """
        with self._lock:
            counters = {k: v for k, v in self._counters.items() if v}
            drops = dict(self._drops)
            histogram_names = sorted(self._histograms)

        by_stage: Dict[str, Dict[str, int]] = {}
        for reason, count in drops.items():
            if count:
                stage = STAGE_OF_REASON.get(reason, 'unclassified')
                by_stage.setdefault(stage, {})[reason] = count

        return {
            'counters': counters,
            'drops': by_stage,
            'total_dropped': sum(drops.values()),
            'histograms': {name: self.get_histogram_stats(name) for name in histogram_names},
        }

    def print_summary(self):
        """Print the summary grouped by pipeline stage."""
        data = self.summary()

        print("\n" + "=" * 60)
        print("  METRICS SUMMARY")
        print("=" * 60)

        print("\nINPUT / PROCESSING:")
        for name, value in sorted(data['counters'].items()):
            print(f"  {name:28s}: {value:8d}")

        if data['total_dropped']:
            print(f"\nDROPPED OR SUBSTITUTED ({data['total_dropped']}):")
            for stage, reasons in sorted(data['drops'].items()):
                print(f"  [{stage}]")
                for reason, count in sorted(reasons.items()):
                    print(f"    {reason:26s}: {count:8d}")

        for name, stats in data['histograms'].items():
            if stats:
                print(f"\n{name}: n={stats['count']} median={stats['median']:.2f} "
                      f"p95={stats['p95']:.2f} max={stats['max']:.2f}")

        print("=" * 60 + "\n")
