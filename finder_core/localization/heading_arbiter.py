"""
Heading Arbiter.

Decides each tick whether a trustworthy absolute heading exists and which
sensor provides it:

1. Compass, when its recent samples are consistent (low circular variance)
2. GPS travel course, when the compass is unstable but the device is
   moving fast enough for the course to mean something
3. Nothing, in which case every peer rotation freezes

Circular variance is used instead of arithmetic variance because the
latter is invalid across the 0/360 wrap.
"""

from collections import deque
from typing import Deque, Iterable, Optional
from dataclasses import dataclass
import numpy as np

from finder_core.proto.heading_decision import (
    HeadingDecision,
    HeadingSource,
    create_no_heading,
)
from finder_core.localization.geo import normalize_angle
from finder_core.metrics import get_metrics


@dataclass
class HeadingArbiterConfig:
    """
    Configuration for heading arbitration.

    Attributes:
        buffer_size: Compass samples kept for the variance window
        min_samples: Samples required before the compass can be stable
        stable_variance: Circular variance below which the compass is stable
        gps_course_min_speed_mps: Speed above which GPS course is trusted (m/s)
        hint_after_ms: Instability duration before the hold-steady hint (ms)
        compass_timeout_ms: Compass counts as absent when its last sample is older (ms)
    """

    buffer_size: int = 12
    min_samples: int = 6
    stable_variance: float = 0.12
    gps_course_min_speed_mps: float = 0.3
    hint_after_ms: int = 1500
    compass_timeout_ms: int = 3000

    def __post_init__(self):
        """Validate configuration."""
        assert self.buffer_size >= 1, "buffer_size must be at least 1"
        assert 1 <= self.min_samples <= self.buffer_size, "min_samples must fit in the buffer"
        assert 0 < self.stable_variance <= 1, "stable_variance must be in (0, 1]"
        assert self.gps_course_min_speed_mps >= 0, "gps_course_min_speed_mps cannot be negative"


def circular_variance(samples: Iterable[float]) -> float:
    """
    Circular variance of angular samples.

    Args:
        samples: Angles in degrees

    Returns:
        1 - |mean unit vector|, in [0, 1]; 0 = identical, 1 = uniformly
        scattered. An empty sample set is treated as fully scattered.
    """
    angles = np.radians(np.asarray(list(samples), dtype=float))
    if angles.size == 0:
        return 1.0

    resultant = np.hypot(np.mean(np.cos(angles)), np.mean(np.sin(angles)))
    return float(min(1.0, max(0.0, 1.0 - resultant)))


class HeadingBuffer:
    """Bounded FIFO of the most recent raw compass headings."""

    def __init__(self, max_samples: int = 12):
        self._samples: Deque[float] = deque(maxlen=max_samples)

    def push(self, heading_deg: float):
        self._samples.append(normalize_angle(heading_deg))

    def clear(self):
        self._samples.clear()

    def variance(self) -> float:
        return circular_variance(self._samples)

    @property
    def latest(self) -> Optional[float]:
        return self._samples[-1] if self._samples else None

    def __len__(self) -> int:
        return len(self._samples)


class HeadingArbiter:
    """
    Choose an authoritative heading source each tick.

    Usage:
        arbiter = HeadingArbiter(config)

        arbiter.add_sample(raw_heading.heading_deg)
        decision = arbiter.decide(
            compass_heading=raw_heading.heading_deg,
            speed_mps=fix.speed_mps,
            course_deg=fix.course_deg,
            now_ms=now_ms,
        )
        if not decision.is_stable:
            # Freeze rotations; show hint when decision.show_hint
            ...

    The heading buffer is process-wide for the single local user and must
    be cleared with reset() when a new session starts.
    """

    def __init__(self, config: Optional[HeadingArbiterConfig] = None):
        """
        Initialize heading arbiter.

        Args:
            config: Arbiter configuration (uses defaults if None)
        """
        self.config = config or HeadingArbiterConfig()
        self.metrics = get_metrics()
        self.buffer = HeadingBuffer(self.config.buffer_size)

        # When the heading first became unavailable (None while stable)
        self._unstable_since_ms: Optional[int] = None

    def add_sample(self, heading_deg: float):
        """Record a raw compass sample in the variance window."""
        self.buffer.push(heading_deg)

    def is_compass_stable(self) -> bool:
        """Compass is stable with enough consistent samples."""
        if len(self.buffer) < self.config.min_samples:
            return False
        return self.buffer.variance() < self.config.stable_variance

    def decide(
        self,
        compass_heading: Optional[float],
        speed_mps: Optional[float],
        course_deg: Optional[float],
        now_ms: int
    ) -> HeadingDecision:
        """
        Arbitrate the heading for this tick.

        Args:
            compass_heading: Latest compass heading (None if the sensor is
                absent or timed out)
            speed_mps: Self speed (None if unknown)
            course_deg: Self GPS course (None if unknown)
            now_ms: Current time (ms)

        Returns:
            HeadingDecision (source NONE when nothing qualifies)
        """
        variance = self.buffer.variance()

        if compass_heading is not None and self.is_compass_stable():
            self._unstable_since_ms = None
            self.metrics.increment('heading_source_compass')
            return HeadingDecision(
                source=HeadingSource.COMPASS,
                heading_deg=normalize_angle(compass_heading),
                circular_variance=variance,
            )

        # A stationary device's GPS course is meaningless
        if (course_deg is not None and speed_mps is not None
                and speed_mps > self.config.gps_course_min_speed_mps):
            self._unstable_since_ms = None
            self.metrics.increment('heading_source_gps_course')
            return HeadingDecision(
                source=HeadingSource.GPS_COURSE,
                heading_deg=normalize_angle(course_deg),
                circular_variance=variance,
            )

        if self._unstable_since_ms is None:
            self._unstable_since_ms = now_ms
        unstable_for_ms = max(0, now_ms - self._unstable_since_ms)

        self.metrics.increment('heading_source_none')
        return create_no_heading(
            circular_variance=variance,
            unstable_for_ms=unstable_for_ms,
            show_hint=unstable_for_ms > self.config.hint_after_ms,
        )

    def reset(self):
        """Clear the heading buffer and instability timer (new session)."""
        self.buffer.clear()
        self._unstable_since_ms = None

    def get_statistics(self) -> dict:
        """Get arbiter statistics for diagnostics."""
        return {
            'buffered_samples': len(self.buffer),
            'circular_variance': self.buffer.variance(),
            'compass_ticks': self.metrics.get_counter('heading_source_compass'),
            'gps_course_ticks': self.metrics.get_counter('heading_source_gps_course'),
            'no_heading_ticks': self.metrics.get_counter('heading_source_none'),
        }
