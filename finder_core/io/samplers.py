"""
Sensor sampler adapters.

Thin adapters between platform sensor callbacks and the fusion engine.
They normalise platform quirks (NaN speeds, negative headings, device
orientation alpha) into RawFix / RawHeading samples and fan them out to
subscribers. Polling, permissions and platform APIs stay outside.
"""

import logging
import math
from typing import Callable, List, Optional

from finder_core.proto.samples import RawFix, RawHeading
from finder_core.localization.geo import angle_difference, normalize_angle
from finder_core.metrics import get_metrics

logger = logging.getLogger(__name__)


def _optional_non_negative(value: Optional[float]) -> Optional[float]:
    """None for missing, non-finite or negative readings."""
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return value


class Subscription:
    """Handle returned by subscribe(); unsubscribe() is idempotent."""

    def __init__(self, sampler: '_Sampler', callback: Callable):
        self._sampler = sampler
        self.callback = callback
        self.active = True

    def unsubscribe(self):
        if self.active:
            self._sampler._remove(self)
            self.active = False


class _Sampler:
    """Subscriber fan-out shared by both samplers."""

    def __init__(self, available: bool = True):
        self.available = available
        self.metrics = get_metrics()
        self._subscriptions: List[Subscription] = []

    def subscribe(self, callback: Callable) -> Subscription:
        """Register a callback receiving every emitted sample."""
        subscription = Subscription(self, callback)
        self._subscriptions.append(subscription)
        return subscription

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def stop(self):
        """Cancel every subscription."""
        for subscription in list(self._subscriptions):
            subscription.unsubscribe()

    def _remove(self, subscription: Subscription):
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def _emit(self, sample):
        for subscription in list(self._subscriptions):
            subscription.callback(sample)


class GeoSampler(_Sampler):
    """
    Location sampler adapter.

    Usage:
        sampler = GeoSampler()
        sub = sampler.subscribe(engine.on_fix)

        # From the platform location callback
        sampler.push(lat, lng, accuracy=acc, speed=spd, course=hdg,
                     captured_at_ms=ts)

        sub.unsubscribe()
    """

    def push(
        self,
        lat: float,
        lng: float,
        captured_at_ms: int,
        accuracy: Optional[float] = None,
        speed: Optional[float] = None,
        course: Optional[float] = None
    ) -> RawFix:
        """
        Normalise one platform fix and emit it.

        Args:
            lat: Latitude (degrees)
            lng: Longitude (degrees)
            captured_at_ms: Platform timestamp (ms)
            accuracy: Accuracy radius (m), may be None/NaN
            speed: Ground speed (m/s), may be None/NaN
            course: Travel course (degrees), may be None/NaN/negative

        Returns:
            The emitted RawFix (coordinates are passed through unchanged;
            the engine drops non-finite ones)
        """
        course_deg = None
        if course is not None and isinstance(course, (int, float)) and math.isfinite(course):
            course_deg = normalize_angle(course)

        fix = RawFix(
            lat=float(lat),
            lng=float(lng),
            captured_at_ms=int(captured_at_ms),
            accuracy_m=_optional_non_negative(accuracy),
            speed_mps=_optional_non_negative(speed),
            course_deg=course_deg,
        )
        self._emit(fix)
        return fix


class HeadingSampler(_Sampler):
    """
    Orientation sampler adapter.

    Usage:
        sampler = HeadingSampler()
        sampler.subscribe(engine.on_heading)

        # iOS-style compass heading with accuracy side channel
        sampler.push(webkit_heading, ts, accuracy_deg=webkit_accuracy)

        # Generic device orientation alpha
        sampler.push_device_orientation(alpha, ts, screen_angle_deg=90)

    Features:
    - Ignores samples for a cooldown after a very poor accuracy report
    - Light low-pass filter along the shortest arc before emitting
    """

    def __init__(
        self,
        available: bool = True,
        alpha: float = 0.12,
        max_accuracy_deg: float = 25.0,
        low_accuracy_cooldown_ms: int = 1500
    ):
        """
        Initialize heading sampler.

        Args:
            available: False when the platform has no orientation sensor
            alpha: Low-pass weight of new samples
            max_accuracy_deg: Accuracy reports above this start a cooldown
            low_accuracy_cooldown_ms: Cooldown length (ms)
        """
        super().__init__(available)
        assert 0 < alpha <= 1, "alpha must be in (0, 1]"
        self.alpha = alpha
        self.max_accuracy_deg = max_accuracy_deg
        self.low_accuracy_cooldown_ms = low_accuracy_cooldown_ms

        self._smoothed: Optional[float] = None
        self._bad_until_ms: Optional[int] = None

    def push(
        self,
        heading_deg: float,
        captured_at_ms: int,
        accuracy_deg: Optional[float] = None
    ) -> Optional[RawHeading]:
        """
        Filter one compass reading and emit it.

        Returns:
            The emitted RawHeading, or None if the reading was ignored
        """
        if accuracy_deg is not None and accuracy_deg > self.max_accuracy_deg:
            self._bad_until_ms = captured_at_ms + self.low_accuracy_cooldown_ms
            self.metrics.increment_drop('compass_low_accuracy')
            logger.debug("Compass accuracy %.1f deg, cooling down", accuracy_deg)
            return None

        if self._bad_until_ms is not None and captured_at_ms < self._bad_until_ms:
            self.metrics.increment_drop('compass_low_accuracy')
            return None

        if not math.isfinite(heading_deg):
            self.metrics.increment_drop('malformed_heading')
            return None

        heading_deg = normalize_angle(heading_deg)
        if self._smoothed is None:
            self._smoothed = heading_deg
        else:
            self._smoothed = normalize_angle(
                self._smoothed + self.alpha * angle_difference(heading_deg, self._smoothed))

        sample = RawHeading(
            heading_deg=self._smoothed,
            captured_at_ms=int(captured_at_ms),
            accuracy_deg=accuracy_deg,
        )
        self._emit(sample)
        return sample

    def push_device_orientation(
        self,
        alpha_deg: float,
        captured_at_ms: int,
        screen_angle_deg: float = 0.0
    ) -> Optional[RawHeading]:
        """
        Convert a device orientation alpha into a compass heading.

        Alpha grows counter-clockwise, so the compass heading is
        360 - alpha, corrected by the screen rotation (snapped to 90).
        """
        screen = normalize_angle(round(screen_angle_deg / 90.0) * 90.0)
        return self.push(normalize_angle(360.0 - alpha_deg + screen), captured_at_ms)

    def reset(self):
        """Forget filter state and cooldown."""
        self._smoothed = None
        self._bad_until_ms = None
