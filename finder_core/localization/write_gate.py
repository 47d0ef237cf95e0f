"""
Write Gate (self-publish policy).

Decides, per incoming self fix, whether the fix is worth publishing to the
sync store. Bounds write volume while keeping every peer's view of our
last-seen age bounded.

Rules:
- Heartbeat: publish when the heartbeat interval has elapsed
- Motion: publish when the minimum interval has elapsed AND we moved far
  enough OR our accuracy improved enough since the last publish
- Otherwise suppress
"""

from typing import Optional
from dataclasses import dataclass

from finder_core.proto.samples import LatLng, RawFix
from finder_core.proto.publish_record import PublishRecord, PublishReason
from finder_core.localization.geo import haversine
from finder_core.metrics import get_metrics


@dataclass
class WriteGateConfig:
    """
    Configuration for the self-publish policy.

    Attributes:
        heartbeat_ms: Publish unconditionally after this long (ms)
        motion_min_interval_ms: Minimum spacing of motion-triggered writes (ms)
        min_move_m: Movement since last publish that triggers a write (m)
        min_accuracy_gain_m: Accuracy improvement that triggers a write (m)
        publish_ttl_ms: Lifetime attached to each published record (ms)
    """

    heartbeat_ms: int = 15000
    motion_min_interval_ms: int = 2500
    min_move_m: float = 3.0
    min_accuracy_gain_m: float = 5.0
    publish_ttl_ms: int = 12 * 60 * 60 * 1000

    def __post_init__(self):
        """Validate configuration."""
        assert self.heartbeat_ms > 0, "heartbeat_ms must be positive"
        assert 0 <= self.motion_min_interval_ms <= self.heartbeat_ms, \
            "motion_min_interval_ms must be within [0, heartbeat_ms]"
        assert self.min_move_m >= 0, "min_move_m cannot be negative"
        assert self.publish_ttl_ms > 0, "publish_ttl_ms must be positive"


class WriteGate:
    """
    Heartbeat / motion-triggered publish throttle.

    Usage:
        gate = WriteGate(config)

        record = gate.evaluate(fix, now_ms)
        if record is not None:
            transport.publish(record.to_document())

    State retained across calls: the last published position, accuracy
    and timestamp.
    """

    def __init__(self, config: Optional[WriteGateConfig] = None):
        """
        Initialize write gate.

        Args:
            config: Publish policy (uses defaults if None)
        """
        self.config = config or WriteGateConfig()
        self.metrics = get_metrics()

        self._last_published: Optional[PublishRecord] = None

    @property
    def last_published(self) -> Optional[PublishRecord]:
        return self._last_published

    def evaluate(self, fix: RawFix, now_ms: int) -> Optional[PublishRecord]:
        """
        Decide whether to publish this fix.

        Args:
            fix: Raw self fix (must be finite)
            now_ms: Current time (ms)

        Returns:
            PublishRecord to send upstream, or None to suppress
        """
        last = self._last_published

        if last is None:
            return self._publish(fix, now_ms, PublishReason.HEARTBEAT)

        elapsed_ms = now_ms - last.timestamp_ms

        if elapsed_ms >= self.config.heartbeat_ms:
            return self._publish(fix, now_ms, PublishReason.HEARTBEAT)

        if elapsed_ms >= self.config.motion_min_interval_ms:
            moved_m = haversine(LatLng(last.lat, last.lng), fix.position)
            if moved_m >= self.config.min_move_m or self._accuracy_improved(last, fix):
                self.metrics.record_histogram('publish_moved_m', moved_m)
                return self._publish(fix, now_ms, PublishReason.MOTION)

        self.metrics.increment_drop('write_suppressed')
        return None

    def _accuracy_improved(self, last: PublishRecord, fix: RawFix) -> bool:
        # Unknown accuracy on either side counts as improved
        if last.accuracy_m is None or fix.accuracy_m is None:
            return True
        return last.accuracy_m - fix.accuracy_m > self.config.min_accuracy_gain_m

    def _publish(self, fix: RawFix, now_ms: int, reason: PublishReason) -> PublishRecord:
        record = PublishRecord(
            lat=fix.lat,
            lng=fix.lng,
            accuracy_m=fix.accuracy_m,
            timestamp_ms=now_ms,
            expire_at_ms=now_ms + self.config.publish_ttl_ms,
            reason=reason,
        )
        self._last_published = record
        self.metrics.increment('publishes')
        self.metrics.increment(f'publishes_{reason.value}')
        return record

    def reset(self):
        """Forget the last publish (new session)."""
        self._last_published = None

    def get_statistics(self) -> dict:
        """Get publish statistics for diagnostics."""
        return {
            'publishes': self.metrics.get_counter('publishes'),
            'heartbeats': self.metrics.get_counter('publishes_heartbeat'),
            'motion': self.metrics.get_counter('publishes_motion'),
            'suppressed': self.metrics.get_drop_count('write_suppressed'),
        }
