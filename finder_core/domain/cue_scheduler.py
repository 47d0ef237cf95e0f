"""
Proximity Cue Scheduler.

Decides when to fire a haptic cue for the focused peer. Closer peers get
longer pulses at shorter intervals, and a double pulse within 5 m.

This is presentation timing, kept outside the filters: it polls the latest
display record instead of running timers inside the fusion engine.
"""

from typing import Optional, Tuple
from dataclasses import dataclass

from finder_core.proto.display_record import PeerDisplayRecord, StalenessClass


@dataclass
class CueSchedulerConfig:
    """
    Configuration for proximity cues.

    Attributes:
        min_distance_m: Distances are clamped up to this (m)
        max_distance_m: Distances are clamped down to this (m)
        double_pulse_within_m: Use a double pulse at or below this distance (m)
        pulse_gap_ms: Gap between the two pulses of a double pulse (ms)
    """

    min_distance_m: float = 0.5
    max_distance_m: float = 150.0
    double_pulse_within_m: float = 5.0
    pulse_gap_ms: int = 90

    def __post_init__(self):
        """Validate configuration."""
        assert 0 < self.min_distance_m < self.max_distance_m, "invalid distance clamp"


# (distance above which the interval applies, interval ms), checked in order
_INTERVALS_MS = (
    (100.0, 2400),
    (50.0, 1800),
    (25.0, 1200),
    (10.0, 700),
    (5.0, 400),
    (2.0, 230),
)
_CLOSEST_INTERVAL_MS = 130


@dataclass(frozen=True)
class CuePattern:
    """
    One haptic cue.

    Attributes:
        pattern_ms: Alternating on/off durations (ms)
        interval_ms: Time until the next cue (ms)
    """

    pattern_ms: Tuple[int, ...]
    interval_ms: int


class CueScheduler:
    """
    Poll-driven proximity cue timing.

    Usage:
        scheduler = CueScheduler()

        # On every display refresh
        cue = scheduler.poll(focused_record, now_ms)
        if cue is not None:
            device.vibrate(cue.pattern_ms)
    """

    def __init__(self, config: Optional[CueSchedulerConfig] = None):
        """
        Initialize cue scheduler.

        Args:
            config: Cue configuration (uses defaults if None)
        """
        self.config = config or CueSchedulerConfig()
        self._last_cue_ms: Optional[int] = None
        self._last_interval_ms: Optional[int] = None

    def pattern_for(self, distance_m: float) -> CuePattern:
        """Cue pattern and repeat interval for a distance."""
        d = max(self.config.min_distance_m, min(distance_m, self.config.max_distance_m))

        if d <= 2:
            pulse = 65
        elif d <= 5:
            pulse = 50
        else:
            pulse = 35

        interval = _CLOSEST_INTERVAL_MS
        for threshold_m, interval_ms in _INTERVALS_MS:
            if d > threshold_m:
                interval = interval_ms
                break

        if d <= self.config.double_pulse_within_m:
            pattern = (pulse, self.config.pulse_gap_ms, pulse)
        else:
            pattern = (pulse,)

        return CuePattern(pattern_ms=pattern, interval_ms=interval)

    def poll(self, record: Optional[PeerDisplayRecord], now_ms: int) -> Optional[CuePattern]:
        """
        Return a cue when one is due.

        Args:
            record: Latest display record of the focused peer (None stops cues)
            now_ms: Current time (ms)

        Returns:
            CuePattern to play now, or None
        """
        if record is None or record.staleness == StalenessClass.HIDDEN:
            self.stop()
            return None

        cue = self.pattern_for(record.distance_m)

        # Distance changes take effect on the next due cue
        if self._last_cue_ms is not None and now_ms - self._last_cue_ms < self._last_interval_ms:
            return None

        self._last_cue_ms = now_ms
        self._last_interval_ms = cue.interval_ms
        return cue

    def stop(self):
        """Cancel pending cues."""
        self._last_cue_ms = None
        self._last_interval_ms = None
