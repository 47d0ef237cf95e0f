"""
Distance Estimator.

Turns two smoothed positions into a display-ready distance that follows
real approach/departure but ignores GPS noise at short range.

Pipeline per peer:
1. Raw great-circle distance between smoothed positions
2. Subtract k * combined accuracy (two stationary nearby phones should
   not show a phantom distance from independent GPS noise)
3. Median over a short FIFO of corrected distances (spike rejection)
4. EMA over the median stream, slower when the local device is still
"""

from typing import Optional
from dataclasses import dataclass
import numpy as np

from finder_core.proto.samples import LatLng
from finder_core.localization.geo import haversine
from finder_core.localization.peer_filter_state import PeerFilterState
from finder_core.metrics import get_metrics


@dataclass
class DistanceEstimatorConfig:
    """
    Configuration for distance estimation.

    Attributes:
        accuracy_subtract_k: Fraction of combined accuracy subtracted from raw distance
        default_accuracy_m: Accuracy assumed when a side reports none (m)
        median_window: Corrected samples kept per peer for the median
        still_alpha: EMA weight when the local device is still
        moving_alpha: EMA weight when the local device is moving
        still_speed_mps: Speed below which the local device counts as still (m/s)
    """

    accuracy_subtract_k: float = 0.2
    default_accuracy_m: float = 20.0
    median_window: int = 3
    still_alpha: float = 0.45
    moving_alpha: float = 0.65
    still_speed_mps: float = 0.5

    def __post_init__(self):
        """Validate configuration."""
        assert 0 <= self.accuracy_subtract_k <= 1, "accuracy_subtract_k must be in [0, 1]"
        assert self.default_accuracy_m >= 0, "default_accuracy_m cannot be negative"
        assert 1 <= self.median_window <= 5, "median_window must be in [1, 5]"
        assert 0 < self.still_alpha <= 1, "still_alpha must be in (0, 1]"
        assert 0 < self.moving_alpha <= 1, "moving_alpha must be in (0, 1]"


@dataclass
class DistanceEstimate:
    """
    Distance estimate for one peer at one tick.

    Attributes:
        raw_m: Great-circle distance between smoothed positions
        corrected_m: Raw minus accuracy correction (>= 0)
        median_m: Median of the corrected window
        smoothed_m: EMA output used for display (>= 0)
        sigma_m: Combined accuracy used for the correction
    """

    raw_m: float
    corrected_m: float
    median_m: float
    smoothed_m: float
    sigma_m: float


def combined_sigma(
    my_accuracy_m: Optional[float],
    their_accuracy_m: Optional[float],
    default_accuracy_m: float = 20.0
) -> float:
    """Root-sum-square of both accuracy radii (unknown -> default)."""
    mine = my_accuracy_m if my_accuracy_m is not None else default_accuracy_m
    theirs = their_accuracy_m if their_accuracy_m is not None else default_accuracy_m
    return float(np.hypot(mine, theirs))


def window_median(samples) -> float:
    """
    Median of a small window.

    Even-sized windows take the upper middle sample rather than averaging,
    so the result is always a distance that was actually observed.
    """
    ordered = np.sort(np.asarray(samples, dtype=float))
    return float(ordered[len(ordered) // 2])


class DistanceEstimator:
    """
    Corrected, median-filtered, EMA-smoothed distance.

    Usage:
        estimator = DistanceEstimator(config)

        estimate = estimator.estimate(
            state, my_smoothed, their_smoothed,
            my_accuracy_m=fix.accuracy_m,
            their_accuracy_m=snapshot.accuracy_m,
            my_speed_mps=fix.speed_mps,
        )
        print(f"{estimate.smoothed_m:.1f} m")

    The estimator itself is stateless; the median window and smoothed
    distance live in the peer's PeerFilterState.
    """

    def __init__(self, config: Optional[DistanceEstimatorConfig] = None):
        """
        Initialize estimator.

        Args:
            config: Estimator configuration (uses defaults if None)
        """
        self.config = config or DistanceEstimatorConfig()
        self.metrics = get_metrics()

    def estimate(
        self,
        state: PeerFilterState,
        my_position: LatLng,
        their_position: LatLng,
        my_accuracy_m: Optional[float] = None,
        their_accuracy_m: Optional[float] = None,
        my_speed_mps: Optional[float] = None
    ) -> DistanceEstimate:
        """
        Advance one peer's distance filter by one sample.

        Args:
            state: Peer filter state (window and smoothed distance are updated)
            my_position: Smoothed self position
            their_position: Smoothed peer position
            my_accuracy_m: Self accuracy (None if unknown)
            their_accuracy_m: Peer accuracy (None if unknown)
            my_speed_mps: Self speed (None counts as still)

        Returns:
            DistanceEstimate with every intermediate stage
        """
        raw_m = haversine(my_position, their_position)
        sigma_m = combined_sigma(my_accuracy_m, their_accuracy_m, self.config.default_accuracy_m)
        corrected_m = max(0.0, raw_m - self.config.accuracy_subtract_k * sigma_m)

        state.distance_window.append(corrected_m)
        median_m = window_median(state.distance_window)

        alpha = self.alpha_for_speed(my_speed_mps)
        if state.smoothed_distance is None:
            smoothed_m = median_m
        else:
            smoothed_m = state.smoothed_distance + alpha * (median_m - state.smoothed_distance)
        state.smoothed_distance = max(0.0, smoothed_m)

        self.metrics.increment('distance_updates')
        self.metrics.record_histogram('corrected_distance_m', corrected_m)

        return DistanceEstimate(
            raw_m=raw_m,
            corrected_m=corrected_m,
            median_m=median_m,
            smoothed_m=state.smoothed_distance,
            sigma_m=sigma_m,
        )

    def alpha_for_speed(self, speed_mps: Optional[float]) -> float:
        """EMA weight for the local device's motion state."""
        if speed_mps is None or speed_mps < self.config.still_speed_mps:
            return self.config.still_alpha
        return self.config.moving_alpha


def create_default_estimator() -> DistanceEstimator:
    """Create distance estimator with the default calibration."""
    return DistanceEstimator(DistanceEstimatorConfig())
