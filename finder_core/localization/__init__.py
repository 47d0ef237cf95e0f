"""
Localization Module: Position and heading filters.

Key classes:
- PositionSmoother: EMA with jump reset over lat/lng
- PeerPositionGate: Accuracy/jump gating against the last good position
- DistanceEstimator: Corrected, median-filtered, EMA-smoothed distance
- HeadingArbiter: Compass vs. GPS course selection by circular variance
- AngleSmoother: Deadband + slew-limited rotation smoothing
- WriteGate: Heartbeat / motion-triggered self publish policy
"""

# Geospatial primitives
from .geo import (
    EARTH_RADIUS_M,
    angle_difference,
    bearing,
    haversine,
    is_finite_position,
    normalize_angle,
)

# Position filtering
from .position_smoother import (
    PositionSmoother,
    PositionSmootherConfig,
    smooth_position,
)
from .peer_position_gate import (
    GateDecision,
    LastGoodPosition,
    PeerGateConfig,
    PeerPositionGate,
)
from .peer_filter_state import PeerFilterState
from .distance_estimator import (
    DistanceEstimate,
    DistanceEstimator,
    DistanceEstimatorConfig,
    combined_sigma,
    create_default_estimator,
    window_median,
)

# Heading filtering
from .heading_arbiter import (
    HeadingArbiter,
    HeadingArbiterConfig,
    HeadingBuffer,
    circular_variance,
)
from .angle_smoother import (
    AngleParams,
    AngleSmoother,
    AngleSmootherConfig,
    smooth_angle,
)

# Peer age classes
from .staleness import (
    StalenessConfig,
    classify_staleness,
)

# Publish policy
from .write_gate import (
    WriteGate,
    WriteGateConfig,
)

__all__ = [
    # Geo
    'EARTH_RADIUS_M',
    'angle_difference',
    'bearing',
    'haversine',
    'is_finite_position',
    'normalize_angle',
    # Position
    'PositionSmoother',
    'PositionSmootherConfig',
    'smooth_position',
    'GateDecision',
    'LastGoodPosition',
    'PeerGateConfig',
    'PeerPositionGate',
    'PeerFilterState',
    'DistanceEstimate',
    'DistanceEstimator',
    'DistanceEstimatorConfig',
    'combined_sigma',
    'create_default_estimator',
    'window_median',
    # Heading
    'HeadingArbiter',
    'HeadingArbiterConfig',
    'HeadingBuffer',
    'circular_variance',
    'AngleParams',
    'AngleSmoother',
    'AngleSmootherConfig',
    'smooth_angle',
    # Staleness
    'StalenessConfig',
    'classify_staleness',
    # Publish
    'WriteGate',
    'WriteGateConfig',
]
