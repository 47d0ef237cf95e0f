"""
Angle Smoother (deadband + slew limit).

Smooths each peer's on-screen rotation so the arrow ignores sensor
micro-jitter and never snaps across the dial in a single update.
"""

from typing import Optional
from dataclasses import dataclass

from finder_core.localization.geo import angle_difference, normalize_angle
from finder_core.localization.peer_filter_state import PeerFilterState


@dataclass
class AngleSmootherConfig:
    """
    Configuration for rotation smoothing.

    Attributes:
        still_alpha: Blend weight when the local device is slow
        still_deadband_deg: Deltas below this are ignored when slow (degrees)
        still_max_step_deg: Maximum step per update when slow (degrees)
        moving_alpha: Blend weight when moving fast
        moving_deadband_deg: Deadband when moving fast (degrees)
        moving_max_step_deg: Maximum step per update when moving fast (degrees)
        fast_speed_mps: Speed above which the moving parameters apply (m/s)
    """

    still_alpha: float = 0.55
    still_deadband_deg: float = 6.0
    still_max_step_deg: float = 5.0
    moving_alpha: float = 0.65
    moving_deadband_deg: float = 8.0
    moving_max_step_deg: float = 7.0
    fast_speed_mps: float = 1.0

    def __post_init__(self):
        """Validate configuration."""
        assert 0 < self.still_alpha <= 1, "still_alpha must be in (0, 1]"
        assert 0 < self.moving_alpha <= 1, "moving_alpha must be in (0, 1]"
        assert self.still_deadband_deg >= 0, "still_deadband_deg cannot be negative"
        assert self.moving_deadband_deg >= 0, "moving_deadband_deg cannot be negative"
        assert self.still_max_step_deg > 0, "still_max_step_deg must be positive"
        assert self.moving_max_step_deg > 0, "moving_max_step_deg must be positive"


@dataclass(frozen=True)
class AngleParams:
    """Smoothing parameters for one update."""

    alpha: float
    deadband_deg: float
    max_step_deg: float


def smooth_angle(
    prev: Optional[float],
    target: float,
    alpha: float,
    deadband_deg: float,
    max_step_deg: float
) -> float:
    """
    Move prev towards target along the shortest arc.

    Args:
        prev: Previous smoothed angle (None on cold start)
        target: Target angle (degrees)
        alpha: Blend weight applied to the limited step
        deadband_deg: Deltas smaller than this leave prev unchanged
        max_step_deg: Step magnitude cap before blending

    Returns:
        Smoothed angle in [0, 360)
    """
    if prev is None:
        return normalize_angle(target)

    delta = angle_difference(target, prev)
    if abs(delta) < deadband_deg:
        return prev

    step = min(abs(delta), max_step_deg)
    if delta < 0:
        step = -step

    return normalize_angle(prev + alpha * step)


class AngleSmoother:
    """
    Motion-adaptive rotation smoothing for peer arrows.

    Usage:
        smoother = AngleSmoother(config)

        if decision.is_stable:
            target = normalize_angle(bearing - decision.heading_deg)
            rotation = smoother.update(state, target, speed_mps)
        else:
            rotation = smoother.hold(state)

    The smoothed angle lives in the peer's PeerFilterState.
    """

    def __init__(self, config: Optional[AngleSmootherConfig] = None):
        """
        Initialize angle smoother.

        Args:
            config: Smoother configuration (uses defaults if None)
        """
        self.config = config or AngleSmootherConfig()

    def params_for_speed(self, speed_mps: Optional[float]) -> AngleParams:
        """Pick smoothing parameters for the local device's motion state."""
        if speed_mps is not None and speed_mps > self.config.fast_speed_mps:
            return AngleParams(
                alpha=self.config.moving_alpha,
                deadband_deg=self.config.moving_deadband_deg,
                max_step_deg=self.config.moving_max_step_deg,
            )
        return AngleParams(
            alpha=self.config.still_alpha,
            deadband_deg=self.config.still_deadband_deg,
            max_step_deg=self.config.still_max_step_deg,
        )

    def update(self, state: PeerFilterState, target_deg: float,
               speed_mps: Optional[float]) -> float:
        """Advance the peer's rotation towards target_deg."""
        params = self.params_for_speed(speed_mps)
        state.smoothed_angle = smooth_angle(
            state.smoothed_angle,
            target_deg,
            params.alpha,
            params.deadband_deg,
            params.max_step_deg,
        )
        return state.smoothed_angle

    def hold(self, state: PeerFilterState) -> Optional[float]:
        """Return the frozen rotation without advancing it."""
        return state.smoothed_angle
