"""
Position Smoother (EMA with jump reset).

Exponential smoothing of latitude/longitude for a single subject (self,
or one peer). Jumps larger than a reset distance are treated as a sensor
glitch or a teleport and are taken as-is rather than blended.
"""

from typing import Optional
from dataclasses import dataclass

from finder_core.proto.samples import LatLng
from finder_core.localization.geo import haversine
from finder_core.metrics import get_metrics


@dataclass
class PositionSmootherConfig:
    """
    Configuration for position smoothing.

    Attributes:
        self_alpha: EMA weight for the local device (slower, steadier)
        peer_alpha: EMA weight for peers (faster, peer data is already sparse)
        jump_reset_m: Jumps beyond this distance reset instead of blending (m)
    """

    self_alpha: float = 0.25
    peer_alpha: float = 0.35
    jump_reset_m: float = 100.0

    def __post_init__(self):
        """Validate configuration."""
        assert 0 < self.self_alpha <= 1, "self_alpha must be in (0, 1]"
        assert 0 < self.peer_alpha <= 1, "peer_alpha must be in (0, 1]"
        assert self.jump_reset_m > 0, "jump_reset_m must be positive"


def smooth_position(
    prev: Optional[LatLng],
    next_pos: LatLng,
    alpha: float,
    jump_reset_m: float = 100.0
) -> LatLng:
    """
    Blend a new position into the previous smoothed one.

    Args:
        prev: Previous smoothed position (None on cold start)
        next_pos: New (gated) position
        alpha: EMA weight of the new position
        jump_reset_m: Reset distance (m)

    Returns:
        next_pos unchanged on cold start or when the jump exceeds
        jump_reset_m; otherwise prev + alpha * (next - prev) per axis

    Notes:
        - Inputs must be finite; malformed samples are dropped upstream
    """
    if prev is None:
        return next_pos

    if haversine(prev, next_pos) > jump_reset_m:
        return next_pos

    return LatLng(
        lat=prev.lat + alpha * (next_pos.lat - prev.lat),
        lng=prev.lng + alpha * (next_pos.lng - prev.lng),
    )


class PositionSmoother:
    """
    Stateful smoother owning one subject's smoothed position.

    Usage:
        smoother = PositionSmoother(alpha=0.25)
        smoothed = smoother.update(fix.position)
    """

    def __init__(self, alpha: float, jump_reset_m: float = 100.0):
        """
        Initialize smoother.

        Args:
            alpha: EMA weight for this subject
            jump_reset_m: Reset distance (m)
        """
        self.alpha = alpha
        self.jump_reset_m = jump_reset_m
        self.metrics = get_metrics()
        self._position: Optional[LatLng] = None

    @property
    def position(self) -> Optional[LatLng]:
        """Current smoothed position (None before the first update)."""
        return self._position

    def update(self, next_pos: LatLng) -> LatLng:
        """Smooth next_pos into the current state and return the result."""
        if self._position is not None and haversine(self._position, next_pos) > self.jump_reset_m:
            self.metrics.increment('position_jump_resets')

        self._position = smooth_position(self._position, next_pos, self.alpha, self.jump_reset_m)
        return self._position

    def reset(self):
        """Forget the smoothed position."""
        self._position = None
