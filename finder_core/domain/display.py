"""
Presentation helpers for peer display records.

Rounding and labels are layered on top of the filtered float distance;
they never feed back into filter state.
"""

import math
from enum import Enum
from typing import Optional

from finder_core.localization.geo import angle_difference

LAST_SEEN_LABEL_AFTER_MS = 15000
AHEAD_TOLERANCE_DEG = 8.0


class TurnHint(Enum):
    """Textual direction hint shown next to an arrow."""

    HOLD_STEADY = 'hold_steady'
    AHEAD = 'ahead'
    TURN_RIGHT = 'turn_right'
    TURN_LEFT = 'turn_left'


def _round_half_up(value: float) -> float:
    # Built-in round() rounds halves to even
    return float(math.floor(value + 0.5))


def round_display_distance(distance_m: float) -> float:
    """
    Round a distance with tiered resolution.

    < 10 m -> 0.1 m, 10-100 m -> 5 m, >= 100 m -> 10 m
    """
    distance_m = max(0.0, distance_m)
    if distance_m < 10:
        return _round_half_up(distance_m * 10) / 10
    if distance_m < 100:
        return _round_half_up(distance_m / 5) * 5.0
    return _round_half_up(distance_m / 10) * 10.0


def format_distance(distance_m: float) -> str:
    """Human label: '9.4 m', '95 m', '1.2 km'."""
    rounded = round_display_distance(distance_m)
    if rounded < 10:
        return f"{rounded:.1f} m"
    if rounded < 1000:
        return f"{int(_round_half_up(rounded))} m"
    return f"{rounded / 1000:.1f} km"


def format_last_seen(age_ms: int) -> str:
    """Compact age label: '42s', '3m05s'."""
    seconds = max(0, int(age_ms // 1000))
    minutes, seconds = divmod(seconds, 60)
    if minutes:
        return f"{minutes}m{seconds:02d}s"
    return f"{seconds}s"


def should_show_last_seen(age_ms: int) -> bool:
    """Show the last-seen label once a peer is more than 15 s old."""
    return age_ms > LAST_SEEN_LABEL_AFTER_MS


def turn_hint(bearing_deg: float, heading_deg: Optional[float]) -> TurnHint:
    """
    Left/right hint towards a peer.

    Args:
        bearing_deg: Bearing from self to peer
        heading_deg: Stable heading, None when no heading is available

    Returns:
        HOLD_STEADY without heading, AHEAD within 8 degrees, else the
        direction of the shortest turn
    """
    if heading_deg is None:
        return TurnHint.HOLD_STEADY

    diff = angle_difference(bearing_deg, heading_deg)
    if abs(diff) < AHEAD_TOLERANCE_DEG:
        return TurnHint.AHEAD
    return TurnHint.TURN_RIGHT if diff > 0 else TurnHint.TURN_LEFT
