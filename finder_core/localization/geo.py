"""
Geospatial primitives.

Great-circle distance and initial bearing on a spherical Earth, plus the
angle normalisation helpers every heading/rotation filter relies on.

Conventions:
- Angles in degrees, clockwise from true north, stored in [0, 360)
- Angle differences normalised to (-180, 180]
- Both formulas use atan2 so they stay defined near poles and antipodes
"""

import math

from finder_core.proto.samples import LatLng

EARTH_RADIUS_M = 6371000.0


def normalize_angle(degrees: float) -> float:
    """
    Wrap an angle into [0, 360).

    Args:
        degrees: Any finite angle

    Returns:
        Equivalent angle in [0, 360)
    """
    wrapped = degrees % 360.0
    # -1e-15 % 360 rounds to 360.0
    if wrapped >= 360.0:
        return 0.0
    return wrapped


def angle_difference(target: float, reference: float) -> float:
    """
    Shortest signed rotation from reference to target.

    Returns:
        Delta in (-180, 180]; positive means clockwise
    """
    delta = normalize_angle(target - reference)
    if delta > 180.0:
        delta -= 360.0
    return delta


def is_finite_position(lat: float, lng: float) -> bool:
    """True if both coordinates are finite numbers."""
    return math.isfinite(lat) and math.isfinite(lng)


def haversine(origin: LatLng, target: LatLng) -> float:
    """
    Great-circle distance between two points.

    Args:
        origin: Start point
        target: End point

    Returns:
        Distance in meters (always >= 0)
    """
    phi1 = math.radians(origin.lat)
    phi2 = math.radians(target.lat)
    d_phi = phi2 - phi1
    d_lambda = math.radians(target.lng - origin.lng)

    a = (math.sin(d_phi / 2) ** 2
         + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2)
    # Rounding can push a a hair outside [0, 1]
    a = min(1.0, max(0.0, a))

    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bearing(origin: LatLng, target: LatLng) -> float:
    """
    Initial bearing (forward azimuth) from origin to target.

    Args:
        origin: Start point
        target: End point

    Returns:
        Degrees clockwise from true north in [0, 360)
    """
    phi1 = math.radians(origin.lat)
    phi2 = math.radians(target.lat)
    d_lambda = math.radians(target.lng - origin.lng)

    y = math.sin(d_lambda) * math.cos(phi2)
    x = (math.cos(phi1) * math.sin(phi2)
         - math.sin(phi1) * math.cos(phi2) * math.cos(d_lambda))

    return normalize_angle(math.degrees(math.atan2(y, x)))
