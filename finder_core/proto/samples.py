"""
Raw sensor sample schemas.

Defines the immutable samples emitted by the location and orientation
samplers and consumed once per fusion tick.

Angles are degrees clockwise from true north in [0, 360).
Timestamps are integer milliseconds from the device's local clock.
"""

from dataclasses import dataclass
from typing import Any, Optional
import math


def finite_or_none(value: Optional[float]) -> Optional[float]:
    """Map NaN and infinities in an optional reading to None."""
    if value is None or not math.isfinite(value):
        return None
    return value


def clear_non_finite(record: Any, *names: str):
    """Replace non-finite optional fields of a frozen record with None."""
    for name in names:
        object.__setattr__(record, name, finite_or_none(getattr(record, name)))


@dataclass(frozen=True)
class LatLng:
    """WGS84 latitude/longitude pair in degrees."""

    lat: float
    lng: float

    @property
    def is_finite(self) -> bool:
        """True if both coordinates are finite numbers."""
        return math.isfinite(self.lat) and math.isfinite(self.lng)

    def to_dict(self) -> dict:
        return {'lat': self.lat, 'lng': self.lng}


@dataclass(frozen=True)
class RawFix:
    """
    Raw self-position fix from the location sensor.

    Attributes:
        lat: Latitude (degrees)
        lng: Longitude (degrees)
        captured_at_ms: Capture time (ms, local clock)
        accuracy_m: Reported horizontal accuracy radius (m), None if unknown
        speed_mps: Ground speed (m/s), None if unknown
        course_deg: Travel course (degrees from north), None if unknown

    Notes:
        - Non-finite coordinates are allowed here; the engine drops them
        - Non-finite optional fields are stored as None
    """

    lat: float
    lng: float
    captured_at_ms: int
    accuracy_m: Optional[float] = None
    speed_mps: Optional[float] = None
    course_deg: Optional[float] = None

    def __post_init__(self):
        """Normalize and validate optional fields."""
        clear_non_finite(self, 'accuracy_m', 'speed_mps', 'course_deg')

        if self.accuracy_m is not None and self.accuracy_m < 0:
            raise ValueError(f"Accuracy cannot be negative: {self.accuracy_m}")

        if self.speed_mps is not None and self.speed_mps < 0:
            raise ValueError(f"Speed cannot be negative: {self.speed_mps}")

        if self.course_deg is not None and not 0 <= self.course_deg < 360:
            raise ValueError(f"Course must be in [0,360): {self.course_deg}")

    @property
    def position(self) -> LatLng:
        """Fix position as a LatLng."""
        return LatLng(self.lat, self.lng)

    @property
    def is_finite(self) -> bool:
        """True if the fix coordinates are usable."""
        return math.isfinite(self.lat) and math.isfinite(self.lng)

    @property
    def has_course(self) -> bool:
        return self.course_deg is not None


@dataclass(frozen=True)
class RawHeading:
    """
    Raw compass heading from the orientation sensor.

    Attributes:
        heading_deg: Heading in [0, 360), clockwise from true north
        captured_at_ms: Capture time (ms, local clock)
        accuracy_deg: Device-reported accuracy (degrees), None if unavailable
    """

    heading_deg: float
    captured_at_ms: int
    accuracy_deg: Optional[float] = None

    def __post_init__(self):
        clear_non_finite(self, 'accuracy_deg')

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.heading_deg)
