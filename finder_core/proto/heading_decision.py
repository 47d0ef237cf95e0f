"""
Heading Decision Schema.

Output of the heading arbiter for one tick: which source (if any) is
authoritative, its value, and whether the user should be hinted to hold
the phone steady.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class HeadingSource(Enum):
    """Authoritative heading source for a tick."""

    COMPASS = 'compass'
    GPS_COURSE = 'gps_course'
    NONE = 'none'


@dataclass(frozen=True)
class HeadingDecision:
    """
    Heading arbitration result.

    Attributes:
        source: Chosen source (NONE when no stable heading exists)
        heading_deg: Heading in [0, 360), None when source is NONE
        circular_variance: Variance of the compass buffer (1.0 when empty)
        unstable_for_ms: How long the heading has been unavailable (0 when stable)
        show_hint: True once instability has lasted past the hint threshold
    """

    source: HeadingSource
    heading_deg: Optional[float]
    circular_variance: float
    unstable_for_ms: int = 0
    show_hint: bool = False

    @property
    def is_stable(self) -> bool:
        return self.source != HeadingSource.NONE

    def to_dict(self) -> dict:
        return {
            'source': self.source.value,
            'heading_deg': self.heading_deg,
            'circular_variance': self.circular_variance,
            'unstable_for_ms': self.unstable_for_ms,
            'show_hint': self.show_hint,
        }


def create_no_heading(circular_variance: float = 1.0,
                      unstable_for_ms: int = 0,
                      show_hint: bool = False) -> HeadingDecision:
    """Create a decision meaning 'no stable heading this tick'."""
    return HeadingDecision(
        source=HeadingSource.NONE,
        heading_deg=None,
        circular_variance=circular_variance,
        unstable_for_ms=unstable_for_ms,
        show_hint=show_hint,
    )
