"""
Peer Display Record Schema.

Defines the per-peer output of the fusion engine: a filtered distance,
a screen-relative rotation and a staleness class.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class StalenessClass(Enum):
    """How old a peer's last published location is."""

    FRESH = 'fresh'     # Full opacity
    AGING = 'aging'     # Reduced opacity
    OLD = 'old'         # Dashed / old indicator
    HIDDEN = 'hidden'   # Excluded from output


@dataclass
class PeerDisplayRecord:
    """
    Display-ready estimate for one peer.

    Attributes:
        peer_id: Peer identifier
        distance_m: Filtered distance (m), never negative
        rotation_deg: Smoothed on-screen rotation in [0, 360)
        staleness: Staleness class of the peer's snapshot
        last_seen_ms: Age of the peer's snapshot (ms)
        bearing_deg: Unsmoothed bearing from self to peer (degrees from north)
        accuracy_m: Peer's reported accuracy (m), None if unknown
        rotation_frozen: True if rotation was held because no stable heading exists
    """

    peer_id: str
    distance_m: float
    rotation_deg: float
    staleness: StalenessClass
    last_seen_ms: int
    bearing_deg: float = 0.0
    accuracy_m: Optional[float] = None
    rotation_frozen: bool = False

    def __post_init__(self):
        """Validate record."""
        if self.distance_m < 0:
            raise ValueError(f"Distance cannot be negative: {self.distance_m}")

        if not 0 <= self.rotation_deg < 360:
            raise ValueError(f"Rotation must be in [0,360): {self.rotation_deg}")

    @property
    def is_fresh(self) -> bool:
        return self.staleness == StalenessClass.FRESH

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'peer_id': self.peer_id,
            'distance_m': self.distance_m,
            'rotation_deg': self.rotation_deg,
            'staleness': self.staleness.value,
            'last_seen_ms': self.last_seen_ms,
            'bearing_deg': self.bearing_deg,
            'accuracy_m': self.accuracy_m,
            'rotation_frozen': self.rotation_frozen,
        }
