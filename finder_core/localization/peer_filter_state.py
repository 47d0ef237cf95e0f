"""
Per-peer filter state.

One instance per currently-known peer id, owned exclusively by the fusion
engine of the current session. Created on first sighting of a peer and
discarded when the peer leaves the snapshot set.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional

from finder_core.proto.samples import LatLng
from finder_core.localization.peer_position_gate import LastGoodPosition


@dataclass
class PeerFilterState:
    """
    Mutable filter state for one peer.

    Attributes:
        peer_id: Peer identifier
        smoothed_position: EMA of gated positions (None before first sample)
        last_good: Last position that met the quality bar
        distance_window: Recent corrected distances (bounded FIFO)
        smoothed_distance: EMA over the window median (m, >= 0)
        smoothed_angle: Smoothed screen rotation in [0, 360)
        bearing_deg: Bearing computed at the last distance update
        hidden_since_ms: When the peer first crossed the hide threshold
    """

    peer_id: str
    median_window: int = 3
    smoothed_position: Optional[LatLng] = None
    last_good: Optional[LastGoodPosition] = None
    distance_window: Deque[float] = field(default=None)
    smoothed_distance: Optional[float] = None
    smoothed_angle: Optional[float] = None
    bearing_deg: Optional[float] = None
    hidden_since_ms: Optional[int] = None

    def __post_init__(self):
        """Create the bounded distance window."""
        if self.distance_window is None:
            self.distance_window = deque(maxlen=self.median_window)

    @property
    def has_distance(self) -> bool:
        return self.smoothed_distance is not None
