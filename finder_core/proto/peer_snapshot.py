"""
Peer Snapshot Schema.

Read-only view of a peer's last published location, as delivered by the
external realtime sync store. The engine never mutates a snapshot.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional
import math

from .samples import LatLng, clear_non_finite


def _as_float(value: Any) -> float:
    """Coerce a document field to float, NaN when not numeric."""
    if isinstance(value, bool):
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


@dataclass(frozen=True)
class PeerSnapshot:
    """
    Snapshot of one peer's published location.

    Attributes:
        peer_id: Peer identifier (sync store document id)
        lat: Latitude (degrees)
        lng: Longitude (degrees)
        updated_at_ms: Time the peer published this location (ms)
        accuracy_m: Reported accuracy (m), None if the peer did not send one
    """

    peer_id: str
    lat: float
    lng: float
    updated_at_ms: int
    accuracy_m: Optional[float] = None

    def __post_init__(self):
        # Sync documents are untrusted; unusable accuracy becomes unknown
        clear_non_finite(self, 'accuracy_m')
        if self.accuracy_m is not None and self.accuracy_m < 0:
            object.__setattr__(self, 'accuracy_m', None)

    @property
    def position(self) -> LatLng:
        return LatLng(self.lat, self.lng)

    @property
    def is_finite(self) -> bool:
        """True if coordinates are usable."""
        return math.isfinite(self.lat) and math.isfinite(self.lng)

    def age_ms(self, now_ms: int) -> int:
        """Age of this snapshot relative to now (ms)."""
        return now_ms - self.updated_at_ms

    @classmethod
    def from_document(cls, peer_id: str, doc: Mapping[str, Any]) -> 'PeerSnapshot':
        """
        Build a snapshot from a sync store document.

        Args:
            peer_id: Document id
            doc: Mapping with lat, lng, accuracy (optional), updatedAt

        Returns:
            PeerSnapshot (non-numeric coordinates become NaN so the engine
            drops the peer instead of this parser raising)
        """
        accuracy = doc.get('accuracy')
        accuracy_m = _as_float(accuracy) if accuracy is not None else None

        updated_at = _as_float(doc.get('updatedAt', 0))
        updated_at_ms = int(updated_at) if math.isfinite(updated_at) else 0

        return cls(
            peer_id=peer_id,
            lat=_as_float(doc.get('lat')),
            lng=_as_float(doc.get('lng')),
            updated_at_ms=updated_at_ms,
            accuracy_m=accuracy_m,
        )
