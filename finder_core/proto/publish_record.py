"""
Publish Record Schema.

The self-location record the write gate decides to send to the sync store.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class PublishReason(Enum):
    """Why a fix was published."""

    HEARTBEAT = 'heartbeat'
    MOTION = 'motion'


@dataclass(frozen=True)
class PublishRecord:
    """
    Self location to publish upstream.

    Attributes:
        lat: Latitude (degrees), raw fix value
        lng: Longitude (degrees), raw fix value
        accuracy_m: Reported accuracy (m), None if unknown
        timestamp_ms: Publish time (ms)
        expire_at_ms: Time after which the sync store may discard the record
        reason: Heartbeat or motion trigger
    """

    lat: float
    lng: float
    accuracy_m: Optional[float]
    timestamp_ms: int
    expire_at_ms: int
    reason: PublishReason

    def to_document(self) -> dict:
        """Convert to the sync store location document shape."""
        return {
            'lat': self.lat,
            'lng': self.lng,
            'accuracy': self.accuracy_m,
            'updatedAt': self.timestamp_ms,
            'expireAt': self.expire_at_ms,
        }
