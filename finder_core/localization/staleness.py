"""
Peer staleness classification.

Buckets a peer snapshot by age. Staleness is never an error: old peers are
shown with a degraded style and eventually hidden.
"""

from dataclasses import dataclass
from typing import Optional

from finder_core.proto.display_record import StalenessClass


@dataclass
class StalenessConfig:
    """
    Age thresholds for staleness classes.

    Attributes:
        aging_after_ms: Age from which a peer is AGING (ms)
        old_after_ms: Age from which a peer is OLD (ms)
        hide_after_ms: Age from which a peer is HIDDEN (ms)
    """

    aging_after_ms: int = 30000
    old_after_ms: int = 120000
    hide_after_ms: int = 300000

    def __post_init__(self):
        """Validate configuration."""
        assert 0 < self.aging_after_ms < self.old_after_ms < self.hide_after_ms, \
            "staleness thresholds must be strictly increasing"


def classify_staleness(age_ms: int, config: Optional[StalenessConfig] = None) -> StalenessClass:
    """
    Classify a snapshot age.

    Args:
        age_ms: now - updated_at (ms); negative ages (peer clock ahead)
            count as fresh
        config: Thresholds (defaults if None)

    Returns:
        FRESH < 30 s <= AGING < 120 s <= OLD < 300 s <= HIDDEN
    """
    config = config or StalenessConfig()

    if age_ms < config.aging_after_ms:
        return StalenessClass.FRESH
    if age_ms < config.old_after_ms:
        return StalenessClass.AGING
    if age_ms < config.hide_after_ms:
        return StalenessClass.OLD
    return StalenessClass.HIDDEN
