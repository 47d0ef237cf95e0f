"""
Protocol Module: Sample, snapshot and output schemas.

- Raw sensor samples (fixes, compass headings)
- Peer snapshots from the sync store
- Per-peer display records and self publish records
- Heading arbitration decisions
"""

from .samples import (
    LatLng,
    RawFix,
    RawHeading,
)
from .peer_snapshot import PeerSnapshot
from .display_record import (
    PeerDisplayRecord,
    StalenessClass,
)
from .publish_record import (
    PublishRecord,
    PublishReason,
)
from .heading_decision import (
    HeadingDecision,
    HeadingSource,
    create_no_heading,
)

__all__ = [
    # Samples
    'LatLng',
    'RawFix',
    'RawHeading',
    # Inputs
    'PeerSnapshot',
    # Outputs
    'PeerDisplayRecord',
    'StalenessClass',
    'PublishRecord',
    'PublishReason',
    'HeadingDecision',
    'HeadingSource',
    'create_no_heading',
]
