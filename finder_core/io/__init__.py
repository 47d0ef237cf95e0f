"""
I/O Module: Sensor sampler adapters and session replay.

- samplers: Normalise platform location/orientation callbacks into samples
- replay: JSON-lines session files fed through a FusionEngine
"""

from .samplers import (
    GeoSampler,
    HeadingSampler,
    Subscription,
)
from .replay import (
    EVENT_TYPES,
    ReplayEvent,
    SessionReplayer,
    load_session,
    parse_event,
    read_events,
)

__all__ = [
    'GeoSampler',
    'HeadingSampler',
    'Subscription',
    'EVENT_TYPES',
    'ReplayEvent',
    'SessionReplayer',
    'load_session',
    'parse_event',
    'read_events',
]
