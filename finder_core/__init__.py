"""
Peer Finder Fusion Core.

Turns noisy GPS fixes, compass samples and peer location snapshots into a
stable per-peer distance and arrow rotation for a group-finding screen.

Package structure:
- io: Sensor sampler adapters, session replay
- proto: Sample, snapshot, display and publish records
- localization: Geo math, position/distance/heading filters, publish policy
- domain: Fusion engine, display helpers, proximity cues
- metrics: Diagnostics, counters, histograms
"""

__version__ = "0.1.0"

from .config import FusionConfig
from .domain.fusion_engine import FusionEngine, FusionOutput
from .metrics import get_metrics

__all__ = [
    'FusionConfig',
    'FusionEngine',
    'FusionOutput',
    'get_metrics',
]
