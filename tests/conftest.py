"""
Pytest configuration and shared fixtures for the peer finder fusion core tests.

This module provides reusable fixtures for geo math, filter components,
and end-to-end fusion engine scenarios.
"""

import sys
import math
from pathlib import Path
from typing import Dict, Optional

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from finder_core.config import FusionConfig
from finder_core.domain.fusion_engine import FusionEngine
from finder_core.localization.geo import EARTH_RADIUS_M
from finder_core.metrics import get_metrics
from finder_core.proto.samples import LatLng, RawFix, RawHeading
from finder_core.proto.peer_snapshot import PeerSnapshot


# =============================================================================
# Global State
# =============================================================================


@pytest.fixture(autouse=True)
def clean_metrics():
    """
    Reset the global metrics collector around every test.

    Components keep a reference to the singleton, so the same instance is
    cleared rather than replaced.
    """
    get_metrics().reset()
    yield get_metrics()
    get_metrics().reset()


# =============================================================================
# Position Fixtures
# =============================================================================


@pytest.fixture
def origin() -> LatLng:
    """Null Island, where degree offsets convert to meters most simply."""
    return LatLng(0.0, 0.0)


@pytest.fixture
def harbour() -> LatLng:
    """A mid-latitude reference point (Hong Kong area)."""
    return LatLng(22.2900, 114.1700)


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def fusion_config() -> FusionConfig:
    """Default fusion configuration."""
    return FusionConfig()


@pytest.fixture
def engine(fusion_config: FusionConfig) -> FusionEngine:
    """
    Fusion engine for local user 'me' with default configuration.

    Returns:
        FusionEngine with no state yet.
    """
    return FusionEngine('me', fusion_config)


@pytest.fixture
def stable_compass_engine(engine: FusionEngine) -> FusionEngine:
    """
    Fusion engine whose compass buffer holds a steady northward heading.

    Eight identical samples at t=0..700 ms make the compass stable.
    """
    for i in range(8):
        engine.on_heading(RawHeading(0.0, i * 100), at_ms=i * 100)
    return engine


# =============================================================================
# Helper Functions
# =============================================================================


def offset(point: LatLng, east_m: float = 0.0, north_m: float = 0.0) -> LatLng:
    """
    Move a point by a small metric offset.

    Args:
        point: Start point
        east_m: Offset towards east (m)
        north_m: Offset towards north (m)

    Returns:
        LatLng approximately east_m / north_m away from point.
    """
    d_lat = math.degrees(north_m / EARTH_RADIUS_M)
    d_lng = math.degrees(east_m / (EARTH_RADIUS_M * math.cos(math.radians(point.lat))))
    return LatLng(point.lat + d_lat, point.lng + d_lng)


def make_fix(
    position: LatLng,
    t_ms: int = 0,
    accuracy_m: Optional[float] = 10.0,
    speed_mps: Optional[float] = 0.0,
    course_deg: Optional[float] = None
) -> RawFix:
    """Build a RawFix at a position."""
    return RawFix(
        lat=position.lat,
        lng=position.lng,
        captured_at_ms=t_ms,
        accuracy_m=accuracy_m,
        speed_mps=speed_mps,
        course_deg=course_deg,
    )


def make_snapshot(
    peer_id: str,
    position: LatLng,
    updated_at_ms: int = 0,
    accuracy_m: Optional[float] = 10.0
) -> PeerSnapshot:
    """Build a PeerSnapshot at a position."""
    return PeerSnapshot(
        peer_id=peer_id,
        lat=position.lat,
        lng=position.lng,
        updated_at_ms=updated_at_ms,
        accuracy_m=accuracy_m,
    )


def snapshot_set(*snapshots: PeerSnapshot) -> Dict[str, PeerSnapshot]:
    """Key snapshots by peer id."""
    return {s.peer_id: s for s in snapshots}
