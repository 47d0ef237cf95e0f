"""
Unit tests for sample and record schemas.

Tests cover:
- RawFix validation of optional fields, non-finite readings as None
- PeerSnapshot parsing from sync store documents
- Display record validation and serialization
"""

import math

import pytest

from finder_core.proto import (
    HeadingSource,
    PeerDisplayRecord,
    PeerSnapshot,
    RawFix,
    RawHeading,
    StalenessClass,
    create_no_heading,
)


class TestRawFix:
    """Tests for RawFix."""

    def test_optional_fields_default_unknown(self):
        """Test accuracy, speed and course default to None."""
        fix = RawFix(22.3, 114.2, 0)
        assert fix.accuracy_m is None
        assert fix.speed_mps is None
        assert not fix.has_course

    @pytest.mark.parametrize("kwargs", [
        {'accuracy_m': -1.0},
        {'speed_mps': -0.1},
        {'course_deg': 360.0},
        {'course_deg': -5.0},
    ])
    def test_invalid_optional_fields(self, kwargs):
        """Test out-of-range optional values are rejected."""
        with pytest.raises(ValueError):
            RawFix(0.0, 0.0, 0, **kwargs)

    def test_is_finite(self):
        """Test non-finite coordinates are constructible but flagged."""
        assert RawFix(0.0, 0.0, 0).is_finite
        assert not RawFix(math.inf, 0.0, 0).is_finite

    @pytest.mark.parametrize("field", ['accuracy_m', 'speed_mps', 'course_deg'])
    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_non_finite_optional_becomes_none(self, field, value):
        """Test NaN and infinite optional readings are stored as unknown."""
        fix = RawFix(0.0, 0.0, 0, **{field: value})
        assert getattr(fix, field) is None


class TestRawHeading:
    """Tests for RawHeading."""

    def test_nan_accuracy_becomes_none(self):
        """Test a NaN accuracy side channel is stored as unknown."""
        heading = RawHeading(90.0, 0, accuracy_deg=math.nan)
        assert heading.accuracy_deg is None
        assert heading.is_finite


class TestPeerSnapshot:
    """Tests for PeerSnapshot parsing."""

    def test_from_document(self):
        """Test a complete document parses."""
        snap = PeerSnapshot.from_document(
            'bob', {'lat': 22.3, 'lng': 114.2, 'accuracy': 12, 'updatedAt': 5000})

        assert snap.peer_id == 'bob'
        assert (snap.lat, snap.lng) == (22.3, 114.2)
        assert snap.accuracy_m == 12.0
        assert snap.updated_at_ms == 5000
        assert snap.age_ms(6500) == 1500

    @pytest.mark.parametrize("accuracy", [None, 'bad', -3, float('nan')])
    def test_unusable_accuracy_is_unknown(self, accuracy):
        """Test missing or invalid accuracy becomes None."""
        snap = PeerSnapshot.from_document('bob', {'lat': 1.0, 'lng': 2.0, 'accuracy': accuracy})
        assert snap.accuracy_m is None

    @pytest.mark.parametrize("doc", [
        {'lat': 'north', 'lng': 2.0},
        {'lng': 2.0},
        {'lat': True, 'lng': 2.0},
        {'lat': 1.0, 'lng': None},
    ])
    def test_bad_coordinates_become_nan(self, doc):
        """Test unusable coordinates are flagged instead of raising."""
        assert not PeerSnapshot.from_document('bob', doc).is_finite

    @pytest.mark.parametrize("accuracy", [math.nan, math.inf, -4.0])
    def test_constructor_clears_unusable_accuracy(self, accuracy):
        """Test direct construction also maps unusable accuracy to None."""
        snap = PeerSnapshot('bob', 1.0, 2.0, 0, accuracy_m=accuracy)
        assert snap.accuracy_m is None

    def test_numeric_strings_accepted(self):
        """Test numbers serialised as strings still parse."""
        snap = PeerSnapshot.from_document('bob', {'lat': '1.5', 'lng': '2.5', 'updatedAt': '100'})
        assert snap.is_finite
        assert snap.updated_at_ms == 100


class TestPeerDisplayRecord:
    """Tests for PeerDisplayRecord."""

    def test_negative_distance_rejected(self):
        """Test a negative distance is a programming error."""
        with pytest.raises(ValueError):
            PeerDisplayRecord('bob', -1.0, 0.0, StalenessClass.FRESH, 0)

    def test_rotation_range(self):
        """Test rotation must lie in [0, 360)."""
        with pytest.raises(ValueError):
            PeerDisplayRecord('bob', 1.0, 360.0, StalenessClass.FRESH, 0)

    def test_to_dict(self):
        """Test serialization uses plain values."""
        record = PeerDisplayRecord('bob', 12.5, 45.0, StalenessClass.AGING, 40000)
        data = record.to_dict()
        assert data['staleness'] == 'aging'
        assert data['distance_m'] == 12.5
        assert not record.is_fresh


class TestHeadingDecision:
    """Tests for HeadingDecision."""

    def test_no_heading(self):
        """Test the no-heading decision is unstable with no value."""
        decision = create_no_heading(unstable_for_ms=2000, show_hint=True)
        assert decision.source == HeadingSource.NONE
        assert decision.heading_deg is None
        assert not decision.is_stable
        assert decision.to_dict()['show_hint'] is True
