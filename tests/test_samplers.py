"""
Unit tests for sensor sampler adapters.

Tests cover:
- Fix normalisation (NaN / negative speed, course wrap, missing accuracy)
- Subscription fan-out, unsubscribe and stop
- Compass low-accuracy cooldown
- Shortest-arc low-pass filter
- Device orientation alpha conversion
"""

import math

import pytest

from finder_core.io.samplers import GeoSampler, HeadingSampler
from finder_core.proto.samples import RawFix, RawHeading


# =============================================================================
# Geo Sampler
# =============================================================================


class TestGeoSampler:
    """Tests for the location sampler adapter."""

    def test_emits_raw_fix(self):
        """Test a clean reading is passed through unchanged."""
        sampler = GeoSampler()
        received = []
        sampler.subscribe(received.append)

        fix = sampler.push(22.29, 114.17, 1000, accuracy=8.0, speed=1.2, course=45.0)

        assert received == [fix]
        assert isinstance(fix, RawFix)
        assert (fix.accuracy_m, fix.speed_mps, fix.course_deg) == (8.0, 1.2, 45.0)
        assert fix.captured_at_ms == 1000

    @pytest.mark.parametrize("speed", [float('nan'), -1.0, None, float('inf')])
    def test_bad_speed_becomes_none(self, speed):
        """Test NaN, negative and infinite speeds are reported as unknown."""
        fix = GeoSampler().push(0.0, 0.0, 0, speed=speed)
        assert fix.speed_mps is None

    @pytest.mark.parametrize("course,expected", [
        (-90.0, 270.0),
        (360.0, 0.0),
        (725.0, 5.0),
        (float('nan'), None),
        (None, None),
    ])
    def test_course_normalised(self, course, expected):
        """Test course is wrapped into [0, 360) or dropped."""
        fix = GeoSampler().push(0.0, 0.0, 0, course=course)
        if expected is None:
            assert fix.course_deg is None
        else:
            assert fix.course_deg == pytest.approx(expected)

    def test_bad_accuracy_becomes_none(self):
        """Test a NaN accuracy is reported as unknown."""
        assert GeoSampler().push(0.0, 0.0, 0, accuracy=float('nan')).accuracy_m is None

    def test_non_finite_coordinates_passed_through(self):
        """Test malformed coordinates reach the engine, which drops them."""
        fix = GeoSampler().push(float('nan'), 0.0, 0)
        assert not fix.is_finite

    def test_unsubscribe_idempotent(self):
        """Test unsubscribing twice is harmless."""
        sampler = GeoSampler()
        received = []
        sub = sampler.subscribe(received.append)

        sub.unsubscribe()
        sub.unsubscribe()
        sampler.push(0.0, 0.0, 0)

        assert received == []
        assert not sub.active
        assert sampler.subscriber_count == 0

    def test_stop_cancels_all(self):
        """Test stop removes every subscriber."""
        sampler = GeoSampler()
        subs = [sampler.subscribe(lambda fix: None) for _ in range(3)]

        sampler.stop()

        assert sampler.subscriber_count == 0
        assert all(not s.active for s in subs)

    def test_unavailable_flag(self):
        """Test a missing sensor is reported via the available flag."""
        assert not GeoSampler(available=False).available


# =============================================================================
# Heading Sampler
# =============================================================================


class TestHeadingSampler:
    """Tests for the orientation sampler adapter."""

    def test_first_sample_unfiltered(self):
        """Test the first reading initialises the filter."""
        sampler = HeadingSampler()
        received = []
        sampler.subscribe(received.append)

        sample = sampler.push(123.0, 0)

        assert isinstance(sample, RawHeading)
        assert sample.heading_deg == 123.0
        assert received == [sample]

    def test_low_pass(self):
        """Test later readings move by alpha of the difference."""
        sampler = HeadingSampler()
        sampler.push(0.0, 0)
        assert sampler.push(10.0, 100).heading_deg == pytest.approx(1.2)

    def test_low_pass_shortest_arc(self):
        """Test the filter crosses north instead of swinging through south."""
        sampler = HeadingSampler()
        sampler.push(350.0, 0)
        assert sampler.push(10.0, 100).heading_deg == pytest.approx(352.4)

    def test_low_accuracy_cooldown(self, clean_metrics):
        """Test readings are ignored for 1.5 s after a poor accuracy report."""
        sampler = HeadingSampler()
        received = []
        sampler.subscribe(received.append)

        assert sampler.push(90.0, 1000, accuracy_deg=30.0) is None
        assert sampler.push(90.0, 2000, accuracy_deg=5.0) is None
        assert sampler.push(90.0, 2500, accuracy_deg=5.0) is not None

        assert len(received) == 1
        assert clean_metrics.get_drop_count('compass_low_accuracy') == 2

    def test_accuracy_at_limit_accepted(self):
        """Test exactly 25 degrees accuracy is still accepted."""
        assert HeadingSampler().push(90.0, 0, accuracy_deg=25.0) is not None

    def test_nan_dropped(self, clean_metrics):
        """Test a NaN reading is dropped without poisoning the filter."""
        sampler = HeadingSampler()
        sampler.push(40.0, 0)

        assert sampler.push(math.nan, 100) is None
        assert clean_metrics.get_drop_count('malformed_heading') == 1
        assert sampler.push(40.0, 200).heading_deg == pytest.approx(40.0)

    @pytest.mark.parametrize("alpha,screen,expected", [
        (0.0, 0.0, 0.0),
        (90.0, 0.0, 270.0),
        (270.0, 0.0, 90.0),
        (90.0, 90.0, 0.0),
        (0.0, -90.0, 270.0),
        (10.0, 88.0, 80.0),
    ])
    def test_device_orientation(self, alpha, screen, expected):
        """Test alpha is converted to a clockwise heading with screen correction."""
        sample = HeadingSampler().push_device_orientation(alpha, 0, screen_angle_deg=screen)
        assert sample.heading_deg == pytest.approx(expected)

    def test_reset(self):
        """Test reset forgets filter state and cooldown."""
        sampler = HeadingSampler()
        sampler.push(0.0, 0)
        sampler.push(0.0, 100, accuracy_deg=50.0)

        sampler.reset()

        assert sampler.push(200.0, 200).heading_deg == 200.0

    def test_invalid_alpha(self):
        """Test filter weight outside (0, 1] is rejected."""
        with pytest.raises(AssertionError):
            HeadingSampler(alpha=0.0)
