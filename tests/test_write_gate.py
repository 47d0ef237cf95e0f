"""
Unit tests for the self-publish write gate.

Tests cover:
- First fix always published
- Heartbeat after 15 s regardless of movement
- Motion trigger (distance or accuracy gain) after 2.5 s
- Suppression below the minimum interval
- Published record shape and expiry
"""

import pytest

from finder_core.localization.write_gate import WriteGate, WriteGateConfig
from finder_core.proto.publish_record import PublishReason

from conftest import make_fix, offset


@pytest.fixture
def gate() -> WriteGate:
    """Write gate with default policy."""
    return WriteGate(WriteGateConfig())


class TestWriteGate:
    """Tests for publish decisions."""

    def test_first_fix_published(self, gate, harbour):
        """Test the first fix of a session is published immediately."""
        record = gate.evaluate(make_fix(harbour), 1000)
        assert record is not None
        assert record.reason == PublishReason.HEARTBEAT
        assert gate.last_published == record

    def test_stationary_suppressed_until_heartbeat(self, gate, harbour, clean_metrics):
        """Test a still device publishes only on heartbeat."""
        gate.evaluate(make_fix(harbour), 0)

        for t in range(1000, 15000, 1000):
            assert gate.evaluate(make_fix(harbour), t) is None

        record = gate.evaluate(make_fix(harbour), 15000)
        assert record is not None
        assert record.reason == PublishReason.HEARTBEAT
        assert clean_metrics.get_drop_count('write_suppressed') == 14

    def test_motion_publishes_after_min_interval(self, gate, harbour):
        """Test moving 3 m after 2.5 s publishes a motion record."""
        gate.evaluate(make_fix(harbour), 0)
        moved = make_fix(offset(harbour, east_m=3.5))

        assert gate.evaluate(moved, 2000) is None
        record = gate.evaluate(moved, 2500)
        assert record is not None
        assert record.reason == PublishReason.MOTION

    def test_small_motion_suppressed(self, gate, harbour):
        """Test moving less than 3 m without accuracy gain is suppressed."""
        gate.evaluate(make_fix(harbour, accuracy_m=10.0), 0)
        assert gate.evaluate(make_fix(offset(harbour, east_m=2.0), accuracy_m=10.0), 5000) is None

    def test_accuracy_gain_publishes(self, gate, harbour):
        """Test accuracy improving by more than 5 m publishes without movement."""
        gate.evaluate(make_fix(harbour, accuracy_m=30.0), 0)

        assert gate.evaluate(make_fix(harbour, accuracy_m=25.0), 3000) is None
        record = gate.evaluate(make_fix(harbour, accuracy_m=24.0), 3000)
        assert record is not None
        assert record.reason == PublishReason.MOTION
        assert record.accuracy_m == 24.0

    def test_unknown_accuracy_counts_as_improved(self, gate, harbour):
        """Test fixes without accuracy still publish on the motion interval."""
        gate.evaluate(make_fix(harbour, accuracy_m=None), 0)
        record = gate.evaluate(make_fix(harbour, accuracy_m=None), 2500)
        assert record is not None

    def test_motion_measured_from_last_publish(self, gate, harbour):
        """Test small suppressed moves accumulate against the last published fix."""
        gate.evaluate(make_fix(harbour), 0)
        assert gate.evaluate(make_fix(offset(harbour, east_m=2.0)), 3000) is None
        assert gate.evaluate(make_fix(offset(harbour, east_m=4.0)), 4000) is not None

    def test_record_shape(self, gate, harbour):
        """Test the published document carries raw coordinates and expiry."""
        fix = make_fix(harbour, accuracy_m=7.0)
        record = gate.evaluate(fix, 5000)
        doc = record.to_document()

        assert doc == {
            'lat': harbour.lat,
            'lng': harbour.lng,
            'accuracy': 7.0,
            'updatedAt': 5000,
            'expireAt': 5000 + 12 * 60 * 60 * 1000,
        }

    def test_reset(self, gate, harbour):
        """Test reset makes the next fix publish immediately."""
        gate.evaluate(make_fix(harbour), 0)
        gate.reset()
        assert gate.last_published is None
        assert gate.evaluate(make_fix(harbour), 100) is not None

    def test_statistics(self, gate, harbour):
        """Test statistics split heartbeats, motion and suppressed."""
        gate.evaluate(make_fix(harbour), 0)
        gate.evaluate(make_fix(harbour), 1000)
        gate.evaluate(make_fix(offset(harbour, north_m=10.0)), 3000)

        stats = gate.get_statistics()
        assert stats['publishes'] == 2
        assert stats['heartbeats'] == 1
        assert stats['motion'] == 1
        assert stats['suppressed'] == 1


class TestWriteGateConfig:
    """Tests for configuration validation."""

    def test_motion_interval_within_heartbeat(self):
        """Test motion interval longer than heartbeat is rejected."""
        with pytest.raises(AssertionError):
            WriteGateConfig(heartbeat_ms=1000, motion_min_interval_ms=2000)

    def test_custom_heartbeat(self, harbour):
        """Test heartbeat interval is configurable."""
        gate = WriteGate(WriteGateConfig(heartbeat_ms=5000, motion_min_interval_ms=1000))
        gate.evaluate(make_fix(harbour), 0)
        assert gate.evaluate(make_fix(harbour), 5000).reason == PublishReason.HEARTBEAT
