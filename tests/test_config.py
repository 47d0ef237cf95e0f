"""
Unit tests for the fusion calibration surface.

Tests cover:
- Default constants
- Nested overrides and validation
- Round trip through plain dictionaries
"""

import pytest

from finder_core.config import FusionConfig


class TestFusionConfig:
    """Tests for FusionConfig."""

    def test_defaults(self):
        """Test default calibration matches the documented constants."""
        config = FusionConfig()

        assert config.smoother.self_alpha == 0.25
        assert config.smoother.peer_alpha == 0.35
        assert config.smoother.jump_reset_m == 100.0
        assert config.gate.max_fresh_accuracy_m == 120.0
        assert config.gate.max_fresh_jump_m == 60.0
        assert config.heading.min_samples == 6
        assert config.heading.stable_variance == 0.12
        assert config.write.heartbeat_ms == 15000
        assert config.staleness.hide_after_ms == 300000
        assert config.hidden_retention_ms == 60000

    def test_from_dict_overrides(self):
        """Test nested overrides replace only the named keys."""
        config = FusionConfig.from_dict({
            'distance': {'accuracy_subtract_k': 0.4},
            'angle': {'still_deadband_deg': 4.0},
            'hidden_retention_ms': 0,
        })

        assert config.distance.accuracy_subtract_k == 0.4
        assert config.distance.median_window == 3
        assert config.angle.still_deadband_deg == 4.0
        assert config.angle.moving_deadband_deg == 8.0
        assert config.hidden_retention_ms == 0

    def test_from_dict_empty(self):
        """Test no overrides gives defaults."""
        assert FusionConfig.from_dict(None) == FusionConfig()
        assert FusionConfig.from_dict({}) == FusionConfig()

    def test_unknown_section_rejected(self):
        """Test a misspelled section fails loudly."""
        with pytest.raises(ValueError, match='Unknown config section'):
            FusionConfig.from_dict({'distanse': {'accuracy_subtract_k': 0.4}})

    def test_unknown_key_rejected(self):
        """Test a misspelled key fails loudly."""
        with pytest.raises(ValueError, match='Unknown keys'):
            FusionConfig.from_dict({'distance': {'k': 0.4}})

    def test_section_must_be_mapping(self):
        """Test a scalar cannot replace a whole section."""
        with pytest.raises(ValueError, match='must be a mapping'):
            FusionConfig.from_dict({'distance': 0.4})

    def test_invalid_value_rejected(self):
        """Test section validation still runs on overridden values."""
        with pytest.raises(AssertionError):
            FusionConfig.from_dict({'distance': {'median_window': 9}})

    def test_to_dict_round_trip(self):
        """Test to_dict output feeds back into from_dict."""
        config = FusionConfig.from_dict({'write': {'min_move_m': 5.0}})
        data = config.to_dict()

        assert data['write']['min_move_m'] == 5.0
        assert data['hidden_retention_ms'] == 60000
        assert FusionConfig.from_dict(data) == config
