"""
Fusion engine calibration surface.

All filter constants are tunable. FusionConfig gathers the per-component
configs so a single object (or a nested dictionary of overrides) calibrates
the whole pipeline.

Usage:
    config = FusionConfig.from_dict({
        'distance': {'accuracy_subtract_k': 0.3},
        'angle': {'still_deadband_deg': 4.0},
    })
    engine = FusionEngine('me', config)
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Mapping, Optional

from finder_core.localization.position_smoother import PositionSmootherConfig
from finder_core.localization.peer_position_gate import PeerGateConfig
from finder_core.localization.distance_estimator import DistanceEstimatorConfig
from finder_core.localization.heading_arbiter import HeadingArbiterConfig
from finder_core.localization.angle_smoother import AngleSmootherConfig
from finder_core.localization.write_gate import WriteGateConfig
from finder_core.localization.staleness import StalenessConfig


@dataclass
class FusionConfig:
    """
    Configuration for the whole fusion pipeline.

    Attributes:
        smoother: Position EMA and jump reset
        gate: Peer outlier gating
        distance: Distance correction, median and EMA
        heading: Heading arbitration
        angle: Rotation smoothing
        write: Self publish policy
        staleness: Peer age classes
        hidden_retention_ms: How long filter state of a hidden peer is kept (ms)
    """

    smoother: PositionSmootherConfig = field(default_factory=PositionSmootherConfig)
    gate: PeerGateConfig = field(default_factory=PeerGateConfig)
    distance: DistanceEstimatorConfig = field(default_factory=DistanceEstimatorConfig)
    heading: HeadingArbiterConfig = field(default_factory=HeadingArbiterConfig)
    angle: AngleSmootherConfig = field(default_factory=AngleSmootherConfig)
    write: WriteGateConfig = field(default_factory=WriteGateConfig)
    staleness: StalenessConfig = field(default_factory=StalenessConfig)
    hidden_retention_ms: int = 60000

    def __post_init__(self):
        """Validate configuration."""
        assert self.hidden_retention_ms >= 0, "hidden_retention_ms cannot be negative"

    @classmethod
    def from_dict(cls, overrides: Optional[Mapping[str, Any]] = None) -> 'FusionConfig':
        """
        Build a config from nested overrides.

        Args:
            overrides: {section: {key: value}} plus top-level scalar keys

        Returns:
            FusionConfig with defaults for everything not overridden

        Raises:
            ValueError: on unknown sections or keys
        """
        config = cls()
        if not overrides:
            return config

        known = {f.name for f in fields(cls)}
        updates = {}

        for section, value in overrides.items():
            if section not in known:
                raise ValueError(f"Unknown config section '{section}'")

            current = getattr(config, section)
            if isinstance(value, Mapping):
                section_fields = {f.name for f in fields(current)}
                unknown = set(value) - section_fields
                if unknown:
                    raise ValueError(
                        f"Unknown keys in config section '{section}': {sorted(unknown)}")
                updates[section] = replace(current, **value)
            elif hasattr(current, '__dataclass_fields__'):
                raise ValueError(f"Config section '{section}' must be a mapping")
            else:
                updates[section] = value

        return replace(config, **updates)

    def to_dict(self) -> dict:
        """Nested dictionary of every setting."""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if hasattr(value, '__dataclass_fields__'):
                result[f.name] = {sf.name: getattr(value, sf.name) for sf in fields(value)}
            else:
                result[f.name] = value
        return result
