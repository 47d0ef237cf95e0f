"""
Peer Position Gating (outlier and staleness rejection).

Runs before a peer's raw position is smoothed. A fresh fix that is either
very imprecise or jumps implausibly far from the last known good position
is replaced by that last good position, bounding how far a single bad
sample can drag the displayed peer.

Stages (in order):
1. Accuracy gate: accuracy > ceiling while fresh -> last good
2. Jump gate: distance to last good > limit while fresh -> last good
3. Last-good update: after smoothing, record the result when the peer's
   own accuracy is good or the sample is stale
"""

from typing import Dict, Optional
from dataclasses import dataclass

from finder_core.proto.samples import LatLng
from finder_core.localization.geo import haversine
from finder_core.metrics import get_metrics


@dataclass
class PeerGateConfig:
    """
    Configuration for peer position gating.

    Attributes:
        max_fresh_accuracy_m: Fresh fixes less accurate than this are replaced (m)
        accuracy_gate_fresh_ms: Age below which the accuracy gate applies (ms)
        max_fresh_jump_m: Fresh jumps from last good beyond this are replaced (m)
        jump_gate_fresh_ms: Age below which the jump gate applies (ms)
        good_accuracy_m: Accuracy below which a sample becomes last good (m)
        stale_accept_ms: Age above which a sample becomes last good anyway (ms)
        unknown_accuracy_m: Accuracy assumed when the peer sent none (m)
    """

    max_fresh_accuracy_m: float = 120.0
    accuracy_gate_fresh_ms: int = 8000
    max_fresh_jump_m: float = 60.0
    jump_gate_fresh_ms: int = 6000
    good_accuracy_m: float = 80.0
    stale_accept_ms: int = 10000
    unknown_accuracy_m: float = 50.0

    def __post_init__(self):
        """Validate configuration."""
        assert self.max_fresh_accuracy_m > 0, "max_fresh_accuracy_m must be positive"
        assert self.max_fresh_jump_m > 0, "max_fresh_jump_m must be positive"
        assert self.good_accuracy_m > 0, "good_accuracy_m must be positive"
        assert self.accuracy_gate_fresh_ms >= 0, "accuracy_gate_fresh_ms cannot be negative"
        assert self.jump_gate_fresh_ms >= 0, "jump_gate_fresh_ms cannot be negative"


@dataclass(frozen=True)
class LastGoodPosition:
    """Last position of a peer that met the quality bar."""

    position: LatLng
    observed_at_ms: int


@dataclass(frozen=True)
class GateDecision:
    """
    Result of gating one peer sample.

    Attributes:
        position: Position to feed into the smoother
        substituted: True if the last good position replaced the raw one
        reason: Drop reason code when substituted, else None
    """

    position: LatLng
    substituted: bool = False
    reason: Optional[str] = None


class PeerPositionGate:
    """
    Gate fresh-but-dubious peer fixes against the last known good position.

    Usage:
        gate = PeerPositionGate(config)

        decision = gate.select(peer_id, raw_pos, accuracy_m, age_ms, last_good)
        smoothed = smoother.update(decision.position)

        if gate.qualifies_as_last_good(accuracy_m, age_ms):
            last_good = LastGoodPosition(smoothed, now_ms)

    Substitution is a filtering decision, never an error: it is counted in
    metrics and the reason is kept per peer for diagnostics.
    """

    def __init__(self, config: Optional[PeerGateConfig] = None):
        """
        Initialize peer gate.

        Args:
            config: Gating configuration (uses defaults if None)
        """
        self.config = config or PeerGateConfig()
        self.metrics = get_metrics()

        # Last substitution reason per peer (for diagnostics)
        self._last_rejection: Dict[str, str] = {}

    def select(
        self,
        peer_id: str,
        raw: LatLng,
        accuracy_m: Optional[float],
        age_ms: int,
        last_good: Optional[LastGoodPosition]
    ) -> GateDecision:
        """
        Choose the position to smooth for this peer sample.

        Args:
            peer_id: Peer identifier
            raw: Raw position from the snapshot
            accuracy_m: Peer's reported accuracy (None if unknown)
            age_ms: Snapshot age (ms)
            last_good: Last known good position (None if never recorded)

        Returns:
            GateDecision with either raw or last good position
        """
        if last_good is None:
            # Nothing to fall back on
            self._accept(peer_id)
            return GateDecision(position=raw)

        # Stage 1: accuracy gate
        if (accuracy_m is not None
                and accuracy_m > self.config.max_fresh_accuracy_m
                and age_ms < self.config.accuracy_gate_fresh_ms):
            return self._substitute(peer_id, last_good, 'inaccurate_fresh_fix')

        # Stage 2: jump gate
        jump_m = haversine(last_good.position, raw)
        if jump_m > self.config.max_fresh_jump_m and age_ms < self.config.jump_gate_fresh_ms:
            self.metrics.record_histogram('peer_rejected_jump_m', jump_m)
            return self._substitute(peer_id, last_good, 'implausible_jump')

        self._accept(peer_id)
        return GateDecision(position=raw)

    def qualifies_as_last_good(self, accuracy_m: Optional[float], age_ms: int) -> bool:
        """
        Check whether a smoothed sample may become the new last good position.

        Accepts when the peer's own accuracy is good, or when the sample is
        old enough that it is no longer a fresh-but-dubious reading.
        """
        effective_accuracy = accuracy_m if accuracy_m is not None else self.config.unknown_accuracy_m
        return (effective_accuracy < self.config.good_accuracy_m
                or age_ms > self.config.stale_accept_ms)

    def get_rejection_reason(self, peer_id: str) -> Optional[str]:
        """Reason the peer's last sample was substituted, or None."""
        return self._last_rejection.get(peer_id)

    def forget(self, peer_id: str):
        """Drop per-peer diagnostics when a peer leaves."""
        self._last_rejection.pop(peer_id, None)

    def _accept(self, peer_id: str):
        self.metrics.increment('peer_samples_accepted')
        self._last_rejection.pop(peer_id, None)

    def _substitute(self, peer_id: str, last_good: LastGoodPosition, reason: str) -> GateDecision:
        self._last_rejection[peer_id] = reason
        self.metrics.increment('peer_samples_substituted')
        self.metrics.increment_drop(reason)
        return GateDecision(position=last_good.position, substituted=True, reason=reason)

    def reset(self):
        """Clear all per-peer diagnostics."""
        self._last_rejection.clear()

    def get_statistics(self) -> dict:
        """Get gating statistics for diagnostics."""
        return {
            'accepted_total': self.metrics.get_counter('peer_samples_accepted'),
            'substituted_total': self.metrics.get_counter('peer_samples_substituted'),
            'inaccurate_fresh_fix': self.metrics.get_drop_count('inaccurate_fresh_fix'),
            'implausible_jump': self.metrics.get_drop_count('implausible_jump'),
        }
