"""
Fusion Engine.

Ties the position and heading filters together and produces the sorted,
staleness-annotated peer display list.

Event model:
- on_fix(): new self fix -> self smoothing, publish decision, recompute
- on_heading(): new compass sample -> heading buffer, recompute rotations
- on_snapshot(): new peer snapshot set (replace, not merge) -> recompute
- tick(): recompute from the current state without new input

Every output is derived from one consistent pair of (self state, peer
snapshot set). Data-quality problems never raise; they are dropped,
counted and logged, and the best-effort result is returned.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional

from finder_core.config import FusionConfig
from finder_core.proto.samples import LatLng, RawFix, RawHeading
from finder_core.proto.peer_snapshot import PeerSnapshot
from finder_core.proto.display_record import PeerDisplayRecord, StalenessClass
from finder_core.proto.publish_record import PublishRecord
from finder_core.proto.heading_decision import HeadingDecision
from finder_core.localization.geo import bearing, normalize_angle
from finder_core.localization.position_smoother import PositionSmoother, smooth_position
from finder_core.localization.peer_position_gate import LastGoodPosition, PeerPositionGate
from finder_core.localization.peer_filter_state import PeerFilterState
from finder_core.localization.distance_estimator import DistanceEstimator
from finder_core.localization.heading_arbiter import HeadingArbiter
from finder_core.localization.angle_smoother import AngleSmoother
from finder_core.localization.write_gate import WriteGate
from finder_core.localization.staleness import classify_staleness
from finder_core.metrics import get_metrics

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current local wall-clock time in milliseconds."""
    return int(time.time() * 1000)


@dataclass
class FusionOutput:
    """
    Result of one engine invocation.

    Attributes:
        now_ms: Time the output was computed for (ms)
        records: Peer display records sorted by ascending distance
        heading: Heading arbitration for this tick
        publish: Self record to publish upstream (on_fix only), else None
    """

    now_ms: int
    heading: HeadingDecision
    records: List[PeerDisplayRecord] = field(default_factory=list)
    publish: Optional[PublishRecord] = None

    @property
    def show_hint(self) -> bool:
        return self.heading.show_hint

    def record_for(self, peer_id: str) -> Optional[PeerDisplayRecord]:
        for record in self.records:
            if record.peer_id == peer_id:
                return record
        return None

    def to_dict(self) -> dict:
        return {
            'now_ms': self.now_ms,
            'heading': self.heading.to_dict(),
            'records': [r.to_dict() for r in self.records],
            'publish': self.publish.to_document() if self.publish else None,
        }


class FusionEngine:
    """
    Per-session position and heading fusion.

    Usage:
        engine = FusionEngine(self_id='me', config=FusionConfig())

        out = engine.on_fix(raw_fix)
        if out.publish is not None:
            transport.publish(out.publish.to_document())

        engine.on_heading(raw_heading)
        out = engine.on_snapshot({pid: PeerSnapshot(...), ...})

        for record in out.records:
            draw_arrow(record.peer_id, record.rotation_deg, record.distance_m)

    Ownership:
    - One PeerFilterState per known peer id, created lazily and discarded
      when the peer leaves the snapshot set
    - The heading buffer belongs to this engine's single local user and is
      cleared by reset_session()
    """

    def __init__(self, self_id: str, config: Optional[FusionConfig] = None):
        """
        Initialize fusion engine.

        Args:
            self_id: Local user's id (skipped when found in peer snapshots)
            config: Pipeline configuration (uses defaults if None)
        """
        self.self_id = self_id
        self.config = config or FusionConfig()
        self.metrics = get_metrics()

        self.self_smoother = PositionSmoother(
            self.config.smoother.self_alpha, self.config.smoother.jump_reset_m)
        self.peer_gate = PeerPositionGate(self.config.gate)
        self.distance_estimator = DistanceEstimator(self.config.distance)
        self.heading_arbiter = HeadingArbiter(self.config.heading)
        self.angle_smoother = AngleSmoother(self.config.angle)
        self.write_gate = WriteGate(self.config.write)

        self._last_fix: Optional[RawFix] = None
        self._last_fix_at_ms: Optional[int] = None
        self._last_heading: Optional[RawHeading] = None
        self._last_heading_at_ms: Optional[int] = None

        self._snapshot: Dict[str, PeerSnapshot] = {}
        self._peers: Dict[str, PeerFilterState] = {}

        # Positions changed since the last distance update
        self._positions_dirty = False
        self._last_output: Optional[FusionOutput] = None

    # ------------------------------------------------------------------
    # Event entry points
    # ------------------------------------------------------------------

    def on_fix(self, fix: RawFix, at_ms: Optional[int] = None) -> FusionOutput:
        """
        Process a new self fix.

        Args:
            fix: Raw fix from the location sampler
            at_ms: Processing time (defaults to wall clock)

        Returns:
            FusionOutput including the publish decision
        """
        t = at_ms if at_ms is not None else now_ms()
        self.metrics.increment('fixes_in')

        if not fix.is_finite:
            self.metrics.increment_drop('malformed_fix')
            logger.debug("Dropped non-finite self fix (%r, %r)", fix.lat, fix.lng)
            return self._compute(t)

        self._last_fix = fix
        self._last_fix_at_ms = t
        self.self_smoother.update(fix.position)
        self._positions_dirty = True

        publish = self.write_gate.evaluate(fix, t)
        if publish is not None:
            logger.debug("Publishing self fix (%s)", publish.reason.value)

        return self._compute(t, publish)

    def on_heading(self, heading: RawHeading, at_ms: Optional[int] = None) -> FusionOutput:
        """Process a new compass sample."""
        t = at_ms if at_ms is not None else now_ms()
        self.metrics.increment('headings_in')

        if not heading.is_finite:
            self.metrics.increment_drop('malformed_heading')
            logger.debug("Dropped non-finite heading %r", heading.heading_deg)
            return self._compute(t)

        self.heading_arbiter.add_sample(heading.heading_deg)
        self._last_heading = heading
        self._last_heading_at_ms = t

        return self._compute(t)

    def on_snapshot(self, snapshot: Mapping[str, PeerSnapshot],
                    at_ms: Optional[int] = None) -> FusionOutput:
        """
        Replace the peer snapshot set.

        Args:
            snapshot: peer id -> PeerSnapshot (authoritative for this tick)
            at_ms: Processing time (defaults to wall clock)
        """
        t = at_ms if at_ms is not None else now_ms()
        self.metrics.increment('snapshots_in')

        self._snapshot = {}
        for peer_id, snap in snapshot.items():
            # The mapping key is the peer's identity
            if snap.peer_id != peer_id:
                snap = replace(snap, peer_id=peer_id)
            self._snapshot[peer_id] = snap
        self._positions_dirty = True

        for peer_id in list(self._peers):
            if peer_id not in self._snapshot:
                self._discard_peer(peer_id, 'left snapshot')

        return self._compute(t)

    def on_documents(self, documents: Mapping[str, Mapping[str, Any]],
                     at_ms: Optional[int] = None) -> FusionOutput:
        """
        Replace the peer set from raw sync store documents.

        Documents that are not mappings are dropped as malformed_peer and
        the remaining peers are processed normally.
        """
        snapshot = {}
        for peer_id, doc in documents.items():
            if not isinstance(doc, Mapping):
                self.metrics.increment_drop('malformed_peer')
                logger.debug("Dropped peer %s with unusable document %r", peer_id, doc)
                continue
            snapshot[peer_id] = PeerSnapshot.from_document(peer_id, doc)
        return self.on_snapshot(snapshot, at_ms)

    def tick(self, at_ms: Optional[int] = None) -> FusionOutput:
        """Recompute the display from current state (e.g. to age peers)."""
        t = at_ms if at_ms is not None else now_ms()
        return self._compute(t)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def last_output(self) -> Optional[FusionOutput]:
        return self._last_output

    @property
    def tracked_peers(self) -> List[str]:
        return sorted(self._peers)

    def peer_state(self, peer_id: str) -> PeerFilterState:
        """
        Filter state of a known peer.

        Raises:
            KeyError: if the engine never saw this peer (caller bug)
        """
        if peer_id not in self._peers:
            raise KeyError(f"Unknown peer '{peer_id}'")
        return self._peers[peer_id]

    def current_distance(self, peer_id: str) -> float:
        """
        Smoothed distance of a known peer.

        Raises:
            KeyError: if the engine never estimated this peer
        """
        state = self.peer_state(peer_id)
        if state.smoothed_distance is None:
            raise KeyError(f"No distance estimate for peer '{peer_id}'")
        return state.smoothed_distance

    def diagnostics(self, at_ms: Optional[int] = None) -> dict:
        """Sensor and filter diagnostics for a debug overlay."""
        t = at_ms if at_ms is not None else now_ms()
        fix = self._last_fix
        smoothed = self.self_smoother.position
        heading = self._last_heading

        return {
            'self_id': self.self_id,
            'lat': fix.lat if fix else None,
            'lng': fix.lng if fix else None,
            'smoothed': smoothed.to_dict() if smoothed else None,
            'accuracy_m': fix.accuracy_m if fix else None,
            'speed_mps': fix.speed_mps if fix else None,
            'gps_course_deg': fix.course_deg if fix else None,
            'compass_deg': heading.heading_deg if heading else None,
            'fix_age_ms': t - self._last_fix_at_ms if self._last_fix_at_ms is not None else None,
            'compass_age_ms': t - self._last_heading_at_ms if self._last_heading_at_ms is not None else None,
            'heading_source': self._last_output.heading.source.value if self._last_output else None,
            'circular_variance': self.heading_arbiter.buffer.variance(),
            'tracked_peers': len(self._peers),
        }

    def get_statistics(self) -> dict:
        """Get pipeline statistics."""
        return {
            'ticks': self.metrics.get_counter('ticks'),
            'fixes_in': self.metrics.get_counter('fixes_in'),
            'headings_in': self.metrics.get_counter('headings_in'),
            'snapshots_in': self.metrics.get_counter('snapshots_in'),
            'gate_stats': self.peer_gate.get_statistics(),
            'heading_stats': self.heading_arbiter.get_statistics(),
            'write_stats': self.write_gate.get_statistics(),
        }

    def reset_session(self):
        """Drop all session state (new group, or session end)."""
        self.self_smoother.reset()
        self.peer_gate.reset()
        self.heading_arbiter.reset()
        self.write_gate.reset()

        self._last_fix = None
        self._last_fix_at_ms = None
        self._last_heading = None
        self._last_heading_at_ms = None
        self._snapshot.clear()
        self._peers.clear()
        self._positions_dirty = False
        self._last_output = None

        self.metrics.increment('session_resets')
        logger.info("Fusion session reset")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _compass_heading(self, t: int) -> Optional[float]:
        """Latest compass value, or None if absent or timed out."""
        if self._last_heading is None or self._last_heading_at_ms is None:
            return None
        if t - self._last_heading_at_ms > self.config.heading.compass_timeout_ms:
            return None
        return self._last_heading.heading_deg

    def _compute(self, t: int, publish: Optional[PublishRecord] = None) -> FusionOutput:
        self.metrics.increment('ticks')

        fix = self._last_fix
        decision = self.heading_arbiter.decide(
            compass_heading=self._compass_heading(t),
            speed_mps=fix.speed_mps if fix else None,
            course_deg=fix.course_deg if fix else None,
            now_ms=t,
        )

        my_position = self.self_smoother.position
        if fix is None or my_position is None:
            # Nothing to measure from yet
            output = FusionOutput(now_ms=t, heading=decision, publish=publish)
            self._last_output = output
            return output

        records = []
        for peer_id in sorted(self._snapshot):
            if peer_id == self.self_id:
                continue
            record = self._process_peer(self._snapshot[peer_id], my_position, fix, decision, t)
            if record is not None:
                records.append(record)

        self._positions_dirty = False
        records.sort(key=lambda r: r.distance_m)

        output = FusionOutput(now_ms=t, heading=decision, records=records, publish=publish)
        self._last_output = output
        return output

    def _process_peer(
        self,
        snap: PeerSnapshot,
        my_position: LatLng,
        fix: RawFix,
        decision: HeadingDecision,
        t: int
    ) -> Optional[PeerDisplayRecord]:
        """Update one peer's filters and build its display record."""
        peer_id = snap.peer_id

        if not snap.is_finite:
            self.metrics.increment_drop('malformed_peer')
            logger.debug("Dropped peer %s with non-finite position", peer_id)
            return None

        age_ms = snap.age_ms(t)
        staleness = classify_staleness(age_ms, self.config.staleness)

        if staleness == StalenessClass.HIDDEN:
            self._handle_hidden(peer_id, t)
            return None

        state = self._peers.get(peer_id)
        if state is None:
            state = PeerFilterState(peer_id, median_window=self.config.distance.median_window)
            self._peers[peer_id] = state
            logger.info("Tracking new peer %s", peer_id)
        state.hidden_since_ms = None

        if self._positions_dirty or state.smoothed_distance is None:
            self._update_peer_position(state, snap, age_ms, my_position, fix, t)

        if decision.is_stable:
            target = normalize_angle(state.bearing_deg - decision.heading_deg)
            rotation = self.angle_smoother.update(state, target, fix.speed_mps)
            frozen = False
        else:
            rotation = self.angle_smoother.hold(state)
            frozen = True

        return PeerDisplayRecord(
            peer_id=peer_id,
            distance_m=state.smoothed_distance,
            rotation_deg=rotation if rotation is not None else 0.0,
            staleness=staleness,
            last_seen_ms=age_ms,
            bearing_deg=state.bearing_deg,
            accuracy_m=snap.accuracy_m,
            rotation_frozen=frozen,
        )

    def _update_peer_position(
        self,
        state: PeerFilterState,
        snap: PeerSnapshot,
        age_ms: int,
        my_position: LatLng,
        fix: RawFix,
        t: int
    ):
        decision = self.peer_gate.select(
            snap.peer_id, snap.position, snap.accuracy_m, age_ms, state.last_good)
        if decision.substituted:
            logger.debug("Peer %s: using last good position (%s)", snap.peer_id, decision.reason)

        state.smoothed_position = smooth_position(
            state.smoothed_position,
            decision.position,
            self.config.smoother.peer_alpha,
            self.config.smoother.jump_reset_m,
        )

        if self.peer_gate.qualifies_as_last_good(snap.accuracy_m, age_ms):
            state.last_good = LastGoodPosition(state.smoothed_position, t)

        self.distance_estimator.estimate(
            state,
            my_position,
            state.smoothed_position,
            my_accuracy_m=fix.accuracy_m,
            their_accuracy_m=snap.accuracy_m,
            my_speed_mps=fix.speed_mps,
        )
        state.bearing_deg = bearing(my_position, state.smoothed_position)
        self.metrics.increment('peer_updates')

    def _handle_hidden(self, peer_id: str, t: int):
        """Keep a hidden peer's state briefly, then discard it."""
        state = self._peers.get(peer_id)
        if state is None:
            return

        if state.hidden_since_ms is None:
            state.hidden_since_ms = t
            self.metrics.increment_drop('stale_peer')
            logger.debug("Peer %s hidden (stale snapshot)", peer_id)
        elif t - state.hidden_since_ms > self.config.hidden_retention_ms:
            self._discard_peer(peer_id, 'hidden too long')

    def _discard_peer(self, peer_id: str, why: str):
        self._peers.pop(peer_id, None)
        self.peer_gate.forget(peer_id)
        logger.info("Discarded peer %s (%s)", peer_id, why)
