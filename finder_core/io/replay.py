"""
Session replay.

Recorded sensor and sync store sessions are stored as JSON lines, one event
per line:

    {"type": "fix", "t": 1000, "lat": 22.29, "lng": 114.17,
     "accuracy": 8, "speed": 0.4, "course": 90}
    {"type": "heading", "t": 1100, "heading": 87.5, "accuracy": 10}
    {"type": "snapshot", "t": 1200, "peers": {"bob": {"lat": ..., "lng": ...,
     "accuracy": 12, "updatedAt": 1150}}}
    {"type": "tick", "t": 2000}

Replaying a session through a FusionEngine reproduces the display output
offline, which is how filter constants are calibrated.
"""

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional

from finder_core.domain.fusion_engine import FusionEngine, FusionOutput
from finder_core.io.samplers import GeoSampler, HeadingSampler
from finder_core.metrics import get_metrics

logger = logging.getLogger(__name__)

EVENT_TYPES = ('fix', 'heading', 'snapshot', 'tick')


@dataclass
class ReplayEvent:
    """One recorded session event."""

    kind: str
    t_ms: int
    payload: Dict[str, Any] = field(default_factory=dict)


def _number(payload: Dict[str, Any], key: str) -> Optional[float]:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be a number")
    return float(value)


def parse_event(line: str, line_no: int = 0) -> Optional[ReplayEvent]:
    """
    Parse one JSON line into a ReplayEvent.

    Blank lines and lines starting with '#' are ignored silently. Malformed
    lines are logged, counted as 'replay_parse_error' and skipped.

    Returns:
        ReplayEvent, or None if the line is skipped
    """
    text = line.strip()
    if not text or text.startswith('#'):
        return None

    try:
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("event must be a JSON object")

        kind = data.get('type')
        if kind not in EVENT_TYPES:
            raise ValueError(f"unknown event type {kind!r}")

        t = _number(data, 't')
        if t is None or not math.isfinite(t):
            raise ValueError("missing event time 't'")

        if kind == 'fix':
            if _number(data, 'lat') is None or _number(data, 'lng') is None:
                raise ValueError("fix needs 'lat' and 'lng'")
        elif kind == 'heading':
            if _number(data, 'heading') is None:
                raise ValueError("heading event needs 'heading'")
        elif kind == 'snapshot':
            if not isinstance(data.get('peers', {}), dict):
                raise ValueError("'peers' must be an object")

    except (json.JSONDecodeError, ValueError) as e:
        get_metrics().increment_drop('replay_parse_error')
        logger.warning("Skipping replay line %d: %s", line_no, e)
        return None

    payload = {k: v for k, v in data.items() if k not in ('type', 't')}
    return ReplayEvent(kind=kind, t_ms=int(t), payload=payload)


def read_events(lines: Iterable[str]) -> Iterator[ReplayEvent]:
    """Parse an iterable of JSON lines, skipping malformed ones."""
    for line_no, line in enumerate(lines, start=1):
        event = parse_event(line, line_no)
        if event is not None:
            yield event


def load_session(path: str) -> List[ReplayEvent]:
    """
    Load a recorded session file.

    Raises:
        OSError: if the file cannot be read
    """
    with open(path, 'r', encoding='utf-8') as f:
        events = list(read_events(f))
    logger.info("Loaded %d events from %s", len(events), path)
    return events


class SessionReplayer:
    """
    Feeds recorded events through the samplers into a FusionEngine.

    Usage:
        engine = FusionEngine('me')
        replayer = SessionReplayer(engine)
        for output in replayer.run(load_session('walk.jsonl')):
            show(output)
        replayer.close()
    """

    def __init__(self, engine: FusionEngine,
                 geo_sampler: Optional[GeoSampler] = None,
                 heading_sampler: Optional[HeadingSampler] = None):
        self.engine = engine
        self.geo_sampler = geo_sampler or GeoSampler()
        self.heading_sampler = heading_sampler or HeadingSampler()

        self._pending: List[FusionOutput] = []
        self._subscriptions = [
            self.geo_sampler.subscribe(self._on_fix),
            self.heading_sampler.subscribe(self._on_heading),
        ]

    def _on_fix(self, fix):
        self._pending.append(self.engine.on_fix(fix, at_ms=fix.captured_at_ms))

    def _on_heading(self, heading):
        self._pending.append(self.engine.on_heading(heading, at_ms=heading.captured_at_ms))

    def feed(self, event: ReplayEvent) -> List[FusionOutput]:
        """
        Apply one event.

        Returns:
            Engine outputs produced by the event (empty if a sampler
            ignored it)
        """
        self._pending = []
        p = event.payload

        if event.kind == 'fix':
            self.geo_sampler.push(
                p['lat'], p['lng'], event.t_ms,
                accuracy=p.get('accuracy'),
                speed=p.get('speed'),
                course=p.get('course'),
            )
        elif event.kind == 'heading':
            self.heading_sampler.push(p['heading'], event.t_ms, accuracy_deg=p.get('accuracy'))
        elif event.kind == 'snapshot':
            self._pending.append(self.engine.on_documents(p.get('peers', {}), at_ms=event.t_ms))
        else:
            self._pending.append(self.engine.tick(at_ms=event.t_ms))

        return self._pending

    def run(self, events: Iterable[ReplayEvent]) -> Iterator[FusionOutput]:
        """Replay events in order, yielding every engine output."""
        for event in events:
            for output in self.feed(event):
                yield output

    def close(self):
        """Detach from the samplers."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
