"""
Unit tests for session replay.

Tests cover:
- JSON-lines event parsing and validation
- Malformed lines skipped and counted
- Loading a session file
- Feeding events through samplers into the engine
"""

import json

import pytest

from finder_core.domain.fusion_engine import FusionEngine
from finder_core.io.replay import (
    ReplayEvent,
    SessionReplayer,
    load_session,
    parse_event,
    read_events,
)
from finder_core.proto.display_record import StalenessClass


def line(**fields) -> str:
    return json.dumps(fields)


SESSION = [
    line(type='fix', t=0, lat=0.0, lng=0.0, accuracy=10, speed=0.0),
    line(type='snapshot', t=500, peers={
        'bob': {'lat': 0.0, 'lng': 0.0009, 'accuracy': 10, 'updatedAt': 400},
        'me': {'lat': 0.0, 'lng': 0.0, 'accuracy': 10, 'updatedAt': 0},
    }),
    line(type='heading', t=600, heading=0.0, accuracy=5),
    line(type='tick', t=40000),
]


# =============================================================================
# Parsing
# =============================================================================


class TestParseEvent:
    """Tests for single-line parsing."""

    def test_fix_event(self):
        """Test a fix line parses with its payload."""
        event = parse_event(line(type='fix', t=1000, lat=1.0, lng=2.0, speed=0.5))
        assert event == ReplayEvent('fix', 1000, {'lat': 1.0, 'lng': 2.0, 'speed': 0.5})

    def test_blank_and_comment_skipped_silently(self, clean_metrics):
        """Test blank lines and comments are not errors."""
        assert parse_event('') is None
        assert parse_event('   ') is None
        assert parse_event('# recorded on the pier') is None
        assert clean_metrics.get_drop_count('replay_parse_error') == 0

    @pytest.mark.parametrize("text", [
        '{not json',
        '[1, 2, 3]',
        line(type='teleport', t=0),
        line(type='fix', lat=1.0, lng=2.0),
        line(type='fix', t='soon', lat=1.0, lng=2.0),
        line(type='fix', t=0, lat=1.0),
        line(type='heading', t=0),
        line(type='snapshot', t=0, peers=[1, 2]),
        line(type='tick', t=True),
    ])
    def test_malformed_lines_counted(self, text, clean_metrics):
        """Test invalid events are skipped and counted."""
        assert parse_event(text, 7) is None
        assert clean_metrics.get_drop_count('replay_parse_error') == 1

    def test_read_events_skips_bad_lines(self):
        """Test a stream keeps going past malformed lines."""
        events = list(read_events(SESSION[:1] + ['garbage'] + SESSION[1:]))
        assert [e.kind for e in events] == ['fix', 'snapshot', 'heading', 'tick']

    def test_load_session(self, tmp_path):
        """Test loading events from a file."""
        path = tmp_path / 'walk.jsonl'
        path.write_text('\n'.join(SESSION) + '\n', encoding='utf-8')

        events = load_session(str(path))
        assert len(events) == 4
        assert events[-1].t_ms == 40000

    def test_load_missing_file(self, tmp_path):
        """Test a missing file raises OSError."""
        with pytest.raises(OSError):
            load_session(str(tmp_path / 'missing.jsonl'))


# =============================================================================
# Replayer
# =============================================================================


class TestSessionReplayer:
    """Tests for feeding events into the engine."""

    def test_full_session(self):
        """Test a short session produces the expected display state."""
        engine = FusionEngine('me')
        replayer = SessionReplayer(engine)

        outputs = list(replayer.run(read_events(SESSION)))

        assert len(outputs) == 4
        assert outputs[0].publish is not None

        after_snapshot = outputs[1]
        assert [r.peer_id for r in after_snapshot.records] == ['bob']
        assert after_snapshot.records[0].staleness == StalenessClass.FRESH

        final = outputs[-1]
        assert final.now_ms == 40000
        assert final.record_for('bob').staleness == StalenessClass.AGING

    def test_fix_goes_through_sampler(self):
        """Test NaN speed in a recorded fix is normalised before the engine."""
        engine = FusionEngine('me')
        replayer = SessionReplayer(engine)

        replayer.feed(parse_event(line(type='fix', t=0, lat=0.0, lng=0.0, speed=-1)))

        assert engine.diagnostics(0)['speed_mps'] is None

    def test_ignored_heading_produces_no_output(self):
        """Test a heading dropped by the sampler does not reach the engine."""
        engine = FusionEngine('me')
        replayer = SessionReplayer(engine)

        outputs = replayer.feed(parse_event(line(type='heading', t=0, heading=10.0, accuracy=40)))

        assert outputs == []
        assert len(engine.heading_arbiter.buffer) == 0

    def test_close_detaches(self):
        """Test close unsubscribes from both samplers."""
        replayer = SessionReplayer(FusionEngine('me'))
        replayer.close()

        assert replayer.geo_sampler.subscriber_count == 0
        assert replayer.heading_sampler.subscriber_count == 0
