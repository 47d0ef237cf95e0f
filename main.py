"""
Peer finder session replay tool.

Replays a recorded JSON-lines session through the fusion engine and prints
what the finder screen would show: distance labels, arrow rotations, turn
hints and proximity cues.
"""

import sys
import json
import logging
import argparse
from typing import Optional

import config
from finder_core.config import FusionConfig
from finder_core.domain.fusion_engine import FusionEngine, FusionOutput
from finder_core.domain.cue_scheduler import CueScheduler
from finder_core.domain.display import (
    format_distance, format_last_seen, should_show_last_seen, turn_hint
)
from finder_core.io.replay import SessionReplayer, load_session
from finder_core.metrics import get_metrics

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOGGING_CONFIG["level"]),
    format=config.LOGGING_CONFIG["format"]
)
logger = logging.getLogger(__name__)


class ReplayRunner:
    """Runs one recorded session and prints the finder screen state."""

    def __init__(self, fusion_config: Optional[FusionConfig] = None):
        self.engine = FusionEngine(config.REPLAY_CONFIG["self_id"], fusion_config)
        self.replayer = SessionReplayer(self.engine)
        self.cues = CueScheduler()

        self.output_count = 0
        self.publish_count = 0

    def run(self, path: str):
        """Replay a session file."""
        events = load_session(path)
        print_every = max(1, config.REPLAY_CONFIG["print_every"])

        for output in self.replayer.run(events):
            self.output_count += 1
            if output.publish is not None:
                self.publish_count += 1
            if self.output_count % print_every == 0:
                self._print_output(output)

        self.replayer.close()
        self._print_summary()

    def _print_output(self, output: FusionOutput):
        heading = output.heading
        source = heading.source.value
        if heading.is_stable:
            print(f"[{output.now_ms:>10}] heading {heading.heading_deg:6.1f} ({source})")
        else:
            hint = "  calibrate compass" if output.show_hint else ""
            print(f"[{output.now_ms:>10}] heading unstable ({source}){hint}")

        if output.publish is not None:
            print(f"             publish ({output.publish.reason.value}) "
                  f"{output.publish.lat:.6f}, {output.publish.lng:.6f}")

        for record in output.records:
            line = (f"             {record.peer_id:<12} {format_distance(record.distance_m):>8}"
                    f"  arrow {record.rotation_deg:6.1f}  {record.staleness.value}")
            if record.rotation_frozen:
                line += "  (frozen)"
            else:
                line += f"  {turn_hint(record.bearing_deg, heading.heading_deg).value}"
            if should_show_last_seen(record.last_seen_ms):
                line += f"  last seen {format_last_seen(record.last_seen_ms)}"
            print(line)

        if config.REPLAY_CONFIG["show_cues"] and output.records:
            cue = self.cues.poll(output.records[0], output.now_ms)
            if cue is not None:
                print(f"             cue {list(cue.pattern_ms)} next in {cue.interval_ms} ms")

    def _print_summary(self):
        print("\n" + "=" * 60)
        print("               Replay finished")
        print("=" * 60)
        print(f"Engine outputs: {self.output_count}")
        print(f"Publishes:      {self.publish_count}")
        print(f"Tracked peers:  {', '.join(self.engine.tracked_peers) or '-'}")
        if config.REPLAY_CONFIG["show_diagnostics"] and self.engine.last_output:
            print(json.dumps(self.engine.diagnostics(self.engine.last_output.now_ms), indent=2))
        print("=" * 60)
        get_metrics().print_summary()


def load_overrides(path: Optional[str]) -> dict:
    """Merge FUSION_OVERRIDES with an optional JSON overrides file."""
    overrides = {k: dict(v) if isinstance(v, dict) else v
                 for k, v in config.FUSION_OVERRIDES.items()}
    if path:
        with open(path, 'r', encoding='utf-8') as f:
            file_overrides = json.load(f)
        for section, value in file_overrides.items():
            if isinstance(value, dict) and isinstance(overrides.get(section), dict):
                overrides[section].update(value)
            else:
                overrides[section] = value
    return overrides


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Peer finder session replay')
    parser.add_argument('--session', '-s', type=str, required=True,
                        help='JSON-lines session file')
    parser.add_argument('--config', '-c', type=str, default=None,
                        help='JSON file with fusion config overrides')
    parser.add_argument('--self-id', type=str, default=None,
                        help='Local user id in recorded snapshots')
    parser.add_argument('--debug', '-d', action='store_true',
                        help='Enable debug logging')

    args = parser.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.self_id:
        config.REPLAY_CONFIG["self_id"] = args.self_id

    try:
        fusion_config = FusionConfig.from_dict(load_overrides(args.config))
    except (OSError, ValueError, AssertionError) as e:
        logger.error(f"Invalid fusion config: {e}")
        return 2

    try:
        ReplayRunner(fusion_config).run(args.session)
    except OSError as e:
        logger.error(f"Cannot read session: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
