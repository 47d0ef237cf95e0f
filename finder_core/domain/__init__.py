"""
Domain Module: Session orchestration and presentation logic.

Implements:
- Fusion engine (per-session filter orchestration)
- Display rounding, labels and turn hints
- Proximity cue timing
"""

from .display import (
    TurnHint,
    format_distance,
    format_last_seen,
    round_display_distance,
    should_show_last_seen,
    turn_hint,
)
from .cue_scheduler import (
    CuePattern,
    CueScheduler,
    CueSchedulerConfig,
)
from .fusion_engine import (
    FusionEngine,
    FusionOutput,
    now_ms,
)

__all__ = [
    'TurnHint',
    'format_distance',
    'format_last_seen',
    'round_display_distance',
    'should_show_last_seen',
    'turn_hint',
    'CuePattern',
    'CueScheduler',
    'CueSchedulerConfig',
    'FusionEngine',
    'FusionOutput',
    'now_ms',
]
