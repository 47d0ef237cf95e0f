"""
Peer finder replay tool configuration.
"""

# Logging configuration
LOGGING_CONFIG = {
    "level": "INFO",
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}

# Replay configuration
REPLAY_CONFIG = {
    "self_id": "me",                  # Local user id inside recorded snapshots
    "print_every": 1,                 # Print every Nth engine output
    "show_cues": True,                # Print proximity cue patterns
    "show_diagnostics": False,        # Print the diagnostics dict at the end
}

# Fusion engine overrides ({section: {key: value}}, see FusionConfig)
FUSION_OVERRIDES = {}
