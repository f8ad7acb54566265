"""
Core constants shared across the pipeline stages. Keep these simple and documented.
"""

from typing import Final

# Bump when the safety-check prompt, verdict logic or response parsing changes.
# Cached verdicts keyed with an older version are never read again.
SAFETY_POLICY_VERSION: Final[int] = 1

# Current style-signals schema version
STYLE_SIGNALS_VERSION: Final[int] = 1

# Hash returned for a missing style-signals record
NO_SIGNALS_HASH: Final[str] = "no_signals"

# Durable store row status for usable signals
SIGNAL_STATUS_READY: Final[str] = "ready"
