"""Engine modules for Untreated Reminder integration.

Contains pure computation engines:
- ack_engine: Acknowledgement record state machine, guards and conversions
"""

# Use relative imports within package to avoid mypy module resolution issues
from .ack_engine import AckDecision, AckEngine, CheckpointDecision

__all__ = [
    "AckDecision",
    "AckEngine",
    "CheckpointDecision",
]
