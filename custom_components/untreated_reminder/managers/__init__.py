"""Manager modules for Untreated Reminder integration.

Managers orchestrate workflows around the pure engines.
They are stateful, event-aware, and own all I/O with the store, the remote
client, the host timers and the surfaces.
"""

from .ack_manager import AckManager, AckResult
from .base_manager import BaseManager
from .housekeeping_manager import HousekeepingManager, HousekeepingReport
from .scheduler_manager import SchedulerManager
from .surface_manager import (
    DeliveryResult,
    NotifyServiceChannel,
    SurfaceManager,
    SurfaceUnavailableError,
)

__all__ = [
    "AckManager",
    "AckResult",
    "BaseManager",
    "DeliveryResult",
    "HousekeepingManager",
    "HousekeepingReport",
    "NotifyServiceChannel",
    "SchedulerManager",
    "SurfaceManager",
    "SurfaceUnavailableError",
]
