# File: helpers/__init__.py
"""Home Assistant-bound helper functions for Untreated Reminder.

This module contains functions that REQUIRE Home Assistant dependencies.

NOTE: Functions that need `hass` object belong here, NOT in utils/.

Submodules:
    - entity_helpers: Scoped dispatcher signal names, loaded entry lookup
    - device_helpers: DeviceInfo construction

Usage:
    from .helpers.entity_helpers import get_event_signal
"""

from . import device_helpers, entity_helpers

__all__ = [
    "device_helpers",
    "entity_helpers",
]
