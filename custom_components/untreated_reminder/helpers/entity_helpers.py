# File: helpers/entity_helpers.py
"""Entry and signal helper functions for Untreated Reminder.

All functions here require a `hass` object or build names used with Home
Assistant's dispatcher.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.config_entries import ConfigEntryState
from homeassistant.exceptions import HomeAssistantError

from .. import const

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from ..coordinator import UntreatedReminderCoordinator


# ==============================================================================
# Event Signal Helpers (Manager Communication)
# ==============================================================================


def get_event_signal(entry_id: str, suffix: str) -> str:
    """Build instance-scoped event signal name for dispatcher.

    Format: 'untreated_reminder_{entry_id}_{suffix}'

    Args:
        entry_id: ConfigEntry.entry_id from coordinator
        suffix: Signal suffix constant from const.py (e.g., SIGNAL_SUFFIX_DAILY_CHECKPOINT)

    Returns:
        Fully qualified signal name scoped to this integration instance
    """
    return f"{const.DOMAIN}_{entry_id}_{suffix}"


# ==============================================================================
# Entry Lookup
# ==============================================================================


def get_loaded_coordinator(
    hass: HomeAssistant, entry_id: str | None = None
) -> UntreatedReminderCoordinator:
    """Return the coordinator of a loaded entry.

    Args:
        hass: Home Assistant instance
        entry_id: Specific entry to use; the first loaded entry when omitted

    Raises:
        HomeAssistantError: No matching loaded entry exists.
    """
    for entry in hass.config_entries.async_entries(const.DOMAIN):
        if entry.state is not ConfigEntryState.LOADED:
            continue
        if entry_id is not None and entry.entry_id != entry_id:
            continue
        return entry.runtime_data
    raise HomeAssistantError(const.MSG_NO_ENTRY_FOUND)


def find_coordinator_by_prefix(
    hass: HomeAssistant, entry_prefix: str
) -> UntreatedReminderCoordinator | None:
    """Return the loaded coordinator whose entry id starts with entry_prefix."""
    for entry in hass.config_entries.async_entries(const.DOMAIN):
        if entry.state is ConfigEntryState.LOADED and entry.entry_id.startswith(
            entry_prefix
        ):
            return entry.runtime_data
    return None
