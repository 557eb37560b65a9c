"""Diagnostics support for Untreated Reminder integration.

Exports the raw storage data plus the live scheduler and surface state for
troubleshooting. The access token is redacted.
"""

from typing import Any

from homeassistant.components.diagnostics import async_redact_data
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from . import const
from .coordinator import UntreatedReminderCoordinator

TO_REDACT = {const.CONF_ACCESS_TOKEN}


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: ConfigEntry
) -> dict[str, Any]:
    """Return diagnostics for a config entry."""
    coordinator: UntreatedReminderCoordinator = entry.runtime_data

    return {
        "entry": async_redact_data(dict(entry.data), TO_REDACT),
        "options": dict(entry.options),
        "settings": dict(coordinator.settings),
        "storage": coordinator.store.data,
        "timers": {
            name: when.isoformat() for name, when in coordinator.scheduler.timers.items()
        },
        "surfaces": coordinator.surfaces.surfaces,
    }
