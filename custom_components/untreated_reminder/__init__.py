# File: __init__.py
"""Initialization file for the Untreated Reminder integration.

Handles setting up the integration, including loading configuration entries,
initializing data storage, and starting the reminder coordinator.

Key Features:
- Config entry setup and unload support.
- Boot sequence: housekeeping, then recurring timers.
- Storage management for persistent data handling.
"""

from __future__ import annotations

from homeassistant.config_entries import ConfigEntry, ConfigEntryState
from homeassistant.core import Event, HomeAssistant

from . import const
from .coordinator import UntreatedReminderCoordinator, build_settings
from .notification_action_handler import async_handle_notification_action
from .services import async_setup_services, async_unload_services
from .store import UntreatedReminderStore


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up the integration from a config entry."""
    const.LOGGER.info("INFO: Starting setup for Untreated Reminder entry: %s", entry.entry_id)

    # Set the home assistant configured timezone for date/time operations
    # Must be done early before any components that use datetime helpers
    const.set_default_timezone(hass)

    store = UntreatedReminderStore(hass, const.STORAGE_KEY)
    await store.async_initialize()

    coordinator = UntreatedReminderCoordinator(hass, entry, store)
    entry.runtime_data = coordinator

    # Boot: managers subscribe, housekeeping reconciles, timers are armed.
    await coordinator.async_start()
    await coordinator.async_config_entry_first_refresh()

    async_setup_services(hass)

    await hass.config_entries.async_forward_entry_setups(entry, const.PLATFORMS)

    # Listen for notification actions from the companion app.
    async def handle_notification_event(event: Event) -> None:
        """Handle notification action events."""
        await async_handle_notification_action(hass, event)

    entry.async_on_unload(
        hass.bus.async_listen(const.NOTIFICATION_EVENT, handle_notification_event)
    )
    entry.async_on_unload(entry.add_update_listener(_async_update_listener))

    const.LOGGER.info("INFO: Untreated Reminder setup complete for entry: %s", entry.entry_id)
    return True


async def _async_update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload on settings change; drop cached identity and counts when the account changed."""
    coordinator = entry.runtime_data
    settings = build_settings(entry)
    if (
        entry.data.get(const.CONF_ACCESS_TOKEN) != coordinator.client.access_token
        or settings["label_name"] != coordinator.client.label_name
    ):
        const.LOGGER.info("INFO: Account settings changed; clearing identity caches")
        await coordinator.async_handle_identity_change()
    await hass.config_entries.async_reload(entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    const.LOGGER.info("INFO: Unloading Untreated Reminder entry: %s", entry.entry_id)

    unload_ok = await hass.config_entries.async_unload_platforms(entry, const.PLATFORMS)

    if unload_ok:
        others_loaded = any(
            other.state is ConfigEntryState.LOADED
            for other in hass.config_entries.async_entries(const.DOMAIN)
            if other.entry_id != entry.entry_id
        )
        if not others_loaded:
            await async_unload_services(hass)

    return unload_ok


async def async_remove_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle removal of a config entry."""
    const.LOGGER.info("INFO: Removing Untreated Reminder entry: %s", entry.entry_id)

    await UntreatedReminderStore(hass, const.STORAGE_KEY).async_delete_storage()

    const.LOGGER.info("INFO: Untreated Reminder entry data cleared: %s", entry.entry_id)
