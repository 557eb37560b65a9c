# File: helpers/device_helpers.py
"""Device registry helper functions for Untreated Reminder.

Functions that construct DeviceInfo objects for Home Assistant's device registry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.helpers.device_registry import DeviceEntryType, DeviceInfo

from .. import const

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry


def create_mailbox_device_info(config_entry: ConfigEntry) -> DeviceInfo:
    """Create device info for the monitored mailbox.

    Args:
        config_entry: Config entry for this integration instance

    Returns:
        DeviceInfo dict grouping the reminder entities
    """
    return DeviceInfo(
        identifiers={(const.DOMAIN, config_entry.entry_id)},
        name=config_entry.title,
        manufacturer=const.UNTREATED_REMINDER_TITLE,
        model="Mailbox Backlog",
        entry_type=DeviceEntryType.SERVICE,
    )
