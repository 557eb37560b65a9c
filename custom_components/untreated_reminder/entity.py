"""Base entity classes for Untreated Reminder integration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .coordinator import UntreatedReminderCoordinator
from .helpers.device_helpers import create_mailbox_device_info

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry


class UntreatedReminderEntity(CoordinatorEntity[UntreatedReminderCoordinator]):
    """Base entity for Untreated Reminder sensors.

    Provides the shared unique id scheme and groups every entity under the
    mailbox device of its config entry.
    """

    _attr_has_entity_name = True

    def __init__(
        self,
        coordinator: UntreatedReminderCoordinator,
        entry: ConfigEntry,
        key: str,
    ) -> None:
        """Initialize the entity.

        Args:
            coordinator: Coordinator publishing the snapshot.
            entry: ConfigEntry for this integration instance.
            key: Sensor key, also used as translation key.
        """
        super().__init__(coordinator)
        self._attr_unique_id = f"{entry.entry_id}_{key}"
        self._attr_translation_key = key
        self._attr_device_info = create_mailbox_device_info(entry)
