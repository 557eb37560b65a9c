# File: sensor.py
"""Sensors for the Untreated Reminder integration.

Sensors Defined in This File (2):
01. UntreatedBacklogSensor - cached count of untreated conversations
02. TodayAckStateSensor - acknowledgement state of today's reminder

Both read the coordinator snapshot only; no sensor triggers a remote call.
"""

from __future__ import annotations

from typing import Any

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from . import const
from .coordinator import UntreatedReminderCoordinator
from .entity import UntreatedReminderEntity


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    """Set up sensors for Untreated Reminder integration."""
    coordinator: UntreatedReminderCoordinator = entry.runtime_data
    async_add_entities(
        [
            UntreatedBacklogSensor(coordinator, entry),
            TodayAckStateSensor(coordinator, entry),
        ]
    )


# ------------------------------------------------------------------------------------------
class UntreatedBacklogSensor(UntreatedReminderEntity, SensorEntity):
    """Number of conversations carrying the reminder label.

    Shows the last cached count for the authenticated mailbox; unknown until
    the first successful count.
    """

    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_icon = "mdi:email-alert-outline"

    def __init__(
        self, coordinator: UntreatedReminderCoordinator, entry: ConfigEntry
    ) -> None:
        """Initialize the sensor."""
        super().__init__(coordinator, entry, const.SENSOR_KEY_BACKLOG)

    @property
    def native_value(self) -> int | None:
        """Return the cached count."""
        return (self.coordinator.data or {}).get(const.SNAPSHOT_COUNT)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Expose the mailbox identity and when the count was captured."""
        data = self.coordinator.data or {}
        return {
            const.ATTR_IDENTITY: data.get(const.SNAPSHOT_IDENTITY),
            const.ATTR_CAPTURED_AT: data.get(const.SNAPSHOT_CAPTURED_AT),
        }


# ------------------------------------------------------------------------------------------
class TodayAckStateSensor(UntreatedReminderEntity, SensorEntity):
    """Acknowledgement state of today's reminder (pending, ack, ignored, none)."""

    _attr_device_class = SensorDeviceClass.ENUM
    _attr_options = [
        const.ACK_STATE_NONE,
        const.ACK_STATE_PENDING,
        const.ACK_STATE_ACK,
        const.ACK_STATE_IGNORED,
    ]
    _attr_icon = "mdi:email-check-outline"

    def __init__(
        self, coordinator: UntreatedReminderCoordinator, entry: ConfigEntry
    ) -> None:
        """Initialize the sensor."""
        super().__init__(coordinator, entry, const.SENSOR_KEY_TODAY_STATE)

    @property
    def _record(self) -> dict[str, Any] | None:
        return (self.coordinator.data or {}).get(const.SNAPSHOT_TODAY_RECORD)

    @property
    def native_value(self) -> str:
        """Return today's record state, or none when nothing was shown."""
        record = self._record
        if not record:
            return const.ACK_STATE_NONE
        return record.get(const.DATA_ACK_STATE, const.ACK_STATE_NONE)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Expose today's record details."""
        data = self.coordinator.data or {}
        record = self._record or {}
        return {
            const.ATTR_DAY_KEY: data.get(const.SNAPSHOT_TODAY_KEY),
            const.ATTR_SHOWN_AT: record.get(const.DATA_ACK_SHOWN_AT),
            const.ATTR_DEADLINE_AT: record.get(const.DATA_ACK_DEADLINE_AT),
            const.ATTR_SOURCE: record.get(const.DATA_ACK_SOURCE),
        }
