# File: notification_action_handler.py
"""Handle notification actions from HA companion notifications.

When the user taps "Acknowledge" on a reminder notification, the companion
app fires an event carrying the action string. This handler parses it and
routes it to the owning entry's acknowledgement workflow, exactly as if the
acknowledge service had been called for that day.

Action strings are pipe-separated: "UNTREATED_ACK|entry_id[:8]|day_key"
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from . import const
from .helpers.entity_helpers import find_coordinator_by_prefix
from .utils import dt_utils

if TYPE_CHECKING:
    from homeassistant.core import Event, HomeAssistant


@dataclass
class ParsedAction:
    """Parsed notification action.

    Attributes:
        action_type: The action constant (ACTION_ACKNOWLEDGE)
        entry_id: The config entry ID truncated to 8 chars
        day_key: Day the reminder was shown for
    """

    action_type: str
    entry_id: str
    day_key: str


def parse_notification_action(action_field: str) -> ParsedAction | None:
    """Parse a notification action string.

    Returns:
        ParsedAction if the string is a well-formed acknowledge action,
        None otherwise (other integrations share the event).
    """
    if not action_field:
        return None

    parts = action_field.split("|")
    if parts[0] != const.ACTION_ACKNOWLEDGE:
        return None
    if len(parts) != 3:
        const.LOGGER.warning("Invalid action string format: %s", action_field)
        return None

    _, entry_id, day_key = parts
    if not entry_id or not dt_utils.is_valid_day_key(day_key):
        const.LOGGER.warning("Invalid action string format: %s", action_field)
        return None
    return ParsedAction(action_type=parts[0], entry_id=entry_id, day_key=day_key)


async def async_handle_notification_action(hass: HomeAssistant, event: Event) -> None:
    """Route an acknowledge action to the coordinator that sent it."""
    parsed = parse_notification_action(event.data.get(const.NOTIFY_ACTION, ""))
    if parsed is None:
        return

    coordinator = find_coordinator_by_prefix(hass, parsed.entry_id)
    if coordinator is None:
        const.LOGGER.error(
            "Untreated Reminder config entry not found for truncated ID: %s",
            parsed.entry_id,
        )
        return

    result = await coordinator.ack.async_acknowledge(parsed.day_key)
    const.LOGGER.debug(
        "Notification acknowledgement for %s: %s", parsed.day_key, result.as_dict()
    )
