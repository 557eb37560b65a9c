"""Base manager class for Untreated Reminder managers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from homeassistant.helpers.dispatcher import (
    async_dispatcher_connect,
    async_dispatcher_send,
)

from .. import const
from ..helpers.entity_helpers import get_event_signal

if TYPE_CHECKING:
    from collections.abc import Callable

    from homeassistant.core import HomeAssistant

    from ..coordinator import UntreatedReminderCoordinator


class BaseManager(ABC):
    """Shared plumbing for the scheduler, surface, ack and housekeeping managers.

    Managers talk to each other through dispatcher signals scoped to their
    config entry: the scheduler emits when a timer fires, the surface manager
    emits when a surface first matches the profile, and the ack manager
    listens to both. Subscriptions end with the config entry.

    Durable decisions are written through coordinator.store before any
    surface is messaged.
    """

    def __init__(
        self, hass: HomeAssistant, coordinator: UntreatedReminderCoordinator
    ) -> None:
        """Bind the manager to its coordinator and config entry."""
        self.hass = hass
        self.coordinator = coordinator
        self.entry_id = coordinator.config_entry.entry_id

    def emit(self, suffix: str, **payload: Any) -> None:
        """Send a signal to the other managers of this entry.

        Listeners receive the keyword payload as a single dict, e.g.
        ``self.emit(const.SIGNAL_SUFFIX_DEADLINE_REACHED, day_key="20261020")``.
        """
        const.LOGGER.debug("Signal '%s' (%s): %s", suffix, self.entry_id, payload)
        async_dispatcher_send(self.hass, get_event_signal(self.entry_id, suffix), payload)

    def listen(self, suffix: str, callback: Callable[..., Any]) -> None:
        """Subscribe to a signal of this entry until the entry unloads."""
        self.coordinator.config_entry.async_on_unload(
            async_dispatcher_connect(
                self.hass, get_event_signal(self.entry_id, suffix), callback
            )
        )
        const.LOGGER.debug(
            "%s subscribed to '%s' (%s)", type(self).__name__, suffix, self.entry_id
        )

    @abstractmethod
    async def async_setup(self) -> None:
        """Subscribe to signals; called once from the coordinator boot sequence."""
