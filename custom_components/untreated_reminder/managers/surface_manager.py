# File: managers/surface_manager.py
"""Surface Manager for Untreated Reminder integration.

Keeps every open mailbox view (a "surface") consistent with the day's
acknowledgement state.

Responsibilities:
- Surface registry: each surface registers a delivery channel (its notify service)
- Identity matching: surfaces report the mailbox they show; only surfaces whose
  identity equals the authenticated profile receive messages
- Fanout: show / close / refresh_banner messages to every matched surface,
  with one re-attachment retry for a surface that has lost its listener

Delivery is best-effort. A surface that is still unreachable after the retry is
logged and skipped; a surface opened later catches up through its own on-load
check.

Signals Emitted:
- SIGNAL_SUFFIX_SURFACE_MATCHED (payload: surface_id) on a surface's first match
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from homeassistant.exceptions import HomeAssistantError

from .. import const
from ..utils import dt_utils
from .base_manager import BaseManager

if TYPE_CHECKING:
    from datetime import datetime

    from homeassistant.core import HomeAssistant

    from ..coordinator import UntreatedReminderCoordinator
    from ..type_defs import IdentityResponse, SurfaceCheck


# =============================================================================
# Delivery Contracts
# =============================================================================


class SurfaceUnavailableError(HomeAssistantError):
    """The surface has no active listener for messages."""


@dataclass
class DeliveryResult:
    """Outcome of delivering one message to one surface.

    Attributes:
        surface_id: Target surface
        delivered: Whether the message reached the surface
        reattached: Whether delivery needed the re-attachment retry
        error: Failure description when not delivered
    """

    surface_id: str
    delivered: bool
    reattached: bool = False
    error: str | None = None


class SurfaceChannel(Protocol):
    """Delivery channel for one surface."""

    async def async_deliver(self, message: dict[str, Any]) -> None:
        """Deliver a structured message.

        Raises:
            SurfaceUnavailableError: No listener is present on the surface.
        """


class NotifyServiceChannel:
    """Delivers surface messages through a Home Assistant notify service.

    The structured message travels in the notification data so a surface
    relaying the notify call can act on it; phones see a regular
    notification with an acknowledge action.
    """

    def __init__(self, hass: HomeAssistant, notify_service: str, entry_id: str) -> None:
        """Initialize the channel."""
        self.hass = hass
        self.notify_service = notify_service
        self._entry_id = entry_id
        if "." in notify_service:
            self._domain, self._service = notify_service.split(".", 1)
        else:
            self._domain, self._service = const.NOTIFY_DOMAIN, notify_service

    async def async_deliver(self, message: dict[str, Any]) -> None:
        """Send the message through the notify service."""
        if not self.hass.services.has_service(self._domain, self._service):
            raise SurfaceUnavailableError(
                f"Notify service '{self._domain}.{self._service}' not available"
            )
        await self.hass.services.async_call(
            self._domain, self._service, self._build_payload(message), blocking=True
        )

    def _build_payload(self, message: dict[str, Any]) -> dict[str, Any]:
        msg_type = message[const.SURFACE_MSG_TYPE]
        data: dict[str, Any] = {const.DOMAIN: message}

        if msg_type == const.SURFACE_MSG_CLOSE:
            data[const.NOTIFY_TAG] = const.NOTIFY_TAG_PREFIX
            return {const.NOTIFY_MESSAGE: const.NOTIFY_MESSAGE_CLEAR, const.NOTIFY_DATA: data}

        count = message.get(const.SURFACE_MSG_COUNT, 0)
        if msg_type == const.SURFACE_MSG_REFRESH_BANNER:
            data[const.NOTIFY_TAG] = f"{const.NOTIFY_TAG_PREFIX}-banner"
            return {
                const.NOTIFY_TITLE: const.NOTIFY_TITLE_REMINDER,
                const.NOTIFY_MESSAGE: f"{count} untreated conversation(s)",
                const.NOTIFY_DATA: data,
            }

        day_key = message.get(const.SURFACE_MSG_DAY_KEY, "")
        deadline = dt_utils.dt_to_utc(message.get(const.SURFACE_MSG_DEADLINE_AT))
        data[const.NOTIFY_TAG] = const.NOTIFY_TAG_PREFIX
        if message.get(const.SURFACE_MSG_AUTO):
            data[const.NOTIFY_ACTIONS] = [
                {
                    const.NOTIFY_ACTION: (
                        f"{const.ACTION_ACKNOWLEDGE}|{self._entry_id[:8]}|{day_key}"
                    ),
                    const.NOTIFY_TITLE: const.ACTION_TITLE_ACKNOWLEDGE,
                }
            ]
        return {
            const.NOTIFY_TITLE: const.NOTIFY_TITLE_REMINDER,
            const.NOTIFY_MESSAGE: const.NOTIFY_MESSAGE_REMINDER_FMT.format(
                count=count, deadline=dt_utils.dt_format_short(deadline)
            ),
            const.NOTIFY_DATA: data,
        }


# =============================================================================
# Manager
# =============================================================================


class SurfaceManager(BaseManager):
    """Surface registry, identity matching and message fanout."""

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: UntreatedReminderCoordinator,
        reattach_timeout: float = const.DEFAULT_REATTACH_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize surface manager."""
        super().__init__(hass, coordinator)
        self.reattach_timeout = reattach_timeout
        self._channels: dict[str, SurfaceChannel] = {}
        self._reattach_waiters: dict[str, asyncio.Event] = {}
        self._matched: set[str] = set()

    async def async_setup(self) -> None:
        """Nothing to subscribe to; surfaces arrive through services."""

    # =========================================================================
    # Registry
    # =========================================================================

    @property
    def surfaces(self) -> list[str]:
        """Return the ids of every open (registered) surface."""
        return list(self._channels)

    def register_channel(self, surface_id: str, channel: SurfaceChannel) -> None:
        """Attach a delivery channel to a surface (new or re-attached)."""
        self._channels[surface_id] = channel
        waiter = self._reattach_waiters.get(surface_id)
        if waiter is not None:
            waiter.set()
        const.LOGGER.debug("Surface '%s' registered", surface_id)

    def register_notify_surface(self, surface_id: str, notify_service: str) -> None:
        """Attach a notify-service channel to a surface."""
        self.register_channel(
            surface_id, NotifyServiceChannel(self.hass, notify_service, self.entry_id)
        )

    async def async_unregister_surface(self, surface_id: str) -> None:
        """Forget a closed surface and its identity binding."""
        self._channels.pop(surface_id, None)
        self._matched.discard(surface_id)
        await self.coordinator.store.async_remove_surface_binding(surface_id)
        const.LOGGER.debug("Surface '%s' unregistered", surface_id)

    # =========================================================================
    # Identity Matching
    # =========================================================================

    async def async_report_identity(
        self, surface_id: str, email: str
    ) -> IdentityResponse:
        """Record the mailbox identity detected in a surface.

        The first successful match of a surface emits SURFACE_MATCHED so a
        late-opened surface gets its checkpoint evaluation.
        """
        identity = email.strip().lower()
        await self.coordinator.store.async_set_surface_binding(surface_id, identity)
        profile = await self.coordinator.client.async_get_profile_email()
        match = bool(profile) and identity == profile

        if match and surface_id not in self._matched:
            self._matched.add(surface_id)
            const.LOGGER.info("Surface '%s' matched profile %s", surface_id, profile)
            self.emit(const.SIGNAL_SUFFIX_SURFACE_MATCHED, surface_id=surface_id)
        elif not match:
            self._matched.discard(surface_id)
            const.LOGGER.debug(
                "Surface '%s' reports %s; profile is %s", surface_id, identity, profile
            )

        return {
            const.RESPONSE_OK: profile is not None,  # type: ignore[misc]
            const.RESPONSE_MATCH: match,
            const.RESPONSE_PROFILE: profile or "",
        }

    async def async_check_surface(self, surface_id: str) -> SurfaceCheck:
        """Report whether a surface shows the authenticated mailbox."""
        profile = await self.coordinator.client.async_get_profile_email()
        surface_identity = self.coordinator.store.get_surface_binding(surface_id)
        return {
            "matched": bool(profile) and surface_identity == profile,
            "surface_identity": surface_identity,
            "profile": profile,
        }

    async def async_get_matched_surfaces(self, identity: str | None = None) -> list[str]:
        """Return open surfaces whose reported identity equals the profile.

        Surfaces with no report yet, or a different mailbox, are skipped.
        """
        if identity is None:
            identity = await self.coordinator.client.async_get_profile_email()
        if not identity:
            return []
        bindings = self.coordinator.store.get_surface_bindings()
        matched = [sid for sid in self._channels if bindings.get(sid) == identity]
        skipped = len(self._channels) - len(matched)
        if skipped:
            const.LOGGER.debug(
                "Fanout skipping %s surface(s) without a matching identity", skipped
            )
        return matched

    # =========================================================================
    # Fanout
    # =========================================================================

    async def async_notify(
        self, count: int, day_key: str, deadline_at: datetime, *, auto: bool
    ) -> list[DeliveryResult]:
        """Deliver a show message to every matched surface."""
        return await self._async_fanout(
            {
                const.SURFACE_MSG_TYPE: const.SURFACE_MSG_SHOW,
                const.SURFACE_MSG_COUNT: count,
                const.SURFACE_MSG_DAY_KEY: day_key,
                const.SURFACE_MSG_AUTO: auto,
                const.SURFACE_MSG_DEADLINE_AT: dt_utils.dt_to_iso_utc(deadline_at),
            }
        )

    async def async_close_all(self) -> list[DeliveryResult]:
        """Deliver a close message to every matched surface."""
        return await self._async_fanout({const.SURFACE_MSG_TYPE: const.SURFACE_MSG_CLOSE})

    async def async_refresh_banner(self, count: int) -> list[DeliveryResult]:
        """Deliver the latest backlog count to every matched surface."""
        return await self._async_fanout(
            {
                const.SURFACE_MSG_TYPE: const.SURFACE_MSG_REFRESH_BANNER,
                const.SURFACE_MSG_COUNT: count,
            }
        )

    async def _async_fanout(self, message: dict[str, Any]) -> list[DeliveryResult]:
        # Surfaces are messaged concurrently so that one waiting for
        # re-attachment does not hold up the others.
        results = list(
            await asyncio.gather(
                *(
                    self._async_deliver(surface_id, message)
                    for surface_id in await self.async_get_matched_surfaces()
                )
            )
        )
        delivered = sum(1 for result in results if result.delivered)
        const.LOGGER.debug(
            "Fanout '%s' delivered to %s/%s surface(s)",
            message[const.SURFACE_MSG_TYPE],
            delivered,
            len(results),
        )
        return results

    async def _async_deliver(
        self, surface_id: str, message: dict[str, Any]
    ) -> DeliveryResult:
        """Deliver one message; on a missing listener re-attach and retry once."""
        try:
            await self._async_send(surface_id, message)
            return DeliveryResult(surface_id, delivered=True)
        except SurfaceUnavailableError as err:
            const.LOGGER.debug("Surface '%s' unavailable (%s); re-attaching", surface_id, err)
        except HomeAssistantError as err:
            const.LOGGER.warning("Delivery to surface '%s' failed: %s", surface_id, err)
            return DeliveryResult(surface_id, delivered=False, error=str(err))

        await self._async_reattach(surface_id)
        try:
            await self._async_send(surface_id, message)
        except HomeAssistantError as err:
            const.LOGGER.warning(
                "Surface '%s' still unreachable after re-attachment: %s",
                surface_id,
                err,
            )
            return DeliveryResult(
                surface_id, delivered=False, reattached=True, error=str(err)
            )
        return DeliveryResult(surface_id, delivered=True, reattached=True)

    async def _async_send(self, surface_id: str, message: dict[str, Any]) -> None:
        channel = self._channels.get(surface_id)
        if channel is None:
            raise SurfaceUnavailableError(f"Surface '{surface_id}' has no channel")
        await channel.async_deliver(message)

    async def _async_reattach(self, surface_id: str) -> None:
        """Ask the surface to re-register and wait briefly for it to do so."""
        waiter = asyncio.Event()
        self._reattach_waiters[surface_id] = waiter
        try:
            self.hass.bus.async_fire(
                const.EVENT_SURFACE_REATTACH,
                {const.FIELD_SURFACE_ID: surface_id, "entry_id": self.entry_id},
            )
            async with asyncio.timeout(self.reattach_timeout):
                await waiter.wait()
        except TimeoutError:
            const.LOGGER.debug("Surface '%s' did not re-register in time", surface_id)
        finally:
            self._reattach_waiters.pop(surface_id, None)
