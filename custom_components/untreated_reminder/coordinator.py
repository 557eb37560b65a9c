# File: coordinator.py
"""Coordinator for the Untreated Reminder integration.

Orchestration context for one config entry. Owns the store, the remote count
client and the managers, exposes the effective settings, and publishes a
snapshot (profile identity, cached count, today's record) to the entities.

In-memory caches (profile identity, in-flight count task, surface channels)
live on these objects, are populated lazily and are rebuilt after a restart.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.core import callback
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator
from homeassistant.util import dt as dt_util

from . import const
from .api import UntreatedCountClient
from .managers import AckManager, HousekeepingManager, SchedulerManager, SurfaceManager
from .utils import dt_utils

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .store import UntreatedReminderStore
    from .type_defs import ReminderSettings


def build_settings(config_entry: ConfigEntry) -> ReminderSettings:
    """Read the effective settings from entry data overlaid with options."""
    merged = {**config_entry.data, **config_entry.options}
    return {
        "label_name": merged.get(const.CONF_LABEL_NAME, const.DEFAULT_LABEL_NAME),
        "target_hour": int(merged.get(const.CONF_TARGET_HOUR, const.DEFAULT_TARGET_HOUR)),
        "deadline_hour": int(
            merged.get(const.CONF_DEADLINE_HOUR, const.DEFAULT_DEADLINE_HOUR)
        ),
        "work_start_hour": int(
            merged.get(const.CONF_WORK_START_HOUR, const.DEFAULT_WORK_START_HOUR)
        ),
        "work_end_hour": int(
            merged.get(const.CONF_WORK_END_HOUR, const.DEFAULT_WORK_END_HOUR)
        ),
        "retention_days": int(
            merged.get(const.CONF_RETENTION_DAYS, const.DEFAULT_RETENTION_DAYS)
        ),
    }


class UntreatedReminderCoordinator(DataUpdateCoordinator[dict[str, Any]]):
    """Coordinator for Untreated Reminder integration.

    No polling interval: the scheduler drives every remote call and the
    snapshot is pushed whenever stored state changes.
    """

    config_entry: ConfigEntry

    def __init__(
        self,
        hass: HomeAssistant,
        config_entry: ConfigEntry,
        store: UntreatedReminderStore,
    ) -> None:
        """Initialize the UntreatedReminderCoordinator."""
        super().__init__(
            hass,
            const.LOGGER,
            config_entry=config_entry,
            name=f"{const.DOMAIN}{const.COORDINATOR_SUFFIX}",
            update_interval=None,
        )
        self.store = store
        self.settings: ReminderSettings = build_settings(config_entry)
        self.client = UntreatedCountClient(
            hass,
            store,
            config_entry.data[const.CONF_ACCESS_TOKEN],
            self.settings["label_name"],
        )
        self.scheduler = SchedulerManager(hass, self)
        self.surfaces = SurfaceManager(hass, self)
        self.ack = AckManager(hass, self)
        self.housekeeping = HousekeepingManager(hass, self)

    # -------------------------------------------------------------------------------------
    # Boot
    # -------------------------------------------------------------------------------------

    async def async_start(self) -> None:
        """Boot sequence run on every start.

        Managers subscribe first, then housekeeping reconciles whatever a
        restart left behind, then the recurring timers are re-armed. A start
        on a weekday inside working hours also refreshes the count and the
        banners instead of waiting for the next hourly fire.
        """
        for manager in (self.scheduler, self.surfaces, self.ack, self.housekeeping):
            await manager.async_setup()
        await self.housekeeping.async_run()
        now = dt_util.now()
        self.scheduler.arm_recurring(now)
        if self.scheduler.in_refresh_window(now):
            await self.ack.async_refresh_count()
        const.LOGGER.debug(
            "Boot complete for entry %s; timers: %s",
            self.config_entry.entry_id,
            list(self.scheduler.timers),
        )

    # -------------------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------------------

    def _build_snapshot(self) -> dict[str, Any]:
        identity = self.store.get_profile_cache() or None
        cache = self.store.get_count_cache(identity) if identity else None
        today_key = dt_utils.day_key_for(dt_util.now())
        return {
            const.SNAPSHOT_IDENTITY: identity,
            const.SNAPSHOT_COUNT: (
                cache.get(const.DATA_COUNT_CACHE_COUNT) if cache else None
            ),
            const.SNAPSHOT_CAPTURED_AT: (
                cache.get(const.DATA_COUNT_CACHE_CAPTURED_AT) if cache else None
            ),
            const.SNAPSHOT_TODAY_KEY: today_key,
            const.SNAPSHOT_TODAY_RECORD: self.store.get_ack_record(today_key),
        }

    async def _async_update_data(self) -> dict[str, Any]:
        """Return the current snapshot (no remote calls)."""
        return self._build_snapshot()

    @callback
    def async_refresh_snapshot(self) -> None:
        """Push a fresh snapshot to listening entities."""
        self.async_set_updated_data(self._build_snapshot())

    # -------------------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------------------

    async def async_handle_identity_change(self) -> None:
        """Clear identity-scoped caches after the account changed."""
        await self.client.async_clear_identity_cache()
        self.async_refresh_snapshot()
