# File: store.py
"""Handles persistent data storage for the Untreated Reminder integration.

Uses Home Assistant's Storage helper to save and load acknowledgement records,
surface bindings, cached counts, backoff instants and the cached profile
identity, so that decisions survive a restart at any moment.

Storage failures never propagate: a failed load yields the default structure
and a failed save is logged and dropped.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.storage import Store

from . import const
from .utils import dt_utils

if TYPE_CHECKING:
    from datetime import datetime

    from homeassistant.core import HomeAssistant

    from .type_defs import AckRecord, CountCacheEntry


class UntreatedReminderStore:
    """Handles persistent storage operations for Untreated Reminder data.

    Thin wrapper around Home Assistant's Store API. Every mutating operation
    writes through to disk before returning.
    """

    def __init__(
        self, hass: HomeAssistant, storage_key: str = const.STORAGE_KEY
    ) -> None:
        """Initialize the store.

        Args:
            hass: Home Assistant core object.
            storage_key: Key to identify storage location (default: const.STORAGE_KEY).
        """
        self.hass = hass
        self._storage_key = storage_key
        self._store: Store = Store(hass, const.STORAGE_VERSION, storage_key)
        self._data: dict[str, Any] = self.get_default_structure()

    @staticmethod
    def get_default_structure() -> dict[str, Any]:
        """Return canonical empty data structure for fresh installations."""
        return {
            const.DATA_META: {
                const.DATA_META_SCHEMA_VERSION: const.SCHEMA_VERSION_CURRENT,
            },
            const.DATA_ACK_RECORDS: {},
            const.DATA_SURFACE_BINDINGS: {},
            const.DATA_COUNT_CACHE: {},
            const.DATA_BACKOFF: {
                const.ENDPOINT_PROFILE: None,
                const.ENDPOINT_COUNT: None,
            },
            const.DATA_PROFILE_CACHE: "",
        }

    async def async_initialize(self) -> None:
        """Load data from storage during startup.

        Missing or unreadable storage results in the default structure. Data
        without a schema version is treated as legacy (schema 1) so that
        housekeeping migrates it.
        """
        const.LOGGER.debug("DEBUG: UntreatedReminderStore: Loading data from storage")
        try:
            existing_data = await self._store.async_load()
        except (HomeAssistantError, OSError, ValueError) as err:
            const.LOGGER.warning(
                "WARNING: Failed to load storage %s: %s. Continuing with empty data",
                self._storage_key,
                err,
            )
            existing_data = None

        if not isinstance(existing_data, dict):
            const.LOGGER.info("INFO: No existing storage found. Initializing new data")
            self._data = self.get_default_structure()
            return

        default = self.get_default_structure()
        if const.DATA_META not in existing_data:
            existing_data[const.DATA_META] = {
                const.DATA_META_SCHEMA_VERSION: const.SCHEMA_VERSION_LEGACY
            }
        for key, value in default.items():
            if not isinstance(existing_data.get(key), type(value)):
                existing_data[key] = value
        self._data = existing_data
        const.LOGGER.debug(
            "DEBUG: Loaded existing data from storage: %s",
            {
                "schema_version": self.schema_version,
                "ack_records": len(self._data[const.DATA_ACK_RECORDS]),
                "surface_bindings": len(self._data[const.DATA_SURFACE_BINDINGS]),
                "total_keys": len(self._data.keys()),
            },
        )

    @property
    def data(self) -> dict[str, Any]:
        """Retrieve the in-memory data cache."""
        return self._data

    @property
    def schema_version(self) -> int:
        """Return the schema version recorded in storage metadata."""
        return int(
            self._data[const.DATA_META].get(
                const.DATA_META_SCHEMA_VERSION, const.SCHEMA_VERSION_LEGACY
            )
        )

    def set_schema_version(self, version: int) -> None:
        """Record the schema version (persisted on the next save)."""
        self._data[const.DATA_META][const.DATA_META_SCHEMA_VERSION] = version

    async def async_save(self) -> None:
        """Save the current data structure to storage asynchronously.

        Raises:
            No exceptions raised - errors are logged but do not stop execution.
        """
        try:
            await self._store.async_save(self._data)
            const.LOGGER.debug("DEBUG: Data saved successfully to storage")
        except OSError as err:
            const.LOGGER.error(
                "ERROR: Failed to save storage due to file system error: %s. "
                "Check disk space and file permissions for %s",
                err,
                self._store.path,
            )
        except TypeError as err:
            const.LOGGER.error(
                "ERROR: Failed to save storage due to non-serializable data: %s",
                err,
            )
        except ValueError as err:
            const.LOGGER.error(
                "ERROR: Failed to save storage due to invalid data format: %s",
                err,
            )

    async def async_delete_storage(self) -> None:
        """Delete the storage file completely from disk."""
        self._data = self.get_default_structure()
        try:
            await self._store.async_remove()
            const.LOGGER.info(
                "INFO: Storage file removed successfully: %s",
                self._store.path,
            )
        except OSError as err:
            const.LOGGER.error(
                "ERROR: Failed to remove storage file %s: %s. Check file permissions",
                self._store.path,
                err,
            )

    # -------------------------------------------------------------------------------------
    # Acknowledgement Records
    # -------------------------------------------------------------------------------------

    def get_ack_record(self, day_key: str) -> AckRecord | None:
        """Return a copy of the record for a day key, or None."""
        record = self._data[const.DATA_ACK_RECORDS].get(day_key)
        if not isinstance(record, dict):
            return None
        return copy.deepcopy(record)  # type: ignore[return-value]

    def get_ack_records(self) -> dict[str, dict[str, Any]]:
        """Return a copy of every stored record keyed by day key."""
        return {
            day_key: copy.deepcopy(record)
            for day_key, record in self._data[const.DATA_ACK_RECORDS].items()
            if isinstance(record, dict)
        }

    async def async_set_ack_record(self, day_key: str, record: AckRecord) -> None:
        """Create or overwrite the record for a day key."""
        self._data[const.DATA_ACK_RECORDS][day_key] = dict(record)
        await self.async_save()

    async def async_replace_ack_records(
        self, records: dict[str, AckRecord] | dict[str, dict[str, Any]]
    ) -> None:
        """Replace the whole record map in one write."""
        self._data[const.DATA_ACK_RECORDS] = {
            day_key: dict(record) for day_key, record in records.items()
        }
        await self.async_save()

    # -------------------------------------------------------------------------------------
    # Surface Bindings
    # -------------------------------------------------------------------------------------

    def get_surface_binding(self, surface_id: str) -> str | None:
        """Return the identity last reported by a surface, or None."""
        return self._data[const.DATA_SURFACE_BINDINGS].get(surface_id)

    def get_surface_bindings(self) -> dict[str, str]:
        """Return a copy of the surface → identity map."""
        return dict(self._data[const.DATA_SURFACE_BINDINGS])

    async def async_set_surface_binding(self, surface_id: str, identity: str) -> None:
        """Record the identity detected in a surface."""
        bindings = self._data[const.DATA_SURFACE_BINDINGS]
        if bindings.get(surface_id) == identity:
            return
        bindings[surface_id] = identity
        await self.async_save()

    async def async_remove_surface_binding(self, surface_id: str) -> None:
        """Forget a closed surface."""
        if self._data[const.DATA_SURFACE_BINDINGS].pop(surface_id, None) is not None:
            await self.async_save()

    # -------------------------------------------------------------------------------------
    # Count Cache / Backoff / Profile
    # -------------------------------------------------------------------------------------

    def get_count_cache(self, identity: str) -> CountCacheEntry | None:
        """Return the cached count entry for an identity, or None."""
        entry = self._data[const.DATA_COUNT_CACHE].get(identity)
        if not isinstance(entry, dict):
            return None
        return copy.deepcopy(entry)  # type: ignore[return-value]

    async def async_set_count_cache(
        self, identity: str, count: int, captured_at: datetime
    ) -> None:
        """Store the latest exact count for an identity."""
        self._data[const.DATA_COUNT_CACHE][identity] = {
            const.DATA_COUNT_CACHE_COUNT: count,
            const.DATA_COUNT_CACHE_CAPTURED_AT: dt_utils.dt_to_iso_utc(captured_at),
        }
        await self.async_save()

    def get_backoff_until(self, endpoint: str) -> datetime | None:
        """Return the instant until which an endpoint class is skipped."""
        return dt_utils.dt_to_utc(self._data[const.DATA_BACKOFF].get(endpoint))

    async def async_set_backoff_until(
        self, endpoint: str, until: datetime | None
    ) -> None:
        """Persist (or clear, with None) the backoff instant for an endpoint class."""
        self._data[const.DATA_BACKOFF][endpoint] = (
            dt_utils.dt_to_iso_utc(until) if until is not None else None
        )
        await self.async_save()

    def get_profile_cache(self) -> str:
        """Return the cached authenticated identity ('' when unknown)."""
        return self._data.get(const.DATA_PROFILE_CACHE) or ""

    async def async_set_profile_cache(self, identity: str) -> None:
        """Persist the authenticated identity."""
        if self._data.get(const.DATA_PROFILE_CACHE) == identity:
            return
        self._data[const.DATA_PROFILE_CACHE] = identity
        await self.async_save()

    async def async_clear_identity_caches(self) -> None:
        """Drop the profile cache, count cache and both backoff instants."""
        self._data[const.DATA_PROFILE_CACHE] = ""
        self._data[const.DATA_COUNT_CACHE] = {}
        self._data[const.DATA_BACKOFF] = {
            const.ENDPOINT_PROFILE: None,
            const.ENDPOINT_COUNT: None,
        }
        await self.async_save()

    # -------------------------------------------------------------------------------------
    # Legacy Keys
    # -------------------------------------------------------------------------------------

    def get_legacy_entries(self) -> dict[str, Any]:
        """Return top-level keys left over from the flat legacy layout."""
        return {
            key: value
            for key, value in self._data.items()
            if key == const.LEGACY_PENDING_ACK_DATE_KEY
            or key.startswith(
                (const.LEGACY_ACK_KEY_PREFIX, const.LEGACY_IGNORE_KEY_PREFIX)
            )
        }

    def remove_legacy_keys(self, keys: list[str]) -> None:
        """Drop legacy top-level keys (persisted on the next save)."""
        for key in keys:
            self._data.pop(key, None)
