# File: managers/housekeeping_manager.py
"""Housekeeping Manager for Untreated Reminder integration.

An idempotent reconciliation pass, run on every start and on demand. It
repairs whatever a restart left inconsistent mid-cycle:

1. Migrate legacy record formats (flat keys, camelCase epoch-ms records)
2. Delete records whose shown_at is older than the retention window and
   cancel their deadline timers
3. Flip pending records past their deadline to ignored (one close_all per pass)
4. Re-arm deadline timers for pending records still awaiting their deadline

Running it twice in a row changes nothing the second time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from homeassistant.util import dt as dt_util

from .. import const
from ..engines.ack_engine import AckEngine
from ..utils import dt_utils
from .base_manager import BaseManager

if TYPE_CHECKING:
    from datetime import datetime

    from homeassistant.core import HomeAssistant

    from ..coordinator import UntreatedReminderCoordinator


@dataclass
class HousekeepingReport:
    """Counts of what one housekeeping pass changed."""

    migrated: int = 0
    cleaned: int = 0
    expired: int = 0
    rearmed: int = 0

    def as_dict(self) -> dict[str, int]:
        """Return the report as a plain dict (service response, diagnostics)."""
        return {
            "migrated": self.migrated,
            "cleaned": self.cleaned,
            "expired": self.expired,
            "rearmed": self.rearmed,
        }


class HousekeepingManager(BaseManager):
    """Reconciles stored records with the clock and the timer registry."""

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: UntreatedReminderCoordinator,
    ) -> None:
        """Initialize housekeeping manager."""
        super().__init__(hass, coordinator)

    async def async_setup(self) -> None:
        """Nothing to subscribe to; the coordinator runs the pass at boot."""

    async def async_run(self, now: datetime | None = None) -> HousekeepingReport:
        """Run one full housekeeping pass."""
        now = now or dt_util.now()
        report = HousekeepingReport()
        report.migrated = await self.async_migrate_legacy()
        await self._async_reconcile(now, report)
        self.coordinator.async_refresh_snapshot()

        if report.cleaned or report.expired or report.migrated:
            const.LOGGER.info("Housekeeping: %s", report.as_dict())
        else:
            const.LOGGER.debug("Housekeeping: %s", report.as_dict())
        return report

    # =========================================================================
    # Legacy Migration
    # =========================================================================

    async def async_migrate_legacy(self) -> int:
        """Convert legacy records into the current layout.

        Flat keys get a deadline computed from their day key. A record that
        already exists for the day key wins and the legacy key is dropped.

        Returns:
            Number of records created or converted.
        """
        store = self.coordinator.store
        deadline_hour = self.coordinator.settings["deadline_hour"]
        records: dict[str, Any] = store.get_ack_records()
        legacy = store.get_legacy_entries()
        needs_version = store.schema_version < const.SCHEMA_VERSION_CURRENT
        migrated = 0
        changed = False
        to_remove: list[str] = []

        for key, value in legacy.items():
            if key == const.LEGACY_PENDING_ACK_DATE_KEY:
                day_key, state = value, const.ACK_STATE_PENDING
            elif key.startswith(const.LEGACY_ACK_KEY_PREFIX):
                day_key, state = key[len(const.LEGACY_ACK_KEY_PREFIX) :], const.ACK_STATE_ACK
            else:
                day_key = key[len(const.LEGACY_IGNORE_KEY_PREFIX) :]
                state = const.ACK_STATE_IGNORED

            if not dt_utils.is_valid_day_key(day_key):
                const.LOGGER.debug("Legacy key '%s' has no valid day key; kept", key)
                continue
            to_remove.append(key)
            if day_key in records:
                continue
            record = AckEngine.build_migrated_record(day_key, state, deadline_hour)
            if record is not None:
                records[day_key] = record
                migrated += 1

        for day_key, record in list(records.items()):
            if not AckEngine.is_legacy_record(record):
                continue
            converted = AckEngine.convert_legacy_record(day_key, record, deadline_hour)
            if converted is None:
                const.LOGGER.warning(
                    "Dropping unreadable legacy record for %s: %s", day_key, record
                )
                records.pop(day_key)
            else:
                records[day_key] = converted
                migrated += 1
            changed = True

        if not (to_remove or changed or migrated or needs_version):
            return 0

        store.remove_legacy_keys(to_remove)
        store.set_schema_version(const.SCHEMA_VERSION_CURRENT)
        await store.async_replace_ack_records(records)
        if migrated or to_remove:
            const.LOGGER.info(
                "Migrated %s legacy record(s); removed %s legacy key(s)",
                migrated,
                len(to_remove),
            )
        return migrated

    # =========================================================================
    # Reconciliation
    # =========================================================================

    async def _async_reconcile(self, now: datetime, report: HousekeepingReport) -> None:
        store = self.coordinator.store
        scheduler = self.coordinator.scheduler
        retention_days = self.coordinator.settings["retention_days"]
        records = store.get_ack_records()
        updated = False

        for day_key, record in list(records.items()):
            if AckEngine.is_stale(record, now, retention_days):
                records.pop(day_key)
                scheduler.cancel_deadline(day_key)
                report.cleaned += 1
                updated = True
                continue

            if AckEngine.is_expired(record, now):
                records[day_key] = AckEngine.with_state(record, const.ACK_STATE_IGNORED)
                scheduler.cancel_deadline(day_key)
                report.expired += 1
                updated = True
                const.LOGGER.info(
                    "Housekeeping marked missed acknowledgement for %s", day_key
                )
                continue

            if AckEngine.is_live_pending(record, now):
                deadline_at = AckEngine.get_deadline(record)
                if deadline_at is not None:
                    scheduler.arm_deadline(day_key, deadline_at)
                    report.rearmed += 1

        if updated:
            await store.async_replace_ack_records(records)
        if report.expired:
            await self.coordinator.surfaces.async_close_all()
