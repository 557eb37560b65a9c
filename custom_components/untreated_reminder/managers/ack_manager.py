# File: managers/ack_manager.py
"""Acknowledgement Manager for Untreated Reminder integration.

Owns the per-day record lifecycle (absent → pending → ack | ignored). Rules
come from AckEngine; this manager performs the I/O around them:

- Checkpoint evaluation: guards, count lookup, pending record, fanout, deadline timer
- Acknowledgement: write ack, close every surface, cancel the deadline timer
- Deadline handling: pending → ignored and close every surface
- Hourly refresh: exact count refresh and banner update

Every durable decision is written to the store before any surface is messaged.

Signals Consumed:
- SIGNAL_SUFFIX_DAILY_CHECKPOINT: Scheduled checkpoint
- SIGNAL_SUFFIX_SURFACE_MATCHED: Late-opened surface; non-forced checkpoint
- SIGNAL_SUFFIX_DEADLINE_REACHED: Deadline timer fired for a day key
- SIGNAL_SUFFIX_HOURLY_REFRESH: Count refresh inside working hours
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from homeassistant.util import dt as dt_util

from .. import const
from ..api import BackoffActiveError, FetchFailedError
from ..engines.ack_engine import AckEngine
from ..utils import dt_utils
from .base_manager import BaseManager

if TYPE_CHECKING:
    from datetime import datetime

    from homeassistant.core import HomeAssistant

    from ..coordinator import UntreatedReminderCoordinator


@dataclass
class AckResult:
    """Outcome of an acknowledgement request.

    Attributes:
        ok: Whether the acknowledgement was accepted
        reason: no_record or late_acknowledgement when rejected
    """

    ok: bool
    reason: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return the service response shape."""
        return {const.RESPONSE_OK: self.ok, const.RESPONSE_REASON: self.reason}


class AckManager(BaseManager):
    """Acknowledgement state machine I/O: checkpoints, acks and deadlines."""

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: UntreatedReminderCoordinator,
    ) -> None:
        """Initialize acknowledgement manager."""
        super().__init__(hass, coordinator)

    async def async_setup(self) -> None:
        """Subscribe to scheduler and surface signals."""
        self.listen(const.SIGNAL_SUFFIX_DAILY_CHECKPOINT, self._async_on_checkpoint)
        self.listen(const.SIGNAL_SUFFIX_SURFACE_MATCHED, self._async_on_checkpoint)
        self.listen(const.SIGNAL_SUFFIX_DEADLINE_REACHED, self._async_on_deadline)
        self.listen(const.SIGNAL_SUFFIX_HOURLY_REFRESH, self._async_on_hourly)

    # =========================================================================
    # Signal Handlers
    # =========================================================================

    async def _async_on_checkpoint(self, payload: dict[str, Any]) -> None:
        await self.async_evaluate_checkpoint()

    async def _async_on_deadline(self, payload: dict[str, Any]) -> None:
        await self.async_handle_deadline(payload["day_key"])

    async def _async_on_hourly(self, payload: dict[str, Any]) -> None:
        await self.async_refresh_count()

    # =========================================================================
    # Checkpoint
    # =========================================================================

    async def async_evaluate_checkpoint(
        self, now: datetime | None = None, *, forced: bool = False
    ) -> str:
        """Decide whether today's reminder must be shown, and show it.

        Guard order: weekend/target hour → today's record → backlog count.
        A forced evaluation skips the guards; over a terminal record it
        re-shows the reminder but keeps the record.

        Args:
            now: Evaluation instant (defaults to the current local time)
            forced: User-initiated check (toolbar action, force_check service)

        Returns:
            CHECKPOINT_SHOWN, or the constant naming why nothing was shown.
        """
        now = now or dt_util.now()
        day_key = dt_utils.day_key_for(now)
        record = self.coordinator.store.get_ack_record(day_key)
        settings = self.coordinator.settings

        decision = AckEngine.evaluate_guards(now, record, settings, forced=forced)
        if not decision.proceed:
            const.LOGGER.debug("Checkpoint for %s skipped: %s", day_key, decision.reason)
            return decision.reason or const.CHECKPOINT_SKIP_NO_BACKLOG

        identity = await self.coordinator.client.async_get_profile_email()
        if not identity:
            const.LOGGER.debug("Checkpoint for %s skipped: no profile", day_key)
            return const.CHECKPOINT_SKIP_NO_PROFILE

        count = await self._async_resolve_count(identity)
        await self.coordinator.surfaces.async_refresh_banner(count)
        if count <= 0:
            const.LOGGER.info("No untreated conversations for %s; nothing to show", day_key)
            self.coordinator.async_refresh_snapshot()
            return const.CHECKPOINT_SKIP_NO_BACKLOG

        if decision.keep_record and record is not None:
            deadline_at = AckEngine.get_deadline(
                record
            ) or dt_utils.deadline_for_day_key(day_key, settings["deadline_hour"])
            const.LOGGER.info(
                "Forced reminder for %s re-shown; record stays %s",
                day_key,
                record[const.DATA_ACK_STATE],
            )
        else:
            deadline_at = dt_utils.deadline_for_day_key(
                day_key, settings["deadline_hour"]
            )
            await self.coordinator.store.async_set_ack_record(
                day_key,
                AckEngine.build_pending_record(now, deadline_at, forced=forced),
            )
            const.LOGGER.info(
                "Pending acknowledgement for %s (count=%s, deadline=%s, source=%s)",
                day_key,
                count,
                dt_utils.dt_format_short(deadline_at),
                const.ACK_SOURCE_MANUAL if forced else const.ACK_SOURCE_AUTO,
            )

        self.coordinator.async_refresh_snapshot()
        await self.coordinator.surfaces.async_notify(
            count, day_key, deadline_at, auto=not forced
        )

        if not forced:
            self.coordinator.scheduler.arm_deadline(day_key, deadline_at)
        return const.CHECKPOINT_SHOWN

    async def _async_resolve_count(self, identity: str) -> int:
        """Exact count, else the cheap estimate, else the last cached count."""
        client = self.coordinator.client
        try:
            return await client.async_get_count(identity, exact=True, use_cache=False)
        except (BackoffActiveError, FetchFailedError) as err:
            const.LOGGER.warning("Exact count failed (%s); trying estimate", err)

        estimate = await client.async_get_estimate()
        if estimate > 0:
            return estimate
        cached = client.get_cached_count(identity)
        return cached if cached and cached > 0 else 0

    async def async_refresh_count(self) -> int:
        """Refresh the exact count and push it to every matched surface."""
        identity = await self.coordinator.client.async_get_profile_email()
        if not identity:
            return 0
        count = await self.coordinator.client.async_refresh(identity)
        self.coordinator.async_refresh_snapshot()
        await self.coordinator.surfaces.async_refresh_banner(count)
        return count

    # =========================================================================
    # Acknowledgement
    # =========================================================================

    async def async_acknowledge(
        self, day_key: str | None = None, now: datetime | None = None
    ) -> AckResult:
        """Record a user acknowledgement for a day key.

        Every outcome closes all matched surfaces. Acknowledgement from any
        surface is authoritative for the whole day.

        Args:
            day_key: Day being acknowledged (defaults to today)
            now: Acknowledgement instant (defaults to the current local time)

        Returns:
            AckResult with ok, or reason no_record / late_acknowledgement.
        """
        now = now or dt_util.now()
        day_key = day_key or dt_utils.day_key_for(now)
        record = self.coordinator.store.get_ack_record(day_key)
        decision = AckEngine.check_acknowledgement(record, now)

        if decision.write and record is not None:
            await self.coordinator.store.async_set_ack_record(
                day_key, AckEngine.with_state(record, const.ACK_STATE_ACK)
            )
            const.LOGGER.info("Acknowledged %s", day_key)
        elif not decision.ok:
            const.LOGGER.info(
                "Acknowledgement for %s rejected: %s", day_key, decision.reason
            )

        await self.coordinator.surfaces.async_close_all()
        if decision.ok:
            self.coordinator.scheduler.cancel_deadline(day_key)
        self.coordinator.async_refresh_snapshot()
        return AckResult(ok=decision.ok, reason=decision.reason)

    # =========================================================================
    # Deadline
    # =========================================================================

    async def async_handle_deadline(
        self, day_key: str, now: datetime | None = None
    ) -> bool:
        """Handle a deadline timer fire for a day key.

        Returns:
            True when the record moved from pending to ignored.
        """
        now = now or dt_util.now()
        record = self.coordinator.store.get_ack_record(day_key)
        self.coordinator.scheduler.cancel_deadline(day_key)

        if not AckEngine.is_expired(record, now):
            const.LOGGER.debug(
                "Deadline for %s: nothing to do (state=%s)",
                day_key,
                AckEngine.get_state(record),
            )
            return False

        await self.coordinator.store.async_set_ack_record(
            day_key, AckEngine.with_state(record, const.ACK_STATE_IGNORED)  # type: ignore[arg-type]
        )
        const.LOGGER.info("Missed acknowledgement recorded for %s", day_key)
        self.coordinator.async_refresh_snapshot()
        await self.coordinator.surfaces.async_close_all()
        return True
