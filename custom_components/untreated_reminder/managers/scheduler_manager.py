# File: managers/scheduler_manager.py
"""Scheduler Manager for Untreated Reminder integration.

The single timer owner. Holds every named one-shot timer registered with the
host (`async_track_point_in_time`) and dispatches fires by name:

- daily-ack: today or the next working day at the target hour
- untreated-hourly: the next top of the hour
- ack-deadline-YYYYMMDD: the deadline of a pending record

Recurring timers are re-armed before their signal is emitted so that slow
handlers never delay the next fire. Host timers do not survive a restart;
the coordinator boot sequence re-arms them on every start.

Signals Emitted:
- SIGNAL_SUFFIX_DAILY_CHECKPOINT
- SIGNAL_SUFFIX_HOURLY_REFRESH (only inside working hours on weekdays)
- SIGNAL_SUFFIX_DEADLINE_REACHED (payload: day_key)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.core import CALLBACK_TYPE, callback
from homeassistant.helpers.event import async_track_point_in_time
from homeassistant.util import dt as dt_util

from .. import const
from ..utils import dt_utils
from .base_manager import BaseManager

if TYPE_CHECKING:
    from datetime import datetime

    from homeassistant.core import HomeAssistant

    from ..coordinator import UntreatedReminderCoordinator


def deadline_timer_name(day_key: str) -> str:
    """Return the timer name used for a day key's deadline."""
    return f"{const.TIMER_DEADLINE_PREFIX}{day_key}"


class SchedulerManager(BaseManager):
    """Owns named wall-clock timers and publishes their fires as signals."""

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: UntreatedReminderCoordinator,
    ) -> None:
        """Initialize scheduler manager."""
        super().__init__(hass, coordinator)
        self._timers: dict[str, CALLBACK_TYPE] = {}
        self._due: dict[str, datetime] = {}

    async def async_setup(self) -> None:
        """Register timer cleanup with the config entry lifecycle."""
        self.coordinator.config_entry.async_on_unload(self.cancel_all)

    # =========================================================================
    # Timer Registry
    # =========================================================================

    @property
    def timers(self) -> dict[str, datetime]:
        """Return armed timer names mapped to their fire instants."""
        return dict(self._due)

    def is_armed(self, name: str) -> bool:
        """Return True when a timer with this name is armed."""
        return name in self._timers

    def arm(self, name: str, when: datetime) -> None:
        """Arm (or re-arm) a named one-shot timer."""
        self.cancel(name)

        @callback
        def _fire(fired_at: datetime) -> None:
            self._timers.pop(name, None)
            self._due.pop(name, None)
            self._dispatch(name, fired_at)

        self._timers[name] = async_track_point_in_time(self.hass, _fire, when)
        self._due[name] = when
        const.LOGGER.debug("Timer '%s' armed for %s", name, when.isoformat())

    def cancel(self, name: str) -> bool:
        """Cancel a named timer. Returns True when one was armed."""
        unsub = self._timers.pop(name, None)
        self._due.pop(name, None)
        if unsub is None:
            return False
        unsub()
        const.LOGGER.debug("Timer '%s' cancelled", name)
        return True

    @callback
    def cancel_all(self) -> None:
        """Cancel every armed timer (entry unload)."""
        for name in list(self._timers):
            self.cancel(name)

    # =========================================================================
    # Arming Helpers
    # =========================================================================

    def arm_daily(self, now: datetime | None = None) -> datetime:
        """Arm the daily reminder timer and return its fire time."""
        when = dt_utils.next_daily_run(
            now or dt_util.now(), self.coordinator.settings["target_hour"]
        )
        self.arm(const.TIMER_DAILY, when)
        return when

    def arm_hourly(self, now: datetime | None = None) -> datetime:
        """Arm the hourly refresh timer for the next top of the hour."""
        when = dt_utils.next_top_of_hour(now or dt_util.now())
        self.arm(const.TIMER_HOURLY, when)
        return when

    def in_refresh_window(self, when: datetime) -> bool:
        """Return True on a weekday inside the configured working hours."""
        settings = self.coordinator.settings
        return not dt_utils.is_weekend(when) and dt_utils.is_within_working_hours(
            when, settings["work_start_hour"], settings["work_end_hour"]
        )

    def arm_recurring(self, now: datetime | None = None) -> None:
        """Re-validate both recurring timers (process start, settings change)."""
        self.arm_daily(now)
        self.arm_hourly(now)

    def arm_deadline(self, day_key: str, deadline_at: datetime) -> None:
        """Arm the deadline timer for a pending day key."""
        self.arm(deadline_timer_name(day_key), deadline_at)

    def cancel_deadline(self, day_key: str) -> bool:
        """Cancel the deadline timer for a day key."""
        return self.cancel(deadline_timer_name(day_key))

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _dispatch(self, name: str, fired_at: datetime) -> None:
        """Route a timer fire to its handler by name."""
        if name == const.TIMER_DAILY:
            self.arm_daily(fired_at)
            const.LOGGER.debug("Daily checkpoint timer fired at %s", fired_at)
            self.emit(const.SIGNAL_SUFFIX_DAILY_CHECKPOINT)
            return

        if name == const.TIMER_HOURLY:
            self.arm_hourly(fired_at)
            if not self.in_refresh_window(fired_at):
                const.LOGGER.debug(
                    "Hourly refresh skipped outside working hours (%s)", fired_at
                )
                return
            self.emit(const.SIGNAL_SUFFIX_HOURLY_REFRESH)
            return

        if name.startswith(const.TIMER_DEADLINE_PREFIX):
            day_key = name[len(const.TIMER_DEADLINE_PREFIX) :]
            self.emit(const.SIGNAL_SUFFIX_DEADLINE_REACHED, day_key=day_key)
            return

        const.LOGGER.warning("Unknown timer '%s' fired; ignoring", name)
