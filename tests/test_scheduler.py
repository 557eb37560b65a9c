"""Tests for SchedulerManager timer arming and dispatch.

Timers are driven with the freezer: advance_to() moves the clock and lets
every timer that came due fire.
"""

from __future__ import annotations

from datetime import datetime

from freezegun.api import FrozenDateTimeFactory
from homeassistant.config_entries import ConfigEntryState
from homeassistant.core import HomeAssistant
from pytest_homeassistant_custom_component.common import MockConfigEntry
from pytest_homeassistant_custom_component.test_util.aiohttp import (
    AiohttpClientMocker,
)

from custom_components.untreated_reminder import const
from custom_components.untreated_reminder.coordinator import (
    UntreatedReminderCoordinator,
)

from tests.helpers.setup import (
    FRIDAY_AFTER_TARGET,
    MONDAY_AFTER_TARGET,
    MONDAY_KEY,
    MONDAY_EVENING,
    MONDAY_MORNING,
    PACIFIC,
    advance_to,
    attach_surface,
    count_requests,
    mock_gmail,
    setup_integration,
)


def _local(*args: int) -> datetime:
    return datetime(*args, tzinfo=PACIFIC)


async def _boot(
    hass: HomeAssistant,
    entry: MockConfigEntry,
    aioclient_mock: AiohttpClientMocker,
    freezer: FrozenDateTimeFactory,
    at: datetime,
) -> UntreatedReminderCoordinator:
    freezer.move_to(at)
    mock_gmail(aioclient_mock, threads=7)
    return await setup_integration(hass, entry)


class TestBootArming:
    """Test the timers armed on every start."""

    async def test_boot_arms_daily_and_hourly(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """Monday 16:05 → daily Tuesday 16:00, hourly 17:00; count refreshed at boot."""
        coordinator = await _boot(
            hass, mock_config_entry, aioclient_mock, freezer, MONDAY_AFTER_TARGET
        )

        assert coordinator.scheduler.timers == {
            const.TIMER_DAILY: _local(2026, 10, 20, 16, 0),
            const.TIMER_HOURLY: _local(2026, 10, 19, 17, 0),
        }
        assert count_requests(aioclient_mock) == 1
        assert coordinator.data[const.SNAPSHOT_COUNT] == 7
        assert coordinator.store.get_ack_record(MONDAY_KEY) is None

    async def test_boot_outside_working_hours_skips_refresh(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """Monday 18:00 boots without touching the remote service."""
        coordinator = await _boot(
            hass, mock_config_entry, aioclient_mock, freezer, MONDAY_EVENING
        )

        assert aioclient_mock.call_count == 0
        assert coordinator.data[const.SNAPSHOT_COUNT] is None
        assert coordinator.scheduler.timers[const.TIMER_HOURLY] == _local(
            2026, 10, 19, 19, 0
        )

    async def test_friday_evening_arms_monday(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """The daily timer skips the weekend."""
        coordinator = await _boot(
            hass, mock_config_entry, aioclient_mock, freezer, FRIDAY_AFTER_TARGET
        )

        assert coordinator.scheduler.timers[const.TIMER_DAILY] == _local(
            2026, 10, 26, 16, 0
        )

    async def test_daily_across_dst_end_keeps_wall_clock(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """Friday before DST ends → Monday 16:00 PST."""
        coordinator = await _boot(
            hass, mock_config_entry, aioclient_mock, freezer, _local(2026, 10, 30, 16, 5)
        )

        daily = coordinator.scheduler.timers[const.TIMER_DAILY]
        assert daily == _local(2026, 11, 2, 16, 0)
        assert daily.utcoffset().total_seconds() == -8 * 3600

    async def test_unload_cancels_every_timer(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """Unloading the entry leaves no timer behind."""
        coordinator = await _boot(
            hass, mock_config_entry, aioclient_mock, freezer, MONDAY_AFTER_TARGET
        )

        assert await hass.config_entries.async_unload(mock_config_entry.entry_id)
        await hass.async_block_till_done()

        assert mock_config_entry.state is ConfigEntryState.NOT_LOADED
        assert coordinator.scheduler.timers == {}


class TestTimerFires:
    """Test what each timer does when it fires."""

    async def test_daily_fire_runs_checkpoint_and_rearms(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """At 16:00 the reminder is shown and tomorrow's timer armed."""
        coordinator = await _boot(
            hass, mock_config_entry, aioclient_mock, freezer, MONDAY_MORNING
        )
        surface = await attach_surface(hass, coordinator)

        await advance_to(hass, freezer, _local(2026, 10, 19, 16, 0))

        record = coordinator.store.get_ack_record(MONDAY_KEY)
        assert record[const.DATA_ACK_STATE] == const.ACK_STATE_PENDING
        assert len(surface.messages(const.SURFACE_MSG_SHOW)) == 1
        assert coordinator.scheduler.timers[const.TIMER_DAILY] == _local(
            2026, 10, 20, 16, 0
        )

    async def test_hourly_fire_inside_working_hours_refreshes(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """10:00 on a weekday refreshes the count and the banner."""
        coordinator = await _boot(
            hass, mock_config_entry, aioclient_mock, freezer, MONDAY_MORNING
        )
        assert count_requests(aioclient_mock) == 1
        surface = await attach_surface(hass, coordinator)

        await advance_to(hass, freezer, _local(2026, 10, 19, 10, 0))

        assert count_requests(aioclient_mock) == 2
        banners = surface.messages(const.SURFACE_MSG_REFRESH_BANNER)
        assert [msg[const.SURFACE_MSG_COUNT] for msg in banners] == [7]
        assert coordinator.data[const.SNAPSHOT_COUNT] == 7
        assert coordinator.scheduler.timers[const.TIMER_HOURLY] == _local(
            2026, 10, 19, 11, 0
        )

    async def test_hourly_fire_after_working_hours_is_skipped(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """18:00 is outside [08:00, 18:00): the timer re-arms without a request."""
        coordinator = await _boot(
            hass, mock_config_entry, aioclient_mock, freezer, _local(2026, 10, 19, 17, 30)
        )
        surface = await attach_surface(hass, coordinator)
        before = count_requests(aioclient_mock)

        await advance_to(hass, freezer, _local(2026, 10, 19, 18, 0))

        assert count_requests(aioclient_mock) == before
        assert surface.messages() == []
        assert coordinator.scheduler.timers[const.TIMER_HOURLY] == _local(
            2026, 10, 19, 19, 0
        )

    async def test_hourly_fire_on_weekend_is_skipped(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """Saturday mornings stay quiet."""
        await _boot(
            hass, mock_config_entry, aioclient_mock, freezer, _local(2026, 10, 24, 9, 30)
        )

        await advance_to(hass, freezer, _local(2026, 10, 24, 10, 0))

        assert aioclient_mock.call_count == 0
