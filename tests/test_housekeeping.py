"""Tests for HousekeepingManager: migration, retention, expiry and re-arming."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from freezegun.api import FrozenDateTimeFactory
from homeassistant.core import HomeAssistant
from pytest_homeassistant_custom_component.common import MockConfigEntry
from pytest_homeassistant_custom_component.test_util.aiohttp import (
    AiohttpClientMocker,
)

from custom_components.untreated_reminder import const
from custom_components.untreated_reminder.coordinator import (
    UntreatedReminderCoordinator,
)
from custom_components.untreated_reminder.engines.ack_engine import AckEngine
from custom_components.untreated_reminder.managers.scheduler_manager import (
    deadline_timer_name,
)
from custom_components.untreated_reminder.store import UntreatedReminderStore

from tests.helpers.setup import (
    MONDAY_AFTER_TARGET,
    MONDAY_EVENING,
    MONDAY_KEY,
    PACIFIC,
    TEST_ENTRY_ID,
    TEST_TOKEN,
    TUESDAY_DEADLINE,
    attach_surface,
    load_storage_scenario,
    mock_gmail,
    setup_integration,
    storage_payload,
)


def _current_store(records: dict[str, Any]) -> dict[str, Any]:
    data = UntreatedReminderStore.get_default_structure()
    data[const.DATA_ACK_RECORDS] = records
    data[const.DATA_PROFILE_CACHE] = "me@example.com"
    return data


def _pending_monday() -> dict[str, Any]:
    return dict(AckEngine.build_pending_record(MONDAY_AFTER_TARGET, TUESDAY_DEADLINE))


# =============================================================================
# TEST: LEGACY MIGRATION
# =============================================================================


class TestLegacyMigration:
    """Test a full pass over a store written before schema versioning."""

    async def test_legacy_store_pass_is_idempotent(
        self,
        hass: HomeAssistant,
        hass_storage: dict[str, Any],
        mock_config_entry: MockConfigEntry,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """First pass migrates, cleans, expires and re-arms; the second changes nothing."""
        freezer.move_to(MONDAY_EVENING)
        hass_storage[const.STORAGE_KEY] = storage_payload(
            load_storage_scenario("legacy_store")
        )
        mock_config_entry.add_to_hass(hass)
        store = UntreatedReminderStore(hass)
        await store.async_initialize()
        coordinator = UntreatedReminderCoordinator(hass, mock_config_entry, store)

        report = await coordinator.housekeeping.async_run(MONDAY_EVENING)

        assert report.as_dict() == {
            "migrated": 5,
            "cleaned": 1,
            "expired": 1,
            "rearmed": 1,
        }
        records = store.get_ack_records()
        assert records == {
            "20261016": {
                const.DATA_ACK_STATE: const.ACK_STATE_IGNORED,
                const.DATA_ACK_SHOWN_AT: "2026-10-16T07:00:00+00:00",
                const.DATA_ACK_DEADLINE_AT: "2026-10-19T15:00:00+00:00",
                const.DATA_ACK_SOURCE: const.ACK_SOURCE_AUTO,
            },
            "20261015": {
                const.DATA_ACK_STATE: const.ACK_STATE_ACK,
                const.DATA_ACK_SHOWN_AT: "2026-10-15T07:00:00+00:00",
                const.DATA_ACK_DEADLINE_AT: "2026-10-16T15:00:00+00:00",
                const.DATA_ACK_SOURCE: const.ACK_SOURCE_AUTO,
            },
            "20261014": {
                const.DATA_ACK_STATE: const.ACK_STATE_IGNORED,
                const.DATA_ACK_SHOWN_AT: "2026-10-14T07:00:00+00:00",
                const.DATA_ACK_DEADLINE_AT: "2026-10-15T15:00:00+00:00",
                const.DATA_ACK_SOURCE: const.ACK_SOURCE_AUTO,
            },
            MONDAY_KEY: _pending_monday(),
        }
        assert store.get_legacy_entries() == {"ack-notadate": True}
        assert store.schema_version == const.SCHEMA_VERSION_CURRENT
        assert coordinator.scheduler.timers == {
            deadline_timer_name(MONDAY_KEY): TUESDAY_DEADLINE
        }
        saved = hass_storage[const.STORAGE_KEY]["data"]
        assert "pending-ack-date" not in saved
        assert saved[const.DATA_META][const.DATA_META_SCHEMA_VERSION] == (
            const.SCHEMA_VERSION_CURRENT
        )

        second = await coordinator.housekeeping.async_run(MONDAY_EVENING)

        assert second.as_dict() == {
            "migrated": 0,
            "cleaned": 0,
            "expired": 0,
            "rearmed": 1,
        }
        assert store.get_ack_records() == records
        coordinator.scheduler.cancel_all()

    async def test_existing_record_wins_over_flat_key(
        self,
        hass: HomeAssistant,
        hass_storage: dict[str, Any],
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """A flat key for a day that already has a record is only dropped."""
        freezer.move_to(MONDAY_EVENING)
        mock_gmail(aioclient_mock)
        data = _current_store({MONDAY_KEY: _pending_monday()})
        data["ignore-20261019"] = True
        hass_storage[const.STORAGE_KEY] = storage_payload(data)

        coordinator = await setup_integration(hass, mock_config_entry)

        assert coordinator.store.get_ack_record(MONDAY_KEY) == _pending_monday()
        assert coordinator.store.get_legacy_entries() == {}


# =============================================================================
# TEST: BOOT RECONCILIATION
# =============================================================================


class TestBootReconciliation:
    """Test what a restart repairs."""

    async def test_restart_rearms_live_deadline(
        self,
        hass: HomeAssistant,
        hass_storage: dict[str, Any],
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """A pending record survives the restart with its timer re-armed."""
        freezer.move_to(MONDAY_EVENING)
        mock_gmail(aioclient_mock)
        hass_storage[const.STORAGE_KEY] = storage_payload(
            _current_store({MONDAY_KEY: _pending_monday()})
        )

        coordinator = await setup_integration(hass, mock_config_entry)

        assert coordinator.scheduler.timers[deadline_timer_name(MONDAY_KEY)] == (
            TUESDAY_DEADLINE
        )
        assert aioclient_mock.call_count == 0

    async def test_restart_after_missed_deadline_marks_ignored(
        self,
        hass: HomeAssistant,
        hass_storage: dict[str, Any],
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """Down across the deadline → the record is ignored at boot."""
        freezer.move_to(TUESDAY_DEADLINE + timedelta(hours=1))
        mock_gmail(aioclient_mock)
        hass_storage[const.STORAGE_KEY] = storage_payload(
            _current_store({MONDAY_KEY: _pending_monday()})
        )

        coordinator = await setup_integration(hass, mock_config_entry)

        assert (
            coordinator.store.get_ack_record(MONDAY_KEY)[const.DATA_ACK_STATE]
            == const.ACK_STATE_IGNORED
        )
        assert not coordinator.scheduler.is_armed(deadline_timer_name(MONDAY_KEY))

    async def test_expiry_one_second_after_deadline_closes_surfaces(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """Housekeeping at T + 1s flips pending to ignored and closes once."""
        freezer.move_to(MONDAY_AFTER_TARGET)
        mock_gmail(aioclient_mock)
        coordinator = await setup_integration(hass, mock_config_entry)
        await coordinator.store.async_set_profile_cache("me@example.com")
        surface = await attach_surface(hass, coordinator)
        await coordinator.store.async_set_ack_record(MONDAY_KEY, _pending_monday())

        report = await coordinator.housekeeping.async_run(
            TUESDAY_DEADLINE + timedelta(seconds=1)
        )

        assert report.expired == 1
        assert (
            coordinator.store.get_ack_record(MONDAY_KEY)[const.DATA_ACK_STATE]
            == const.ACK_STATE_IGNORED
        )
        assert surface.messages() == [{const.SURFACE_MSG_TYPE: const.SURFACE_MSG_CLOSE}]

    async def test_retention_follows_options(
        self,
        hass: HomeAssistant,
        hass_storage: dict[str, Any],
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """A one-day retention window drops last week's records at boot."""
        freezer.move_to(MONDAY_EVENING)
        mock_gmail(aioclient_mock)
        friday = AckEngine.build_record(
            const.ACK_STATE_ACK,
            datetime(2026, 10, 16, 16, 5, tzinfo=PACIFIC),
            datetime(2026, 10, 19, 8, 0, tzinfo=PACIFIC),
        )
        hass_storage[const.STORAGE_KEY] = storage_payload(
            _current_store({"20261016": dict(friday), MONDAY_KEY: _pending_monday()})
        )
        entry = MockConfigEntry(
            domain=const.DOMAIN,
            title=const.UNTREATED_REMINDER_TITLE,
            data={
                const.CONF_ACCESS_TOKEN: TEST_TOKEN,
                const.CONF_LABEL_NAME: const.DEFAULT_LABEL_NAME,
            },
            options={const.CONF_RETENTION_DAYS: 1},
            entry_id=TEST_ENTRY_ID,
        )

        coordinator = await setup_integration(hass, entry)

        assert set(coordinator.store.get_ack_records()) == {MONDAY_KEY}

    async def test_stale_pending_record_drops_its_deadline_timer(
        self,
        hass: HomeAssistant,
        hass_storage: dict[str, Any],
        mock_config_entry: MockConfigEntry,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """Retention removes an old pending record and cancels its armed deadline."""
        freezer.move_to(MONDAY_EVENING)
        old = AckEngine.build_pending_record(
            MONDAY_EVENING - timedelta(days=8), TUESDAY_DEADLINE
        )
        hass_storage[const.STORAGE_KEY] = storage_payload(
            _current_store({"20261011": dict(old)})
        )
        mock_config_entry.add_to_hass(hass)
        store = UntreatedReminderStore(hass)
        await store.async_initialize()
        coordinator = UntreatedReminderCoordinator(hass, mock_config_entry, store)
        coordinator.scheduler.arm_deadline("20261011", TUESDAY_DEADLINE)
        assert coordinator.scheduler.is_armed(deadline_timer_name("20261011"))

        report = await coordinator.housekeeping.async_run(MONDAY_EVENING)

        assert report.cleaned == 1
        assert report.rearmed == 0
        assert store.get_ack_records() == {}
        assert not coordinator.scheduler.is_armed(deadline_timer_name("20261011"))
        coordinator.scheduler.cancel_all()
