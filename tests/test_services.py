"""Tests for the Untreated Reminder services."""

from __future__ import annotations

from datetime import timedelta

from freezegun.api import FrozenDateTimeFactory
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
import pytest
from pytest_homeassistant_custom_component.common import MockConfigEntry
from pytest_homeassistant_custom_component.test_util.aiohttp import (
    AiohttpClientMocker,
)

from custom_components.untreated_reminder import const
from custom_components.untreated_reminder.services import SERVICES

from tests.helpers.setup import (
    MONDAY_AFTER_TARGET,
    MONDAY_EVENING,
    MONDAY_KEY,
    MONDAY_MORNING,
    PROFILE_EMAIL,
    attach_surface,
    count_requests,
    mock_gmail,
    open_surface,
    setup_integration,
)


async def _call(
    hass: HomeAssistant, service: str, data: dict | None = None, *, response: bool = True
):
    return await hass.services.async_call(
        const.DOMAIN, service, data or {}, blocking=True, return_response=response
    )


class TestRegistration:
    """Test service lifecycle."""

    async def test_services_registered_and_removed(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
    ) -> None:
        """Services exist while an entry is loaded."""
        mock_gmail(aioclient_mock)
        await setup_integration(hass, mock_config_entry)

        for service in SERVICES:
            assert hass.services.has_service(const.DOMAIN, service)

        assert await hass.config_entries.async_unload(mock_config_entry.entry_id)
        await hass.async_block_till_done()

        for service in SERVICES:
            assert not hass.services.has_service(const.DOMAIN, service)


class TestAcknowledgeService:
    """Test the acknowledge service."""

    async def test_acknowledge_today(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """Acknowledging the shown reminder closes every surface."""
        freezer.move_to(MONDAY_AFTER_TARGET)
        mock_gmail(aioclient_mock, threads=7)
        coordinator = await setup_integration(hass, mock_config_entry)
        surface = await open_surface(hass)

        response = await _call(hass, const.SERVICE_ACKNOWLEDGE)

        assert response == {const.RESPONSE_OK: True, const.RESPONSE_REASON: None}
        assert (
            coordinator.store.get_ack_record(MONDAY_KEY)[const.DATA_ACK_STATE]
            == const.ACK_STATE_ACK
        )
        assert len(surface.messages(const.SURFACE_MSG_CLOSE)) == 1

    async def test_acknowledge_explicit_day_without_record(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
    ) -> None:
        """An explicit day key with nothing shown reports no_record."""
        mock_gmail(aioclient_mock)
        await setup_integration(hass, mock_config_entry)

        response = await _call(
            hass, const.SERVICE_ACKNOWLEDGE, {const.FIELD_DAY_KEY: "20261016"}
        )

        assert response == {
            const.RESPONSE_OK: False,
            const.RESPONSE_REASON: const.ACK_REASON_NO_RECORD,
        }

    async def test_acknowledge_rejects_malformed_day_key(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
    ) -> None:
        """Malformed day keys are a caller error."""
        mock_gmail(aioclient_mock)
        await setup_integration(hass, mock_config_entry)

        with pytest.raises(HomeAssistantError):
            await _call(hass, const.SERVICE_ACKNOWLEDGE, {const.FIELD_DAY_KEY: "2026-10-19"})


class TestCheckServices:
    """Test force_check and request_check."""

    async def test_force_check_from_matched_surface(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """A toolbar check before the target hour still shows the reminder."""
        freezer.move_to(MONDAY_MORNING)
        mock_gmail(aioclient_mock, threads=3)
        coordinator = await setup_integration(hass, mock_config_entry)
        surface = await open_surface(hass)

        response = await _call(
            hass, const.SERVICE_FORCE_CHECK, {const.FIELD_SURFACE_ID: "tab_1"}
        )

        assert response == {"result": const.CHECKPOINT_SHOWN}
        assert (
            coordinator.store.get_ack_record(MONDAY_KEY)[const.DATA_ACK_SOURCE]
            == const.ACK_SOURCE_MANUAL
        )
        assert surface.messages(const.SURFACE_MSG_SHOW)[0][const.SURFACE_MSG_AUTO] is False

    async def test_force_check_from_other_mailbox_is_refused(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """A surface showing another mailbox cannot force a check."""
        freezer.move_to(MONDAY_MORNING)
        mock_gmail(aioclient_mock)
        coordinator = await setup_integration(hass, mock_config_entry)
        await open_surface(hass, email="someone.else@example.com")

        with pytest.raises(HomeAssistantError):
            await _call(
                hass, const.SERVICE_FORCE_CHECK, {const.FIELD_SURFACE_ID: "tab_1"}
            )
        assert coordinator.store.get_ack_record(MONDAY_KEY) is None

    async def test_request_check_respects_guards(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """The on-load check is the non-forced checkpoint."""
        freezer.move_to(MONDAY_MORNING)
        mock_gmail(aioclient_mock)
        await setup_integration(hass, mock_config_entry)

        response = await _call(hass, const.SERVICE_REQUEST_CHECK)

        assert response == {"result": const.CHECKPOINT_SKIP_BEFORE_TARGET_HOUR}


class TestCountServices:
    """Test get_count and refresh_count."""

    async def test_get_count_uses_cache(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """The first call fetches; the second is served from the cache."""
        freezer.move_to(MONDAY_EVENING)
        mock_gmail(aioclient_mock, threads=4)
        coordinator = await setup_integration(hass, mock_config_entry)

        first = await _call(hass, const.SERVICE_GET_COUNT)
        second = await _call(hass, const.SERVICE_GET_COUNT)

        assert first == second == {const.RESPONSE_OK: True, const.RESPONSE_COUNT: 4}
        assert count_requests(aioclient_mock) == 1
        assert coordinator.data[const.SNAPSHOT_COUNT] == 4
        assert coordinator.data[const.SNAPSHOT_IDENTITY] == PROFILE_EMAIL

    async def test_get_count_during_backoff(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """Backoff without a cached value answers ok=False, count=None."""
        freezer.move_to(MONDAY_EVENING)
        mock_gmail(aioclient_mock)
        coordinator = await setup_integration(hass, mock_config_entry)
        await coordinator.store.async_set_backoff_until(
            const.ENDPOINT_COUNT, MONDAY_EVENING + timedelta(minutes=5)
        )

        response = await _call(hass, const.SERVICE_GET_COUNT)

        assert response == {const.RESPONSE_OK: False, const.RESPONSE_COUNT: None}
        assert count_requests(aioclient_mock) == 0

    async def test_refresh_count_updates_banners(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
    ) -> None:
        """refresh_count always fetches and pushes the banner."""
        mock_gmail(aioclient_mock, threads=9)
        coordinator = await setup_integration(hass, mock_config_entry)
        await coordinator.store.async_set_profile_cache(PROFILE_EMAIL)
        surface = await attach_surface(hass, coordinator)

        response = await _call(hass, const.SERVICE_REFRESH_COUNT)

        assert response == {const.RESPONSE_COUNT: 9}
        assert surface.messages() == [
            {const.SURFACE_MSG_TYPE: const.SURFACE_MSG_REFRESH_BANNER, const.SURFACE_MSG_COUNT: 9}
        ]


class TestMaintenanceServices:
    """Test close_all and run_housekeeping."""

    async def test_close_all(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
    ) -> None:
        """close_all messages every matched surface."""
        mock_gmail(aioclient_mock)
        coordinator = await setup_integration(hass, mock_config_entry)
        await coordinator.store.async_set_profile_cache(PROFILE_EMAIL)
        surface = await attach_surface(hass, coordinator)

        await _call(hass, const.SERVICE_CLOSE_ALL, response=False)

        assert surface.messages() == [{const.SURFACE_MSG_TYPE: const.SURFACE_MSG_CLOSE}]

    async def test_run_housekeeping_reports(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
    ) -> None:
        """A clean store reports nothing to do."""
        mock_gmail(aioclient_mock)
        await setup_integration(hass, mock_config_entry)

        response = await _call(hass, const.SERVICE_RUN_HOUSEKEEPING)

        assert response == {"migrated": 0, "cleaned": 0, "expired": 0, "rearmed": 0}
