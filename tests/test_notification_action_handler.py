"""Tests for companion-app notification actions."""

from __future__ import annotations

from freezegun.api import FrozenDateTimeFactory
from homeassistant.core import HomeAssistant
import pytest
from pytest_homeassistant_custom_component.common import MockConfigEntry
from pytest_homeassistant_custom_component.test_util.aiohttp import (
    AiohttpClientMocker,
)

from custom_components.untreated_reminder import const
from custom_components.untreated_reminder.engines.ack_engine import AckEngine
from custom_components.untreated_reminder.notification_action_handler import (
    ParsedAction,
    parse_notification_action,
)

from tests.helpers.setup import (
    MONDAY_AFTER_TARGET,
    MONDAY_KEY,
    TUESDAY_DEADLINE,
    mock_gmail,
    setup_integration,
)


class TestParseNotificationAction:
    """Test action string parsing."""

    def test_acknowledge_action(self) -> None:
        """Well-formed acknowledge actions parse into their parts."""
        assert parse_notification_action(
            f"{const.ACTION_ACKNOWLEDGE}|abcdef12|{MONDAY_KEY}"
        ) == ParsedAction(const.ACTION_ACKNOWLEDGE, "abcdef12", MONDAY_KEY)

    @pytest.mark.parametrize(
        "action",
        [
            "",
            "APPROVE_CHORE|abcdef12|kid|chore",
            f"{const.ACTION_ACKNOWLEDGE}|abcdef12",
            f"{const.ACTION_ACKNOWLEDGE}||{MONDAY_KEY}",
            f"{const.ACTION_ACKNOWLEDGE}|abcdef12|2026-10-19",
            f"{const.ACTION_ACKNOWLEDGE}|abcdef12|{MONDAY_KEY}|extra",
        ],
    )
    def test_other_or_malformed_actions(self, action: str) -> None:
        """Foreign and malformed actions are ignored."""
        assert parse_notification_action(action) is None


class TestNotificationEvent:
    """Test routing of the companion-app event."""

    async def test_acknowledge_from_phone(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """Tapping Acknowledge records the acknowledgement for that day."""
        freezer.move_to(MONDAY_AFTER_TARGET)
        mock_gmail(aioclient_mock)
        coordinator = await setup_integration(hass, mock_config_entry)
        await coordinator.store.async_set_ack_record(
            MONDAY_KEY,
            AckEngine.build_pending_record(MONDAY_AFTER_TARGET, TUESDAY_DEADLINE),
        )

        hass.bus.async_fire(
            const.NOTIFICATION_EVENT,
            {const.NOTIFY_ACTION: f"{const.ACTION_ACKNOWLEDGE}|abcdef12|{MONDAY_KEY}"},
        )
        await hass.async_block_till_done()

        assert (
            coordinator.store.get_ack_record(MONDAY_KEY)[const.DATA_ACK_STATE]
            == const.ACK_STATE_ACK
        )

    async def test_action_for_unknown_entry_is_ignored(
        self,
        hass: HomeAssistant,
        mock_config_entry: MockConfigEntry,
        aioclient_mock: AiohttpClientMocker,
        freezer: FrozenDateTimeFactory,
    ) -> None:
        """An entry prefix that matches nothing leaves records untouched."""
        freezer.move_to(MONDAY_AFTER_TARGET)
        mock_gmail(aioclient_mock)
        coordinator = await setup_integration(hass, mock_config_entry)
        await coordinator.store.async_set_ack_record(
            MONDAY_KEY,
            AckEngine.build_pending_record(MONDAY_AFTER_TARGET, TUESDAY_DEADLINE),
        )

        hass.bus.async_fire(
            const.NOTIFICATION_EVENT,
            {const.NOTIFY_ACTION: f"{const.ACTION_ACKNOWLEDGE}|ffffffff|{MONDAY_KEY}"},
        )
        await hass.async_block_till_done()

        assert (
            coordinator.store.get_ack_record(MONDAY_KEY)[const.DATA_ACK_STATE]
            == const.ACK_STATE_PENDING
        )
