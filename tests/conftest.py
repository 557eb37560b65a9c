"""Shared fixtures for Untreated Reminder tests."""

from collections.abc import Generator
from typing import Any
from zoneinfo import ZoneInfo

import pytest
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.untreated_reminder.const import (
    CONF_ACCESS_TOKEN,
    CONF_LABEL_NAME,
    DEFAULT_LABEL_NAME,
    DOMAIN,
    UNTREATED_REMINDER_TITLE,
)
from custom_components.untreated_reminder.utils import dt_utils

from tests.helpers.setup import TEST_ENTRY_ID, TEST_TOKEN

# pylint: disable=invalid-name
pytest_plugins = "pytest_homeassistant_custom_component"
# pylint: enable=invalid-name

TEST_TIME_ZONE = ZoneInfo("US/Pacific")


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(enable_custom_integrations: Any) -> Any:
    """Enable custom integrations in tests."""
    # pylint: disable=unused-argument
    yield


@pytest.fixture(autouse=True)
def pacific_default_timezone() -> Generator[None]:
    """Match the pure date helpers to the test instance's time zone (US/Pacific)."""
    previous = dt_utils.get_default_timezone()
    dt_utils.set_default_timezone(TEST_TIME_ZONE)
    yield
    dt_utils.set_default_timezone(previous)


@pytest.fixture
def mock_config_entry() -> MockConfigEntry:
    """Return a mock config entry."""
    return MockConfigEntry(
        domain=DOMAIN,
        title=UNTREATED_REMINDER_TITLE,
        data={
            CONF_ACCESS_TOKEN: TEST_TOKEN,
            CONF_LABEL_NAME: DEFAULT_LABEL_NAME,
        },
        options={},
        entry_id=TEST_ENTRY_ID,
    )
