# File: config_flow.py
"""Config flow for the Untreated Reminder integration.

One entry per Home Assistant instance: the mailbox access token and the
label that marks untreated conversations. Token rotation goes through the
reconfigure step; schedule settings live in the options flow.
"""

from typing import Any, Optional

from homeassistant import config_entries
from homeassistant.core import callback

from . import const
from . import flow_helpers as fh
from .options_flow import UntreatedReminderOptionsFlowHandler


class UntreatedReminderConfigFlow(config_entries.ConfigFlow, domain=const.DOMAIN):
    """Config Flow for Untreated Reminder."""

    VERSION = 1

    async def async_step_user(self, user_input: Optional[dict[str, Any]] = None):
        """Collect the access token and label name."""
        if any(self._async_current_entries()):
            return self.async_abort(reason=const.TRANS_KEY_ERROR_SINGLE_INSTANCE)

        errors: dict[str, str] = {}
        if user_input is not None:
            errors = fh.validate_account_inputs(user_input)
            if not errors:
                data = fh.build_account_data(user_input)
                const.LOGGER.debug(
                    "DEBUG: Creating entry for label '%s'", data[const.CONF_LABEL_NAME]
                )
                return self.async_create_entry(
                    title=const.UNTREATED_REMINDER_TITLE, data=data
                )

        return self.async_show_form(
            step_id=const.CONFIG_FLOW_STEP_USER,
            data_schema=fh.build_account_schema(user_input),
            errors=errors,
        )

    async def async_step_reconfigure(
        self, user_input: Optional[dict[str, Any]] = None
    ):
        """Replace the access token or label of the existing entry.

        The entry update listener clears identity caches when the token changed
        and reloads the entry.
        """
        entry = self._get_reconfigure_entry()
        errors: dict[str, str] = {}
        if user_input is not None:
            errors = fh.validate_account_inputs(user_input)
            if not errors:
                self.hass.config_entries.async_update_entry(
                    entry, data={**entry.data, **fh.build_account_data(user_input)}
                )
                return self.async_abort(reason=const.TRANS_KEY_RECONFIGURE_SUCCESSFUL)

        return self.async_show_form(
            step_id=const.CONFIG_FLOW_STEP_RECONFIGURE,
            data_schema=fh.build_account_schema(
                {const.CONF_LABEL_NAME: entry.data.get(const.CONF_LABEL_NAME)}
            ),
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        """Return the Options Flow."""
        return UntreatedReminderOptionsFlowHandler()
