# File: options_flow.py
"""Options Flow for the Untreated Reminder integration.

Edits the reminder schedule: target hour, deadline hour, working hours and
the record retention window. Saving the options reloads the entry.
"""

from typing import Any, Optional

from homeassistant import config_entries

from . import const
from . import flow_helpers as fh


class UntreatedReminderOptionsFlowHandler(config_entries.OptionsFlow):
    """Options Flow for the reminder schedule."""

    async def async_step_init(self, user_input: Optional[dict[str, Any]] = None):
        """Show and validate the schedule form."""
        errors: dict[str, str] = {}
        current = {**self.config_entry.data, **self.config_entry.options}

        if user_input is not None:
            errors = fh.validate_schedule_inputs(user_input)
            if not errors:
                options = fh.build_schedule_data(user_input)
                const.LOGGER.debug("DEBUG: Schedule options updated: %s", options)
                return self.async_create_entry(title="", data=options)
            current.update(user_input)

        return self.async_show_form(
            step_id=const.OPTIONS_FLOW_STEP_INIT,
            data_schema=fh.build_schedule_schema(current),
            errors=errors,
        )
