# File: services.py
"""Defines custom services for the Untreated Reminder integration.

Surfaces (mailbox views) talk to the integration through these services:
they register a delivery channel, report the mailbox they show, request an
on-load check and relay the user's acknowledgement. Scripts and automations
can use the same services.
"""

from __future__ import annotations

from typing import Any

from homeassistant.core import HomeAssistant, ServiceCall, SupportsResponse
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import config_validation as cv
import voluptuous as vol

from . import const
from .api import BackoffActiveError, FetchFailedError
from .helpers.entity_helpers import get_loaded_coordinator
from .utils import dt_utils

# --- Service Schemas ---
ACKNOWLEDGE_SCHEMA = vol.Schema(
    {
        vol.Optional(const.FIELD_DAY_KEY): cv.string,
    }
)

CHECK_SCHEMA = vol.Schema(
    {
        vol.Optional(const.FIELD_SURFACE_ID): cv.string,
    }
)

REGISTER_SURFACE_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_SURFACE_ID): cv.string,
        vol.Required(const.FIELD_NOTIFY_SERVICE): cv.string,
    }
)

UNREGISTER_SURFACE_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_SURFACE_ID): cv.string,
    }
)

REPORT_IDENTITY_SCHEMA = vol.Schema(
    {
        vol.Required(const.FIELD_SURFACE_ID): cv.string,
        vol.Required(const.FIELD_EMAIL): cv.string,
    }
)

EMPTY_SCHEMA = vol.Schema({})

SERVICES = [
    const.SERVICE_ACKNOWLEDGE,
    const.SERVICE_FORCE_CHECK,
    const.SERVICE_REQUEST_CHECK,
    const.SERVICE_CLOSE_ALL,
    const.SERVICE_REGISTER_SURFACE,
    const.SERVICE_UNREGISTER_SURFACE,
    const.SERVICE_REPORT_IDENTITY,
    const.SERVICE_GET_COUNT,
    const.SERVICE_REFRESH_COUNT,
    const.SERVICE_RUN_HOUSEKEEPING,
]


def async_setup_services(hass: HomeAssistant) -> None:
    """Register Untreated Reminder services (once per Home Assistant instance)."""
    if hass.services.has_service(const.DOMAIN, const.SERVICE_ACKNOWLEDGE):
        return

    async def handle_acknowledge(call: ServiceCall) -> dict[str, Any]:
        """Handle a user acknowledgement relayed from any surface."""
        coordinator = get_loaded_coordinator(hass)
        day_key = call.data.get(const.FIELD_DAY_KEY)
        if day_key is not None and not dt_utils.is_valid_day_key(day_key):
            raise HomeAssistantError(const.ERROR_INVALID_DAY_KEY_FMT.format(day_key))
        result = await coordinator.ack.async_acknowledge(day_key)
        return result.as_dict()

    async def handle_force_check(call: ServiceCall) -> dict[str, Any]:
        """Handle a user-forced check (toolbar action)."""
        coordinator = get_loaded_coordinator(hass)
        surface_id = call.data.get(const.FIELD_SURFACE_ID)
        if surface_id is not None:
            check = await coordinator.surfaces.async_check_surface(surface_id)
            if not check["matched"]:
                const.LOGGER.warning(
                    "Force check refused for surface '%s' (surface=%s, profile=%s)",
                    surface_id,
                    check["surface_identity"],
                    check["profile"],
                )
                raise HomeAssistantError(
                    const.ERROR_SURFACE_MISMATCH_FMT.format(surface_id)
                )
        outcome = await coordinator.ack.async_evaluate_checkpoint(forced=True)
        return {"result": outcome}

    async def handle_request_check(call: ServiceCall) -> dict[str, Any]:
        """Handle a surface's on-load check."""
        coordinator = get_loaded_coordinator(hass)
        outcome = await coordinator.ack.async_evaluate_checkpoint()
        return {"result": outcome}

    async def handle_close_all(call: ServiceCall) -> None:
        """Close the reminder on every matched surface."""
        coordinator = get_loaded_coordinator(hass)
        await coordinator.surfaces.async_close_all()

    async def handle_register_surface(call: ServiceCall) -> None:
        """Register (or re-attach) a surface's delivery channel."""
        coordinator = get_loaded_coordinator(hass)
        coordinator.surfaces.register_notify_surface(
            call.data[const.FIELD_SURFACE_ID], call.data[const.FIELD_NOTIFY_SERVICE]
        )

    async def handle_unregister_surface(call: ServiceCall) -> None:
        """Forget a closed surface."""
        coordinator = get_loaded_coordinator(hass)
        await coordinator.surfaces.async_unregister_surface(
            call.data[const.FIELD_SURFACE_ID]
        )

    async def handle_report_identity(call: ServiceCall) -> dict[str, Any]:
        """Record the mailbox identity a surface detected."""
        coordinator = get_loaded_coordinator(hass)
        response = await coordinator.surfaces.async_report_identity(
            call.data[const.FIELD_SURFACE_ID], call.data[const.FIELD_EMAIL]
        )
        return dict(response)

    async def handle_get_count(call: ServiceCall) -> dict[str, Any]:
        """Return the backlog count, served from cache when available."""
        coordinator = get_loaded_coordinator(hass)
        identity = await coordinator.client.async_get_profile_email()
        if not identity:
            return {const.RESPONSE_OK: False, const.RESPONSE_COUNT: None}
        try:
            count = await coordinator.client.async_get_count(identity)
        except (BackoffActiveError, FetchFailedError) as err:
            const.LOGGER.warning("Get count failed: %s", err)
            return {
                const.RESPONSE_OK: False,
                const.RESPONSE_COUNT: coordinator.client.get_cached_count(identity),
            }
        coordinator.async_refresh_snapshot()
        return {const.RESPONSE_OK: True, const.RESPONSE_COUNT: count}

    async def handle_refresh_count(call: ServiceCall) -> dict[str, Any]:
        """Force an exact count refresh and update banners."""
        coordinator = get_loaded_coordinator(hass)
        count = await coordinator.ack.async_refresh_count()
        return {const.RESPONSE_COUNT: count}

    async def handle_run_housekeeping(call: ServiceCall) -> dict[str, Any]:
        """Run the reconciliation pass on demand."""
        coordinator = get_loaded_coordinator(hass)
        report = await coordinator.housekeeping.async_run()
        return report.as_dict()

    # --- Register Services ---
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_ACKNOWLEDGE,
        handle_acknowledge,
        schema=ACKNOWLEDGE_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_FORCE_CHECK,
        handle_force_check,
        schema=CHECK_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_REQUEST_CHECK,
        handle_request_check,
        schema=CHECK_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_CLOSE_ALL,
        handle_close_all,
        schema=EMPTY_SCHEMA,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_REGISTER_SURFACE,
        handle_register_surface,
        schema=REGISTER_SURFACE_SCHEMA,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_UNREGISTER_SURFACE,
        handle_unregister_surface,
        schema=UNREGISTER_SURFACE_SCHEMA,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_REPORT_IDENTITY,
        handle_report_identity,
        schema=REPORT_IDENTITY_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_GET_COUNT,
        handle_get_count,
        schema=EMPTY_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_REFRESH_COUNT,
        handle_refresh_count,
        schema=EMPTY_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )
    hass.services.async_register(
        const.DOMAIN,
        const.SERVICE_RUN_HOUSEKEEPING,
        handle_run_housekeeping,
        schema=EMPTY_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )

    const.LOGGER.info("INFO: Untreated Reminder services have been registered")


async def async_unload_services(hass: HomeAssistant) -> None:
    """Unregister Untreated Reminder services when the last entry unloads."""
    for service in SERVICES:
        if hass.services.has_service(const.DOMAIN, service):
            hass.services.async_remove(const.DOMAIN, service)

    const.LOGGER.info("INFO: Untreated Reminder services have been unregistered")
