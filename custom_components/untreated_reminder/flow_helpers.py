# File: flow_helpers.py
"""Helpers for the Untreated Reminder Config and Options flow.

Schema builders and input validation shared by the config flow (account),
the reconfigure step (token rotation) and the options flow (working hours).

Validation returns an errors dict (empty dict = no errors); build functions
are pure data transformers.
"""

from __future__ import annotations

from typing import Any

from homeassistant.helpers import selector
import voluptuous as vol

from . import const


def _hour_selector() -> selector.NumberSelector:
    return selector.NumberSelector(
        selector.NumberSelectorConfig(
            mode=selector.NumberSelectorMode.BOX,
            min=0,
            max=23,
            step=1,
        )
    )


# ----------------------------------------------------------------------------------
# ACCOUNT (config flow / reconfigure)
# ----------------------------------------------------------------------------------


def build_account_schema(default: dict[str, Any] | None = None) -> vol.Schema:
    """Build schema for the access token and label name."""
    default = default or {}
    return vol.Schema(
        {
            vol.Required(
                const.CONF_ACCESS_TOKEN,
                default=default.get(const.CONF_ACCESS_TOKEN, ""),
            ): selector.TextSelector(
                selector.TextSelectorConfig(type=selector.TextSelectorType.PASSWORD)
            ),
            vol.Required(
                const.CONF_LABEL_NAME,
                default=default.get(const.CONF_LABEL_NAME, const.DEFAULT_LABEL_NAME),
            ): selector.TextSelector(),
        }
    )


def validate_account_inputs(user_input: dict[str, Any]) -> dict[str, str]:
    """Validate account inputs.

    Returns:
        Errors dict keyed by field (or "base"); empty when valid.
    """
    errors: dict[str, str] = {}
    if not str(user_input.get(const.CONF_ACCESS_TOKEN, "")).strip():
        errors[const.CONF_ACCESS_TOKEN] = const.CFOP_ERROR_EMPTY_TOKEN
    if not str(user_input.get(const.CONF_LABEL_NAME, "")).strip():
        errors[const.CONF_LABEL_NAME] = const.CFOP_ERROR_EMPTY_LABEL
    return errors


def build_account_data(user_input: dict[str, Any]) -> dict[str, Any]:
    """Normalize account inputs for storage in entry data."""
    return {
        const.CONF_ACCESS_TOKEN: str(user_input[const.CONF_ACCESS_TOKEN]).strip(),
        const.CONF_LABEL_NAME: str(user_input[const.CONF_LABEL_NAME]).strip(),
    }


# ----------------------------------------------------------------------------------
# SCHEDULE (options flow)
# ----------------------------------------------------------------------------------


def build_schedule_schema(default: dict[str, Any] | None = None) -> vol.Schema:
    """Build schema for the reminder hours and retention window."""
    default = default or {}
    return vol.Schema(
        {
            vol.Required(
                const.CONF_TARGET_HOUR,
                default=default.get(const.CONF_TARGET_HOUR, const.DEFAULT_TARGET_HOUR),
            ): _hour_selector(),
            vol.Required(
                const.CONF_DEADLINE_HOUR,
                default=default.get(
                    const.CONF_DEADLINE_HOUR, const.DEFAULT_DEADLINE_HOUR
                ),
            ): _hour_selector(),
            vol.Required(
                const.CONF_WORK_START_HOUR,
                default=default.get(
                    const.CONF_WORK_START_HOUR, const.DEFAULT_WORK_START_HOUR
                ),
            ): _hour_selector(),
            vol.Required(
                const.CONF_WORK_END_HOUR,
                default=default.get(
                    const.CONF_WORK_END_HOUR, const.DEFAULT_WORK_END_HOUR
                ),
            ): _hour_selector(),
            vol.Required(
                const.CONF_RETENTION_DAYS,
                default=default.get(
                    const.CONF_RETENTION_DAYS, const.DEFAULT_RETENTION_DAYS
                ),
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    mode=selector.NumberSelectorMode.BOX,
                    min=1,
                    step=1,
                )
            ),
        }
    )


def validate_schedule_inputs(user_input: dict[str, Any]) -> dict[str, str]:
    """Validate schedule inputs; working hours must form a non-empty window."""
    errors: dict[str, str] = {}
    start = int(user_input[const.CONF_WORK_START_HOUR])
    end = int(user_input[const.CONF_WORK_END_HOUR])
    if start >= end:
        errors[const.CFOP_ERROR_BASE] = const.CFOP_ERROR_INVALID_HOURS
    return errors


def build_schedule_data(user_input: dict[str, Any]) -> dict[str, int]:
    """Convert selector floats to integer options."""
    return {
        key: int(user_input[key])
        for key in (
            const.CONF_TARGET_HOUR,
            const.CONF_DEADLINE_HOUR,
            const.CONF_WORK_START_HOUR,
            const.CONF_WORK_END_HOUR,
            const.CONF_RETENTION_DAYS,
        )
    }
