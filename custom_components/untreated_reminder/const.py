# File: const.py
"""Constants for the Untreated Reminder integration.

This file centralizes configuration keys, defaults, storage keys, timer names,
signal suffixes, service names and surface message types for consistency
across the integration.
"""

import logging

import homeassistant.util.dt as dt_util
from homeassistant.const import Platform

from .utils import dt_utils


def set_default_timezone(hass):
    """Set the default timezone based on the Home Assistant configuration."""
    global DEFAULT_TIME_ZONE
    DEFAULT_TIME_ZONE = dt_util.get_time_zone(hass.config.time_zone)
    if DEFAULT_TIME_ZONE is not None:
        dt_utils.set_default_timezone(DEFAULT_TIME_ZONE)


# ------------------------------------------------------------------------------------------------
# General / Integration Information
# ------------------------------------------------------------------------------------------------
# Integration Name
UNTREATED_REMINDER_TITLE = "Untreated Reminder"

# Integration Domain
DOMAIN = "untreated_reminder"

# Logger
LOGGER = logging.getLogger(__package__)

# Supported Platforms
PLATFORMS = [
    Platform.SENSOR,
]

# Coordinator
COORDINATOR_SUFFIX = "_coordinator"

# Storage and Versioning
STORAGE_KEY = "untreated_reminder_data"
STORAGE_VERSION = 1

# Schema 1: flat ack-/ignore-/pending-ack-date keys and camelCase epoch-ms records
# Schema 2: snake_case ISO records under ack_records
SCHEMA_VERSION_LEGACY = 1
SCHEMA_VERSION_CURRENT = 2

# Default timezone: initially None, to be set once hass is available.
DEFAULT_TIME_ZONE = None

# ------------------------------------------------------------------------------------------------
# Configuration Keys
# ------------------------------------------------------------------------------------------------
CONF_ACCESS_TOKEN = "access_token"
CONF_LABEL_NAME = "label_name"
CONF_TARGET_HOUR = "target_hour"
CONF_DEADLINE_HOUR = "deadline_hour"
CONF_WORK_START_HOUR = "work_start_hour"
CONF_WORK_END_HOUR = "work_end_hour"
CONF_RETENTION_DAYS = "retention_days"

# ------------------------------------------------------------------------------------------------
# Defaults
# ------------------------------------------------------------------------------------------------
DEFAULT_LABEL_NAME = "_UNTREATED"
DEFAULT_TARGET_HOUR = 16
DEFAULT_DEADLINE_HOUR = 8
DEFAULT_WORK_START_HOUR = 8
DEFAULT_WORK_END_HOUR = 18
DEFAULT_RETENTION_DAYS = 7

# Fallback delay when a 429 carries no usable retry hint
DEFAULT_BACKOFF_SECONDS = 120

# How long the fanout waits for a surface to re-register after a reattach request
DEFAULT_REATTACH_TIMEOUT_SECONDS = 5.0

# ------------------------------------------------------------------------------------------------
# Storage Data Keys
# ------------------------------------------------------------------------------------------------
DATA_META = "meta"
DATA_META_SCHEMA_VERSION = "schema_version"
DATA_ACK_RECORDS = "ack_records"
DATA_SURFACE_BINDINGS = "surface_bindings"
DATA_COUNT_CACHE = "count_cache"
DATA_BACKOFF = "backoff"
DATA_PROFILE_CACHE = "profile_cache"

# AckRecord fields
DATA_ACK_STATE = "state"
DATA_ACK_SHOWN_AT = "shown_at"
DATA_ACK_DEADLINE_AT = "deadline_at"
DATA_ACK_SOURCE = "source"

# CountCacheEntry fields
DATA_COUNT_CACHE_COUNT = "count"
DATA_COUNT_CACHE_CAPTURED_AT = "captured_at"

# Legacy (schema 1) storage keys
LEGACY_PENDING_ACK_DATE_KEY = "pending-ack-date"
LEGACY_ACK_KEY_PREFIX = "ack-"
LEGACY_IGNORE_KEY_PREFIX = "ignore-"
LEGACY_RECORD_SHOWN_AT = "shownAt"
LEGACY_RECORD_DEADLINE_AT = "deadlineAt"

# ------------------------------------------------------------------------------------------------
# Acknowledgement States and Sources
# ------------------------------------------------------------------------------------------------
ACK_STATE_PENDING = "pending"
ACK_STATE_ACK = "ack"
ACK_STATE_IGNORED = "ignored"
ACK_STATE_NONE = "none"  # Sensor display only: no record for the day

ACK_SOURCE_AUTO = "auto"
ACK_SOURCE_MANUAL = "manual"

# Acknowledgement failure reasons
ACK_REASON_NO_RECORD = "no_record"
ACK_REASON_LATE = "late_acknowledgement"

# Checkpoint skip reasons (logged and returned for tests/diagnostics)
CHECKPOINT_SKIP_WEEKEND = "weekend"
CHECKPOINT_SKIP_BEFORE_TARGET_HOUR = "before_target_hour"
CHECKPOINT_SKIP_ACKNOWLEDGED = "acknowledged"
CHECKPOINT_SKIP_IGNORED = "ignored"
CHECKPOINT_SKIP_AWAITING = "awaiting_acknowledgement"
CHECKPOINT_SKIP_NO_PROFILE = "no_profile"
CHECKPOINT_SKIP_NO_BACKLOG = "no_backlog"
CHECKPOINT_SHOWN = "shown"

# ------------------------------------------------------------------------------------------------
# Remote Endpoint Classes (backoff buckets)
# ------------------------------------------------------------------------------------------------
ENDPOINT_PROFILE = "profile"
ENDPOINT_COUNT = "count"

GMAIL_API_BASE_URL = "https://gmail.googleapis.com/gmail/v1/users/me"
GMAIL_PROFILE_URL = f"{GMAIL_API_BASE_URL}/profile"
GMAIL_THREADS_URL = f"{GMAIL_API_BASE_URL}/threads"
GMAIL_PAGE_SIZE = 500
GMAIL_COUNT_QUERY_FMT = "label:{label} -in:trash -in:spam"
GMAIL_REQUEST_TIMEOUT = 30

# ------------------------------------------------------------------------------------------------
# Timers
# ------------------------------------------------------------------------------------------------
TIMER_DAILY = "daily-ack"
TIMER_HOURLY = "untreated-hourly"
TIMER_DEADLINE_PREFIX = "ack-deadline-"

# ------------------------------------------------------------------------------------------------
# Dispatcher Signal Suffixes (instance-scoped via get_event_signal)
# ------------------------------------------------------------------------------------------------
SIGNAL_SUFFIX_DAILY_CHECKPOINT = "daily_checkpoint"
SIGNAL_SUFFIX_HOURLY_REFRESH = "hourly_refresh"
SIGNAL_SUFFIX_DEADLINE_REACHED = "deadline_reached"
SIGNAL_SUFFIX_SURFACE_MATCHED = "surface_matched"

# ------------------------------------------------------------------------------------------------
# Surface Messages
# ------------------------------------------------------------------------------------------------
SURFACE_MSG_TYPE = "type"
SURFACE_MSG_SHOW = "show"
SURFACE_MSG_CLOSE = "close"
SURFACE_MSG_REFRESH_BANNER = "refresh_banner"
SURFACE_MSG_COUNT = "count"
SURFACE_MSG_DAY_KEY = "day_key"
SURFACE_MSG_AUTO = "auto"
SURFACE_MSG_DEADLINE_AT = "deadline_at"

EVENT_SURFACE_REATTACH = "untreated_reminder_reattach"

# ------------------------------------------------------------------------------------------------
# Notification Keys (companion app actions)
# ------------------------------------------------------------------------------------------------
NOTIFICATION_EVENT = "mobile_app_notification_action"
NOTIFY_ACTION = "action"
NOTIFY_ACTIONS = "actions"
NOTIFY_DATA = "data"
NOTIFY_DOMAIN = "notify"
NOTIFY_MESSAGE = "message"
NOTIFY_TAG = "tag"
NOTIFY_TITLE = "title"

ACTION_ACKNOWLEDGE = "UNTREATED_ACK"
ACTION_TITLE_ACKNOWLEDGE = "Acknowledge"
NOTIFY_TAG_PREFIX = "untreated-reminder"

NOTIFY_TITLE_REMINDER = "Untreated emails"
NOTIFY_MESSAGE_REMINDER_FMT = (
    "You have {count} untreated conversation(s). "
    "Please acknowledge before {deadline}."
)
NOTIFY_MESSAGE_CLEAR = "clear_notification"

# ------------------------------------------------------------------------------------------------
# Services
# ------------------------------------------------------------------------------------------------
SERVICE_ACKNOWLEDGE = "acknowledge"
SERVICE_FORCE_CHECK = "force_check"
SERVICE_REQUEST_CHECK = "request_check"
SERVICE_CLOSE_ALL = "close_all"
SERVICE_REGISTER_SURFACE = "register_surface"
SERVICE_UNREGISTER_SURFACE = "unregister_surface"
SERVICE_REPORT_IDENTITY = "report_identity"
SERVICE_GET_COUNT = "get_count"
SERVICE_REFRESH_COUNT = "refresh_count"
SERVICE_RUN_HOUSEKEEPING = "run_housekeeping"

FIELD_DAY_KEY = "day_key"
FIELD_SURFACE_ID = "surface_id"
FIELD_EMAIL = "email"
FIELD_NOTIFY_SERVICE = "notify_service"

# Service response keys
RESPONSE_OK = "ok"
RESPONSE_REASON = "reason"
RESPONSE_MATCH = "match"
RESPONSE_PROFILE = "profile"
RESPONSE_COUNT = "count"

# ------------------------------------------------------------------------------------------------
# Sensors
# ------------------------------------------------------------------------------------------------
SENSOR_KEY_BACKLOG = "untreated_backlog"
SENSOR_KEY_TODAY_STATE = "today_state"

ATTR_CAPTURED_AT = "captured_at"
ATTR_DAY_KEY = "day_key"
ATTR_DEADLINE_AT = "deadline_at"
ATTR_IDENTITY = "identity"
ATTR_SHOWN_AT = "shown_at"
ATTR_SOURCE = "source"

# Coordinator snapshot keys
SNAPSHOT_IDENTITY = "identity"
SNAPSHOT_COUNT = "count"
SNAPSHOT_CAPTURED_AT = "captured_at"
SNAPSHOT_TODAY_KEY = "today_key"
SNAPSHOT_TODAY_RECORD = "today_record"

# ------------------------------------------------------------------------------------------------
# Errors / Messages
# ------------------------------------------------------------------------------------------------
MSG_NO_ENTRY_FOUND = "No loaded Untreated Reminder entry found"
ERROR_INVALID_DAY_KEY_FMT = "Invalid day key '{}': expected YYYYMMDD"
ERROR_SURFACE_MISMATCH_FMT = (
    "Surface '{}' does not show the authorized mailbox for this profile"
)

# Config flow
CONFIG_FLOW_STEP_USER = "user"
CONFIG_FLOW_STEP_RECONFIGURE = "reconfigure"
OPTIONS_FLOW_STEP_INIT = "init"
TRANS_KEY_ERROR_SINGLE_INSTANCE = "single_instance_allowed"
TRANS_KEY_RECONFIGURE_SUCCESSFUL = "reconfigure_successful"
CFOP_ERROR_BASE = "base"
CFOP_ERROR_INVALID_HOURS = "invalid_working_hours"
CFOP_ERROR_EMPTY_TOKEN = "empty_token"
CFOP_ERROR_EMPTY_LABEL = "empty_label"
