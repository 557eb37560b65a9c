"""Acknowledgement Engine - Pure logic for the daily reminder record lifecycle.

This engine provides stateless, pure Python functions for:
- State transition validation (absent → pending → ack | ignored)
- Checkpoint guard decisions (weekend/hour → record state)
- Acknowledgement checks against the deadline
- Expiry and retention tests used by housekeeping
- Construction of new and migrated records

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
All functions are static methods that operate on passed-in data.
Persistence and fanout belong in AckManager and HousekeepingManager.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from .. import const
from ..utils import dt_utils

if TYPE_CHECKING:
    from datetime import datetime

    from ..type_defs import AckRecord, ReminderSettings


# =============================================================================
# DECISION DATA STRUCTURES
# =============================================================================


@dataclass
class CheckpointDecision:
    """Outcome of the checkpoint guard stage.

    Attributes:
        proceed: Whether the count stage should run
        reason: Skip reason constant when proceed is False
        keep_record: Forced run over a terminal record; re-show without rewriting
    """

    proceed: bool
    reason: str | None = None
    keep_record: bool = False


@dataclass
class AckDecision:
    """Outcome of an acknowledgement check.

    Attributes:
        ok: Whether the acknowledgement is accepted
        reason: Failure reason constant when ok is False
        write: Whether the record must be rewritten to the ack state
    """

    ok: bool
    reason: str | None = None
    write: bool = False


# =============================================================================
# ACK ENGINE
# =============================================================================


class AckEngine:
    """Pure logic engine for acknowledgement records.

    All methods are static - no instance state.
    """

    # Valid state transitions matrix ("none" is the absent record)
    VALID_TRANSITIONS: dict[str, list[str]] = {
        const.ACK_STATE_NONE: [const.ACK_STATE_PENDING],
        const.ACK_STATE_PENDING: [const.ACK_STATE_ACK, const.ACK_STATE_IGNORED],
        const.ACK_STATE_ACK: [],
        const.ACK_STATE_IGNORED: [],
    }

    TERMINAL_STATES: frozenset[str] = frozenset(
        {const.ACK_STATE_ACK, const.ACK_STATE_IGNORED}
    )

    # =========================================================================
    # STATE TRANSITIONS
    # =========================================================================

    @staticmethod
    def can_transition(current_state: str | None, target_state: str) -> bool:
        """Return True when current_state → target_state is allowed."""
        allowed = AckEngine.VALID_TRANSITIONS.get(
            current_state or const.ACK_STATE_NONE, []
        )
        return target_state in allowed

    @staticmethod
    def get_state(record: AckRecord | dict[str, Any] | None) -> str:
        """Return the record state, or 'none' for an absent record."""
        if not record:
            return const.ACK_STATE_NONE
        return str(record.get(const.DATA_ACK_STATE, const.ACK_STATE_NONE))

    @staticmethod
    def get_deadline(record: AckRecord | dict[str, Any] | None) -> datetime | None:
        """Return the parsed deadline of a record."""
        if not record:
            return None
        return dt_utils.dt_to_utc(record.get(const.DATA_ACK_DEADLINE_AT))

    @staticmethod
    def get_shown_at(record: AckRecord | dict[str, Any] | None) -> datetime | None:
        """Return the parsed shown-at instant of a record."""
        if not record:
            return None
        return dt_utils.dt_to_utc(record.get(const.DATA_ACK_SHOWN_AT))

    # =========================================================================
    # CHECKPOINT GUARDS
    # =========================================================================

    @staticmethod
    def evaluate_guards(
        now: datetime,
        record: AckRecord | dict[str, Any] | None,
        settings: ReminderSettings,
        *,
        forced: bool = False,
    ) -> CheckpointDecision:
        """Decide whether a checkpoint should go on to the count stage.

        Guards run in order: calendar (weekend, target hour), then the stored
        record. A forced evaluation skips every guard.

        Args:
            now: Evaluation instant (timezone-aware)
            record: Existing record for today's day key, or None
            settings: Effective reminder settings
            forced: User-initiated check

        Returns:
            CheckpointDecision describing whether to proceed.
        """
        state = AckEngine.get_state(record)

        if forced:
            return CheckpointDecision(
                proceed=True, keep_record=state in AckEngine.TERMINAL_STATES
            )

        if dt_utils.is_weekend(now):
            return CheckpointDecision(proceed=False, reason=const.CHECKPOINT_SKIP_WEEKEND)
        if dt_utils.as_local(now).hour < settings["target_hour"]:
            return CheckpointDecision(
                proceed=False, reason=const.CHECKPOINT_SKIP_BEFORE_TARGET_HOUR
            )

        if state == const.ACK_STATE_ACK:
            return CheckpointDecision(
                proceed=False, reason=const.CHECKPOINT_SKIP_ACKNOWLEDGED
            )
        if state == const.ACK_STATE_IGNORED:
            return CheckpointDecision(proceed=False, reason=const.CHECKPOINT_SKIP_IGNORED)
        if state == const.ACK_STATE_PENDING:
            deadline = AckEngine.get_deadline(record)
            if deadline is None or now < deadline:
                return CheckpointDecision(
                    proceed=False, reason=const.CHECKPOINT_SKIP_AWAITING
                )

        return CheckpointDecision(proceed=True)

    # =========================================================================
    # ACKNOWLEDGEMENT
    # =========================================================================

    @staticmethod
    def check_acknowledgement(
        record: AckRecord | dict[str, Any] | None, now: datetime
    ) -> AckDecision:
        """Decide the outcome of a user acknowledgement.

        - No record: rejected with no_record
        - Already acknowledged: accepted, nothing to write
        - Ignored, or now >= deadline: rejected with late_acknowledgement
        - Pending before the deadline: accepted, record moves to ack
        """
        state = AckEngine.get_state(record)
        if state == const.ACK_STATE_NONE:
            return AckDecision(ok=False, reason=const.ACK_REASON_NO_RECORD)
        if state == const.ACK_STATE_ACK:
            return AckDecision(ok=True)
        if state == const.ACK_STATE_IGNORED:
            return AckDecision(ok=False, reason=const.ACK_REASON_LATE)

        deadline = AckEngine.get_deadline(record)
        if deadline is None or now >= deadline:
            return AckDecision(ok=False, reason=const.ACK_REASON_LATE)
        return AckDecision(ok=True, write=True)

    # =========================================================================
    # EXPIRY / RETENTION
    # =========================================================================

    @staticmethod
    def is_expired(record: AckRecord | dict[str, Any] | None, now: datetime) -> bool:
        """Return True for a pending record whose deadline has passed."""
        if AckEngine.get_state(record) != const.ACK_STATE_PENDING:
            return False
        deadline = AckEngine.get_deadline(record)
        return deadline is not None and now >= deadline

    @staticmethod
    def is_live_pending(
        record: AckRecord | dict[str, Any] | None, now: datetime
    ) -> bool:
        """Return True for a pending record still awaiting its deadline."""
        if AckEngine.get_state(record) != const.ACK_STATE_PENDING:
            return False
        deadline = AckEngine.get_deadline(record)
        return deadline is not None and now < deadline

    @staticmethod
    def is_stale(
        record: AckRecord | dict[str, Any] | None,
        now: datetime,
        retention_days: int,
    ) -> bool:
        """Return True when shown_at is older than the retention window.

        Records with an unreadable shown_at are treated as stale.
        """
        shown_at = AckEngine.get_shown_at(record)
        if shown_at is None:
            return True
        return shown_at < now - timedelta(days=retention_days)

    # =========================================================================
    # RECORD CONSTRUCTION
    # =========================================================================

    @staticmethod
    def build_record(
        state: str,
        shown_at: datetime,
        deadline_at: datetime,
        source: str = const.ACK_SOURCE_AUTO,
    ) -> AckRecord:
        """Build a record with UTC ISO timestamps."""
        return {
            const.DATA_ACK_STATE: state,  # type: ignore[typeddict-item]
            const.DATA_ACK_SHOWN_AT: dt_utils.dt_to_iso_utc(shown_at),
            const.DATA_ACK_DEADLINE_AT: dt_utils.dt_to_iso_utc(deadline_at),
            const.DATA_ACK_SOURCE: source,  # type: ignore[typeddict-item]
        }

    @staticmethod
    def build_pending_record(
        now: datetime, deadline_at: datetime, *, forced: bool = False
    ) -> AckRecord:
        """Build the pending record written when a reminder is shown."""
        return AckEngine.build_record(
            const.ACK_STATE_PENDING,
            now,
            deadline_at,
            const.ACK_SOURCE_MANUAL if forced else const.ACK_SOURCE_AUTO,
        )

    @staticmethod
    def with_state(record: AckRecord | dict[str, Any], state: str) -> AckRecord:
        """Return a copy of a record moved to a new state.

        Raises:
            ValueError: The transition is not allowed.
        """
        current = AckEngine.get_state(record)
        if not AckEngine.can_transition(current, state):
            raise ValueError(f"Invalid acknowledgement transition {current} → {state}")
        updated = dict(record)
        updated[const.DATA_ACK_STATE] = state
        return updated  # type: ignore[return-value]

    # =========================================================================
    # LEGACY CONVERSION
    # =========================================================================

    @staticmethod
    def is_legacy_record(record: Any) -> bool:
        """Return True for a camelCase record with epoch-millisecond timestamps."""
        return isinstance(record, dict) and (
            const.LEGACY_RECORD_SHOWN_AT in record
            or const.LEGACY_RECORD_DEADLINE_AT in record
        )

    @staticmethod
    def convert_legacy_record(
        day_key: str, record: dict[str, Any], deadline_hour: int
    ) -> AckRecord | None:
        """Convert a camelCase epoch-ms record into the current layout.

        A missing deadline is inferred from the day key. Returns None when
        the record cannot be salvaged (unknown state, malformed day key).
        """
        state = record.get(const.DATA_ACK_STATE)
        if state not in AckEngine.VALID_TRANSITIONS or state == const.ACK_STATE_NONE:
            return None
        deadline = dt_utils.dt_from_epoch_ms(record.get(const.LEGACY_RECORD_DEADLINE_AT))
        if deadline is None:
            deadline = dt_utils.deadline_for_day_key(day_key, deadline_hour)
        if deadline is None:
            return None
        shown_at = dt_utils.dt_from_epoch_ms(record.get(const.LEGACY_RECORD_SHOWN_AT))
        if shown_at is None or shown_at >= deadline:
            shown_at = AckEngine.synthetic_shown_at(day_key, deadline)
        source = record.get(const.DATA_ACK_SOURCE)
        if source not in (const.ACK_SOURCE_AUTO, const.ACK_SOURCE_MANUAL):
            source = const.ACK_SOURCE_AUTO
        return AckEngine.build_record(state, shown_at, deadline, source)

    @staticmethod
    def build_migrated_record(
        day_key: str, state: str, deadline_hour: int
    ) -> AckRecord | None:
        """Build a record for a flat legacy key (pending-ack-date, ack-*, ignore-*).

        The original timestamps are unknown: the deadline is computed from the
        day key and shown_at is set to midnight local of that day.
        """
        deadline = dt_utils.deadline_for_day_key(day_key, deadline_hour)
        if deadline is None:
            return None
        return AckEngine.build_record(
            state, AckEngine.synthetic_shown_at(day_key, deadline), deadline
        )

    @staticmethod
    def synthetic_shown_at(day_key: str, deadline: datetime) -> datetime:
        """Midnight local of the day key, or one second before the deadline."""
        midnight = dt_utils.parse_day_key(day_key)
        if midnight is None or midnight >= deadline:
            return deadline - timedelta(seconds=1)
        return midnight
