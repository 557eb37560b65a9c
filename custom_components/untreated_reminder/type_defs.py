"""Type definitions for Untreated Reminder data structures.

TypedDict is used for structures with fixed keys (records, settings, service
responses). Maps keyed at runtime (day keys, surface ids, identities) stay
plain dicts of those TypedDicts.

IMPORTANT: This file must NOT import from coordinator.py or any module that
imports the coordinator, to avoid circular dependencies.

NOTE: TypedDict is STATIC ANALYSIS ONLY. Runtime checks (.get() defaults,
None handling) remain in the store and managers.
"""

from typing import Literal, TypedDict

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

DayKey = str  # Local calendar day "YYYYMMDD"
SurfaceId = str  # Opaque surface identifier reported by the surface
Identity = str  # Lower-cased mailbox address
ISODatetime = str  # ISO 8601 datetime string "2026-10-19T23:05:00+00:00"

AckState = Literal["pending", "ack", "ignored"]
AckSource = Literal["auto", "manual"]
EndpointClass = Literal["profile", "count"]


# =============================================================================
# Stored Records
# =============================================================================


class AckRecord(TypedDict):
    """One acknowledgement record per day key.

    Invariants: deadline_at > shown_at; state only moves pending→ack or
    pending→ignored.
    """

    state: AckState
    shown_at: ISODatetime
    deadline_at: ISODatetime
    source: AckSource


class CountCacheEntry(TypedDict):
    """Last successful exact count for one identity."""

    count: int
    captured_at: ISODatetime


class BackoffData(TypedDict):
    """Retry-not-before instant per endpoint class (None when inactive)."""

    profile: ISODatetime | None
    count: ISODatetime | None


class StoreMeta(TypedDict):
    """Storage metadata."""

    schema_version: int


class StoreData(TypedDict):
    """Full persisted structure."""

    meta: StoreMeta
    ack_records: dict[DayKey, AckRecord]
    surface_bindings: dict[SurfaceId, Identity]
    count_cache: dict[Identity, CountCacheEntry]
    backoff: BackoffData
    profile_cache: Identity


# =============================================================================
# Configuration
# =============================================================================


class ReminderSettings(TypedDict):
    """Effective settings read from the config entry data and options."""

    label_name: str
    target_hour: int
    deadline_hour: int
    work_start_hour: int
    work_end_hour: int
    retention_days: int


# =============================================================================
# Service Responses
# =============================================================================


class AckResponse(TypedDict):
    """Response of the acknowledge service."""

    ok: bool
    reason: str | None


class IdentityResponse(TypedDict):
    """Response of the report_identity service."""

    ok: bool
    match: bool
    profile: Identity


class SurfaceCheck(TypedDict):
    """Result of matching one surface against the authenticated identity."""

    matched: bool
    surface_identity: Identity | None
    profile: Identity | None
