# File: api.py
"""Backoff-aware client for the remote mailbox count and profile endpoints.

Wraps the Gmail REST API with:
- Response caching per identity (CountCacheEntry in the store)
- In-flight de-duplication of exact count fetches keyed by identity
- Rate-limit backoff persisted per endpoint class across restarts

Only this client writes CountCacheEntry and BackoffState.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from email.utils import parsedate_to_datetime
import re
from typing import TYPE_CHECKING, Any

import aiohttp
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.aiohttp_client import async_get_clientsession
import homeassistant.util.dt as dt_util

from . import const
from .utils import dt_utils

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from .store import UntreatedReminderStore

RETRY_AFTER_BODY_RE = re.compile(r"Retry after\s+([0-9T:\-.Z+]+)", re.IGNORECASE)


# ==============================================================================
# Exceptions
# ==============================================================================


class BackoffActiveError(HomeAssistantError):
    """A rate-limited endpoint class is still inside its backoff window."""

    def __init__(self, endpoint: str, until: datetime) -> None:
        """Initialize with the endpoint class and the retry-not-before instant."""
        super().__init__(f"{endpoint} backoff active until {until.isoformat()}")
        self.endpoint = endpoint
        self.until = until


class FetchFailedError(HomeAssistantError):
    """Transport, HTTP or parse failure talking to the remote service."""


# ==============================================================================
# Retry Parsing
# ==============================================================================


def parse_retry_until(
    retry_after: str | None, body: str | None, now: datetime
) -> datetime:
    """Work out when a rate-limited endpoint may be called again.

    Order: the Retry-After header (delta seconds or HTTP date), then a
    "Retry after <ISO timestamp>" phrase in the body, then a fixed fallback.

    Args:
        retry_after: Raw Retry-After header value, if any
        body: Response body text, if any
        now: Current instant (UTC-aware)

    Returns:
        UTC-aware datetime before which the endpoint must not be called.
    """
    if retry_after:
        value = retry_after.strip()
        try:
            seconds = float(value)
        except ValueError:
            seconds = None
        if seconds is not None:
            if seconds > 0:
                return now + timedelta(seconds=seconds)
        else:
            try:
                parsed = parsedate_to_datetime(value)
            except (TypeError, ValueError, IndexError):
                parsed = None
            if parsed is not None:
                return dt_utils.as_utc(
                    parsed if parsed.tzinfo else parsed.replace(tzinfo=dt_util.UTC)
                )

    if body:
        match = RETRY_AFTER_BODY_RE.search(body)
        if match:
            parsed_body = dt_utils.dt_to_utc(match.group(1))
            if parsed_body is not None:
                return parsed_body

    return now + timedelta(seconds=const.DEFAULT_BACKOFF_SECONDS)


# ==============================================================================
# Client
# ==============================================================================


class UntreatedCountClient:
    """Counts conversations carrying the reminder label for one account.

    In-memory state (profile identity, in-flight tasks) is rebuilt lazily
    after a restart; durable state lives in the store.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        store: UntreatedReminderStore,
        access_token: str,
        label_name: str = const.DEFAULT_LABEL_NAME,
    ) -> None:
        """Initialize the client."""
        self.hass = hass
        self._store = store
        self._access_token = access_token
        self.label_name = label_name
        self._profile: str | None = None
        self._profile_in_flight: asyncio.Task[str | None] | None = None
        self._count_in_flight: dict[str, asyncio.Task[int]] = {}

    @property
    def access_token(self) -> str:
        """Return the bearer token used for remote calls."""
        return self._access_token

    @property
    def query(self) -> str:
        """Return the search expression for the reminder label."""
        return const.GMAIL_COUNT_QUERY_FMT.format(label=self.label_name)

    # -------------------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------------------

    async def async_get_profile_email(self) -> str | None:
        """Resolve the authenticated mailbox address (lower-cased).

        Uses the in-memory value, then the persisted profile cache, then the
        profile endpoint. Returns None while the profile backoff is active or
        when the lookup fails. Concurrent callers share one lookup.
        """
        if self._profile:
            return self._profile
        cached = self._store.get_profile_cache()
        if cached:
            self._profile = cached
            return cached

        until = self._store.get_backoff_until(const.ENDPOINT_PROFILE)
        if until is not None and dt_util.utcnow() < until:
            const.LOGGER.debug("Profile lookup skipped; backoff active until %s", until)
            return None

        if self._profile_in_flight is None:
            task = self.hass.async_create_task(self._async_profile_task())
            if not task.done():
                self._profile_in_flight = task
        else:
            task = self._profile_in_flight
        return await asyncio.shield(task)

    async def _async_profile_task(self) -> str | None:
        try:
            try:
                payload = await self._async_get_json(
                    const.GMAIL_PROFILE_URL,
                    {"fields": "emailAddress"},
                    const.ENDPOINT_PROFILE,
                )
            except (BackoffActiveError, FetchFailedError) as err:
                const.LOGGER.warning("Profile lookup failed: %s", err)
                return None
            email = str(payload.get("emailAddress") or "").strip().lower()
            if not email:
                const.LOGGER.warning("Profile lookup returned no email address")
                return None
            self._profile = email
            await self._store.async_set_profile_cache(email)
            const.LOGGER.info("Profile email resolved: %s", email)
            return email
        finally:
            self._profile_in_flight = None

    async def async_clear_identity_cache(self) -> None:
        """Forget the profile, cached counts and both backoff windows."""
        self._profile = None
        self._profile_in_flight = None
        self._count_in_flight.clear()
        await self._store.async_clear_identity_caches()
        const.LOGGER.info("Identity caches cleared")

    # -------------------------------------------------------------------------------------
    # Counting
    # -------------------------------------------------------------------------------------

    def get_cached_count(self, identity: str) -> int | None:
        """Return the last cached count for an identity, or None."""
        entry = self._store.get_count_cache(identity)
        if entry is None:
            return None
        try:
            return int(entry.get(const.DATA_COUNT_CACHE_COUNT, 0))
        except (TypeError, ValueError):
            return None

    async def async_get_count(
        self, identity: str, *, exact: bool = False, use_cache: bool = True
    ) -> int:
        """Return the number of labelled conversations for an identity.

        Args:
            identity: Lower-cased mailbox address the count belongs to
            exact: Skip the cache and count every page
            use_cache: Allow a cached value to satisfy a non-exact query

        Returns:
            The conversation count.

        Raises:
            BackoffActiveError: The count endpoint is inside its backoff window.
            FetchFailedError: The remote call failed.
        """
        if use_cache and not exact:
            cached = self.get_cached_count(identity)
            if cached is not None:
                return cached

        task = self._count_in_flight.get(identity)
        if task is None:
            task = self.hass.async_create_task(self._async_count_task(identity))
            if not task.done():
                self._count_in_flight[identity] = task
        else:
            const.LOGGER.debug("Joining in-flight count for %s", identity)
        return await asyncio.shield(task)

    async def _async_count_task(self, identity: str) -> int:
        try:
            return await self._async_fetch_count(identity)
        finally:
            self._count_in_flight.pop(identity, None)

    async def _async_fetch_count(self, identity: str) -> int:
        """Count every labelled conversation by following continuation tokens."""
        until = self._store.get_backoff_until(const.ENDPOINT_COUNT)
        if until is not None and dt_util.utcnow() < until:
            raise BackoffActiveError(const.ENDPOINT_COUNT, until)

        total = 0
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {
                "q": self.query,
                "maxResults": const.GMAIL_PAGE_SIZE,
                "fields": "nextPageToken,threads/id",
            }
            if page_token:
                params["pageToken"] = page_token
            payload = await self._async_get_json(
                const.GMAIL_THREADS_URL, params, const.ENDPOINT_COUNT
            )
            threads = payload.get("threads")
            if isinstance(threads, list):
                total += len(threads)
            page_token = payload.get("nextPageToken") or None
            if not page_token:
                break

        await self._store.async_set_count_cache(identity, total, dt_util.utcnow())
        const.LOGGER.debug("Exact count for %s: %s", identity, total)
        return total

    async def async_refresh(self, identity: str) -> int:
        """Force an exact fetch; fall back to the cached value on failure."""
        try:
            return await self.async_get_count(identity, exact=True, use_cache=False)
        except (BackoffActiveError, FetchFailedError) as err:
            cached = self.get_cached_count(identity)
            const.LOGGER.warning(
                "Count refresh skipped for %s (%s); using cached value %s",
                identity,
                err,
                cached,
            )
            return cached or 0

    async def async_get_estimate(self) -> int:
        """Return the cheap result-size estimate, or 0 on any failure.

        The estimate is attempted even while the count backoff is active; a
        429 here extends that backoff.
        """
        session = async_get_clientsession(self.hass)
        params = {
            "q": self.query,
            "maxResults": 1,
            "fields": "resultSizeEstimate",
        }
        try:
            async with asyncio.timeout(const.GMAIL_REQUEST_TIMEOUT):
                async with session.get(
                    const.GMAIL_THREADS_URL, params=params, headers=self._headers
                ) as response:
                    if response.status == 429:
                        until = parse_retry_until(
                            response.headers.get("Retry-After"),
                            await response.text(),
                            dt_util.utcnow(),
                        )
                        await self._store.async_set_backoff_until(
                            const.ENDPOINT_COUNT, until
                        )
                        const.LOGGER.warning(
                            "Estimate rate limited; count backoff until %s",
                            until.isoformat(),
                        )
                        return 0
                    if response.status != 200:
                        const.LOGGER.debug(
                            "Estimate request returned HTTP %s", response.status
                        )
                        return 0
                    payload = await response.json(content_type=None)
        except (aiohttp.ClientError, TimeoutError, ValueError) as err:
            const.LOGGER.warning("Estimate request failed: %s", err)
            return 0
        if not isinstance(payload, dict):
            return 0
        try:
            return max(int(payload.get("resultSizeEstimate") or 0), 0)
        except (TypeError, ValueError):
            return 0

    # -------------------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------------------

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    async def _async_get_json(
        self, url: str, params: dict[str, Any], endpoint: str
    ) -> dict[str, Any]:
        """GET a JSON object, recording backoff on HTTP 429.

        Raises:
            BackoffActiveError: HTTP 429; the backoff instant has been persisted.
            FetchFailedError: Any other failure.
        """
        session = async_get_clientsession(self.hass)
        try:
            async with asyncio.timeout(const.GMAIL_REQUEST_TIMEOUT):
                async with session.get(
                    url, params=params, headers=self._headers
                ) as response:
                    if response.status == 429:
                        body = await response.text()
                        until = parse_retry_until(
                            response.headers.get("Retry-After"),
                            body,
                            dt_util.utcnow(),
                        )
                        await self._store.async_set_backoff_until(endpoint, until)
                        const.LOGGER.warning(
                            "%s endpoint rate limited; backing off until %s",
                            endpoint,
                            until.isoformat(),
                        )
                        raise BackoffActiveError(endpoint, until)
                    if response.status != 200:
                        text = await response.text()
                        raise FetchFailedError(
                            f"HTTP {response.status} from {url}: {text[:200]}"
                        )
                    payload = await response.json(content_type=None)
        except (aiohttp.ClientError, TimeoutError, ValueError) as err:
            raise FetchFailedError(f"Request to {url} failed: {err}") from err

        if not isinstance(payload, dict):
            raise FetchFailedError(f"Unexpected response shape from {url}")
        return payload
