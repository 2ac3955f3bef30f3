"""Lookup transports — the injectable boundary to the threat-intelligence service.

``ThreatLookupTransport`` is the one-operation protocol the orchestrator depends
on: submit a ``ThreatQuery``, get a ``ThreatQueryResult`` or a ``CheckError``.

Implementations:
  - SafeBrowsingTransport — live provider over a shared ``httpx.AsyncClient``
  - DemoTransport         — offline simulation (fixed delay + substring rule)

Classification performed by SafeBrowsingTransport (status is classified
BEFORE any body field is read):
  - httpx.TransportError (connect / DNS / timeout / reset / protocol) → NetworkUnavailableError
  - HTTP 429                                                          → RateLimitedError
  - any other non-2xx                                                 → ServiceRejectedError(status)
  - 2xx body not a JSON object, or ``matches`` not a list of objects  → MalformedResponseError
  - 2xx JSON object without ``matches`` (or ``matches: null``)        → empty result
"""

from __future__ import annotations

import asyncio
import json
from typing import Protocol, runtime_checkable

import httpx

from urlshield.checker.errors import (
    MalformedResponseError,
    NetworkUnavailableError,
    RateLimitedError,
    ServiceRejectedError,
)
from urlshield.constants import (
    CREDENTIAL_PARAM,
    DEFAULT_DEMO_DELAY_S,
    DEFAULT_LOOKUP_ENDPOINT,
    DEFAULT_LOOKUP_TIMEOUT_S,
    POOL_KEEPALIVE_EXPIRY,
    POOL_MAX_CONNECTIONS,
    POOL_MAX_KEEPALIVE,
)
from urlshield.models.query import ThreatMatch, ThreatQuery, ThreatQueryResult
from urlshield.utils.logger import get_logger

logger = get_logger(__name__)

HTTP_TOO_MANY_REQUESTS = 429


# ─── Protocol ─────────────────────────────────────────────────────────────────


@runtime_checkable
class ThreatLookupTransport(Protocol):
    """Pluggable lookup transport interface.

    ``submit()`` either returns a parsed result or raises a ``CheckError``
    subclass. Any other exception is treated by the orchestrator as OTHER.
    """

    async def submit(self, query: ThreatQuery) -> ThreatQueryResult:
        ...


# ─── httpx.AsyncClient factory ────────────────────────────────────────────────


def create_http_client(timeout_s: float = DEFAULT_LOOKUP_TIMEOUT_S) -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient used by SafeBrowsingTransport.

    Created once at lifespan startup and stored in app.state.http_client.
    NEVER instantiated per check.
    """
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(timeout_s),
        follow_redirects=False,
    )


# ─── Response parsing ─────────────────────────────────────────────────────────


def parse_lookup_body(body: bytes) -> ThreatQueryResult:
    """Parse a 2xx lookup response body.

    Missing ``matches`` is "no matches" rather than a schema error. This keeps
    the error path for genuinely unreadable bodies only.

    Raises:
        MalformedResponseError: Body is not JSON, not an object, or ``matches``
                                is present but not a list of ``{"threatType": str}``.
    """
    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise MalformedResponseError("response body is not valid JSON") from exc

    if not isinstance(payload, dict):
        raise MalformedResponseError("response body is not a JSON object")

    raw_matches = payload.get("matches")
    if raw_matches is None:
        return ThreatQueryResult.empty()
    if not isinstance(raw_matches, list):
        raise MalformedResponseError("'matches' is not a list")

    matches: list[ThreatMatch] = []
    for item in raw_matches:
        if not isinstance(item, dict) or not isinstance(item.get("threatType"), str):
            raise MalformedResponseError("match entry has no 'threatType'")
        threat = item.get("threat")
        matches.append(
            ThreatMatch(
                threat_type=item["threatType"],
                url=threat.get("url") if isinstance(threat, dict) else None,
                platform_type=item.get("platformType"),
            )
        )
    return ThreatQueryResult(matches=tuple(matches))


# ─── Live provider ────────────────────────────────────────────────────────────


class SafeBrowsingTransport:
    """Live lookup over HTTPS.

    The credential is sent as the ``key`` query parameter and is never logged.
    The httpx client is owned by the caller (lifespan) and is not closed here.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        endpoint: str = DEFAULT_LOOKUP_ENDPOINT,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self._endpoint = endpoint

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def submit(self, query: ThreatQuery) -> ThreatQueryResult:
        try:
            response = await self._client.post(
                self._endpoint,
                params={CREDENTIAL_PARAM: self._api_key},
                json=query.to_payload(),
            )
        except httpx.TransportError as exc:
            # ConnectError      : connection refused, host unreachable, DNS failure
            # TimeoutException  : provider too slow / gone
            # NetworkError      : connection reset mid-request
            # RemoteProtocolError: provider sent invalid HTTP
            logger.warning(
                "lookup_unavailable",
                endpoint=self._endpoint,
                error_type=type(exc).__name__,
            )
            raise NetworkUnavailableError(type(exc).__name__) from exc

        status = response.status_code
        if status == HTTP_TOO_MANY_REQUESTS:
            logger.warning("lookup_rate_limited", endpoint=self._endpoint)
            raise RateLimitedError("provider returned 429", status_code=status)
        if not response.is_success:
            logger.warning("lookup_rejected", endpoint=self._endpoint, status_code=status)
            raise ServiceRejectedError(f"provider returned {status}", status_code=status)

        return parse_lookup_body(response.content)


# ─── Offline demo ─────────────────────────────────────────────────────────────


class DemoTransport:
    """Offline stand-in for the live provider.

    Waits ``delay_s`` to simulate network latency, then reports a MALWARE match
    for every URL containing ``unsafe_marker`` (case-insensitive) and no match
    otherwise.
    """

    def __init__(
        self,
        delay_s: float = DEFAULT_DEMO_DELAY_S,
        unsafe_marker: str = "example",
    ) -> None:
        self._delay_s = delay_s
        self._unsafe_marker = unsafe_marker.lower()

    async def submit(self, query: ThreatQuery) -> ThreatQueryResult:
        if self._delay_s > 0:
            await asyncio.sleep(self._delay_s)
        matches = tuple(
            ThreatMatch(threat_type="MALWARE", url=url)
            for url in query.urls
            if self._unsafe_marker in url.lower()
        )
        return ThreatQueryResult(matches=matches)


# ─── Protocol compliance assertions ───────────────────────────────────────────
# Checked at import time.
assert isinstance(DemoTransport(), ThreatLookupTransport), (
    "DemoTransport does not satisfy ThreatLookupTransport protocol"
)
