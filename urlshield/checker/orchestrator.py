"""Threat-check orchestrator.

``ThreatCheckOrchestrator.check()`` is the ONLY entry point for running a
threat check against a canonical URL. ``check_text()`` runs the normalizer
first and is what hosts call with raw user input.

ATOMIC WRAPPER INVARIANTS:
  - ``check()`` ALWAYS returns a ``CheckOutcome`` for transport failures; it
    never raises ``CheckError`` or any other ``Exception`` from the transport.
  - Every ``check()`` emits exactly one PENDING change followed by exactly one
    terminal change (SAFE, UNSAFE or UNKNOWN).
  - The progress flag is cleared in ``finally`` on every exit path.
  - Verdict and progress flag are updated together before listeners run.
  - Cancellation while PENDING resets the verdict to IDLE (no terminal change
    is emitted) and re-raises ``asyncio.CancelledError``. If other checks are
    still in flight the verdict stays PENDING.

Pipeline:
  1. PENDING (observable before any network activity)
  2. heuristic_scan() — local short-circuit to UNSAFE, no lookup call
  3. ThreatQuery.for_url() → transport.submit()
  4. matches → UNSAFE (provider categories); no matches → SAFE
  5. CheckError / unexpected exception → UNKNOWN with a per-kind message
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional, Union

from urlshield.checker.errors import CheckError, MalformedResponseError, OtherCheckError
from urlshield.checker.heuristics import heuristic_scan
from urlshield.checker.normalizer import CanonicalURL, InvalidInput, normalize
from urlshield.checker.transport import ThreatLookupTransport
from urlshield.constants import DEFAULT_CLIENT_ID, DEFAULT_CLIENT_VERSION
from urlshield.models.query import ThreatQuery, ThreatQueryResult
from urlshield.models.verdict import (
    MESSAGE_SAFE,
    MESSAGE_UNSAFE_HEURISTIC,
    MESSAGE_UNSAFE_PROVIDER,
    CheckOutcome,
    StateChange,
    Verdict,
    VerdictSource,
)
from urlshield.utils.logger import PerformanceLogger, check_id_var, get_logger
from urlshield.utils.ulid import generate_ulid

logger = get_logger(__name__)

StateListener = Callable[[StateChange], None]


class ThreatCheckOrchestrator:
    """Runs checks and owns the observable verdict slot.

    Args:
        transport:          Lookup transport (live provider, demo, or a test double).
        heuristics_enabled: Run the local heuristic pre-check before the lookup.
        client_id:          Caller identity sent with every query.
        client_version:     Caller version sent with every query.
    """

    def __init__(
        self,
        transport: ThreatLookupTransport,
        *,
        heuristics_enabled: bool = True,
        client_id: str = DEFAULT_CLIENT_ID,
        client_version: str = DEFAULT_CLIENT_VERSION,
    ) -> None:
        self._transport = transport
        self._heuristics_enabled = heuristics_enabled
        self._client_id = client_id
        self._client_version = client_version
        self._verdict = Verdict.IDLE
        self._outcome: Optional[CheckOutcome] = None
        self._in_flight = 0
        self._listeners: list[StateListener] = []
        self.checks_total = 0

    # ── Observable state ──────────────────────────────────────────────────────

    @property
    def verdict(self) -> Verdict:
        return self._verdict

    @property
    def in_progress(self) -> bool:
        return self._in_flight > 0

    @property
    def last_outcome(self) -> Optional[CheckOutcome]:
        return self._outcome

    @property
    def heuristics_enabled(self) -> bool:
        return self._heuristics_enabled

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state-change listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ── Entry points ──────────────────────────────────────────────────────────

    async def check_text(self, raw: Optional[str]) -> CheckOutcome:
        """Normalize raw input, then check it.

        Rejected input produces a single INVALID change and never reaches the
        lookup stage (no PENDING is emitted).
        """
        normalized = normalize(raw)
        if isinstance(normalized, InvalidInput):
            outcome = CheckOutcome(
                verdict=Verdict.INVALID,
                message=normalized.message,
                invalid_reason=normalized.reason,
            )
            logger.info("input_rejected", reason=normalized.reason.value)
            self._transition(Verdict.INVALID, outcome=outcome)
            return outcome
        return await self.check(normalized)

    async def check(self, canonical: Union[CanonicalURL, str]) -> CheckOutcome:
        """Check a canonical URL. See module docstring for invariants."""
        url = str(canonical)
        check_id = generate_ulid()
        token = check_id_var.set(check_id)
        self.checks_total += 1
        self._in_flight += 1
        self._transition(Verdict.PENDING, check_id=check_id)

        outcome: Optional[CheckOutcome] = None
        try:
            outcome = await self._run(url, check_id)
        except asyncio.CancelledError:
            logger.info("check_cancelled", url=url)
            raise
        finally:
            self._in_flight -= 1
            if outcome is not None:
                self._transition(outcome.verdict, check_id=check_id, outcome=outcome)
            elif self._in_flight == 0:
                self._transition(Verdict.IDLE, check_id=check_id)
            # Cancelled with other checks still in flight: stay PENDING.
            check_id_var.reset(token)

        logger.info(
            "check_completed",
            check_id=check_id,
            url=url,
            verdict=outcome.verdict.value,
            source=outcome.source.value if outcome.source else None,
            categories=sorted(outcome.categories),
            error=outcome.error.value if outcome.error else None,
        )
        return outcome

    # ── Internals ─────────────────────────────────────────────────────────────

    async def _run(self, url: str, check_id: str) -> CheckOutcome:
        if self._heuristics_enabled:
            match = heuristic_scan(url)
            if match is not None:
                logger.info("heuristic_match", category=match.category, slug=match.slug)
                return CheckOutcome(
                    verdict=Verdict.UNSAFE,
                    message=MESSAGE_UNSAFE_HEURISTIC,
                    check_id=check_id,
                    url=url,
                    categories=frozenset({match.category}),
                    source=VerdictSource.HEURISTIC,
                )

        query = ThreatQuery.for_url(
            url, client_id=self._client_id, client_version=self._client_version
        )
        try:
            with PerformanceLogger("threat_lookup", logger):
                result = await self._transport.submit(query)
        except CheckError as exc:
            return self._unknown(check_id, url, exc)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "lookup_failed_unexpectedly",
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return self._unknown(check_id, url, OtherCheckError(str(exc) or type(exc).__name__))

        # ── Type-safety guard ─────────────────────────────────────────────────
        if not isinstance(result, ThreatQueryResult):
            logger.error("transport_returned_invalid_type", result_type=type(result).__name__)
            return self._unknown(
                check_id, url, MalformedResponseError("transport returned an invalid result")
            )

        if result.is_match:
            return CheckOutcome(
                verdict=Verdict.UNSAFE,
                message=MESSAGE_UNSAFE_PROVIDER,
                check_id=check_id,
                url=url,
                categories=result.categories,
                source=VerdictSource.PROVIDER,
            )
        return CheckOutcome(
            verdict=Verdict.SAFE,
            message=MESSAGE_SAFE,
            check_id=check_id,
            url=url,
        )

    @staticmethod
    def _unknown(check_id: str, url: str, exc: CheckError) -> CheckOutcome:
        return CheckOutcome(
            verdict=Verdict.UNKNOWN,
            message=exc.user_message,
            check_id=check_id,
            url=url,
            error=exc.kind,
            status_code=exc.status_code,
        )

    def _transition(
        self,
        verdict: Verdict,
        check_id: Optional[str] = None,
        outcome: Optional[CheckOutcome] = None,
    ) -> None:
        previous = self._verdict
        self._verdict = verdict
        self._outcome = outcome
        change = StateChange(
            previous=previous,
            verdict=verdict,
            in_progress=self.in_progress,
            check_id=check_id,
            outcome=outcome,
        )
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "state_listener_failed",
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
