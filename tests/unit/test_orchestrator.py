"""Unit tests for urlshield/checker/orchestrator.py.

Test strategy:
  - Lookup outcomes driven through SafeBrowsingTransport + httpx.MockTransport
    so status classification is exercised end to end
  - Counting / blocking / raising transport doubles for the orchestration rules
  - A recording listener captures every StateChange

Covers:
  - PENDING then exactly one terminal change per check; progress flag in lockstep
  - Heuristic short-circuit makes zero lookup calls
  - Lookup scenarios: no match, match, rejected credential, outage, rate limit
  - Fail-safe boundary: unexpected exceptions and wrong result types → UNKNOWN
  - Cancellation resets to IDLE and re-raises
  - check_text(): INVALID without PENDING; normalization before lookup
"""

from __future__ import annotations

import asyncio
import json
from typing import Optional

import httpx
import pytest

from urlshield.checker.normalizer import CanonicalURL
from urlshield.checker.orchestrator import ThreatCheckOrchestrator
from urlshield.checker.transport import SafeBrowsingTransport
from urlshield.models.query import ThreatMatch, ThreatQuery, ThreatQueryResult
from urlshield.models.verdict import (
    MESSAGE_SAFE,
    MESSAGE_UNSAFE_HEURISTIC,
    MESSAGE_UNSAFE_PROVIDER,
    CheckErrorKind,
    InvalidReason,
    StateChange,
    Verdict,
    VerdictSource,
)
from urlshield.utils.logger import check_id_var

BAD_URL = "https://bad.test"
GOOD_URL = "https://good.test"


# ─── Test doubles ─────────────────────────────────────────────────────────────


def _provider_handler(request: httpx.Request) -> httpx.Response:
    """Mock provider: bad.test is a known MALWARE host, everything else is clean."""
    body = json.loads(request.content)
    url = body["threatInfo"]["threatEntries"][0]["url"]
    if "bad.test" in url:
        return httpx.Response(
            200,
            json={"matches": [{"threatType": "MALWARE", "threat": {"url": url}}]},
        )
    return httpx.Response(200, json={})


def _refuse_connection(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


def _live_orchestrator(handler=_provider_handler, **kwargs) -> ThreatCheckOrchestrator:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    transport = SafeBrowsingTransport(client=client, api_key="test-key")
    return ThreatCheckOrchestrator(transport, **kwargs)


class CountingTransport:
    """Records submitted queries; returns a fixed result."""

    def __init__(self, result: Optional[ThreatQueryResult] = None) -> None:
        self.queries: list[ThreatQuery] = []
        self._result = result or ThreatQueryResult.empty()

    async def submit(self, query: ThreatQuery) -> ThreatQueryResult:
        self.queries.append(query)
        await asyncio.sleep(0)
        return self._result


class BlockingTransport:
    """Blocks in submit() until released; signals once the lookup has started."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def submit(self, query: ThreatQuery) -> ThreatQueryResult:
        self.started.set()
        await self.release.wait()
        return ThreatQueryResult.empty()


class RaisingTransport:
    def __init__(self, exc: Exception) -> None:
        self._exc = exc

    async def submit(self, query: ThreatQuery) -> ThreatQueryResult:
        raise self._exc


class WrongTypeTransport:
    async def submit(self, query: ThreatQuery):
        return {"matches": []}


class Recorder:
    def __init__(self) -> None:
        self.changes: list[StateChange] = []

    def __call__(self, change: StateChange) -> None:
        self.changes.append(change)

    @property
    def sequence(self) -> list[tuple[Verdict, bool]]:
        return [(c.verdict, c.in_progress) for c in self.changes]


# ─── State sequence ───────────────────────────────────────────────────────────


class TestStateSequence:
    @pytest.mark.asyncio
    async def test_pending_then_single_terminal(self) -> None:
        orchestrator = _live_orchestrator()
        recorder = Recorder()
        orchestrator.subscribe(recorder)

        await orchestrator.check(CanonicalURL(GOOD_URL))

        assert recorder.sequence == [(Verdict.PENDING, True), (Verdict.SAFE, False)]

    @pytest.mark.asyncio
    async def test_initial_state_is_idle(self) -> None:
        orchestrator = _live_orchestrator()
        assert orchestrator.verdict == Verdict.IDLE
        assert orchestrator.in_progress is False
        assert orchestrator.last_outcome is None

    @pytest.mark.asyncio
    async def test_pending_observable_before_lookup_completes(self) -> None:
        transport = BlockingTransport()
        orchestrator = ThreatCheckOrchestrator(transport)

        task = asyncio.create_task(orchestrator.check(GOOD_URL))
        await transport.started.wait()
        assert orchestrator.verdict == Verdict.PENDING
        assert orchestrator.in_progress is True

        transport.release.set()
        outcome = await task
        assert outcome.verdict == Verdict.SAFE
        assert orchestrator.in_progress is False

    @pytest.mark.asyncio
    async def test_previous_verdict_reported(self) -> None:
        orchestrator = _live_orchestrator()
        await orchestrator.check(BAD_URL)
        recorder = Recorder()
        orchestrator.subscribe(recorder)

        await orchestrator.check(GOOD_URL)

        assert recorder.changes[0].previous == Verdict.UNSAFE
        assert recorder.changes[1].previous == Verdict.PENDING

    @pytest.mark.asyncio
    async def test_terminal_change_carries_outcome_and_check_id(self) -> None:
        orchestrator = _live_orchestrator()
        recorder = Recorder()
        orchestrator.subscribe(recorder)

        outcome = await orchestrator.check(GOOD_URL)

        pending, terminal = recorder.changes
        assert pending.check_id == outcome.check_id
        assert pending.outcome is None
        assert terminal.outcome == outcome
        assert orchestrator.last_outcome == outcome


# ─── Lookup scenarios ─────────────────────────────────────────────────────────


class TestLookupScenarios:
    @pytest.mark.asyncio
    async def test_no_match_is_safe(self) -> None:
        outcome = await _live_orchestrator().check(GOOD_URL)
        assert outcome.verdict == Verdict.SAFE
        assert outcome.message == MESSAGE_SAFE
        assert outcome.categories == frozenset()
        assert outcome.url == GOOD_URL

    @pytest.mark.asyncio
    async def test_match_is_unsafe_with_provider_categories(self) -> None:
        outcome = await _live_orchestrator().check(BAD_URL)
        assert outcome.verdict == Verdict.UNSAFE
        assert outcome.message == MESSAGE_UNSAFE_PROVIDER
        assert outcome.categories == frozenset({"MALWARE"})
        assert outcome.source == VerdictSource.PROVIDER

    @pytest.mark.asyncio
    async def test_rejected_credential_is_unknown_service_rejected(self) -> None:
        orchestrator = _live_orchestrator(lambda r: httpx.Response(403, json={}))
        outcome = await orchestrator.check(GOOD_URL)
        assert outcome.verdict == Verdict.UNKNOWN
        assert outcome.error == CheckErrorKind.SERVICE_REJECTED
        assert outcome.status_code == 403
        assert "API key" in outcome.message

    @pytest.mark.asyncio
    async def test_outage_is_unknown_network_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        outcome = await _live_orchestrator(handler).check(GOOD_URL)
        assert outcome.verdict == Verdict.UNKNOWN
        assert outcome.error == CheckErrorKind.NETWORK_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_rate_limit_is_unknown_rate_limited(self) -> None:
        orchestrator = _live_orchestrator(lambda r: httpx.Response(429))
        outcome = await orchestrator.check(GOOD_URL)
        assert outcome.verdict == Verdict.UNKNOWN
        assert outcome.error == CheckErrorKind.RATE_LIMITED

    @pytest.mark.asyncio
    async def test_malformed_body_is_unknown_malformed_response(self) -> None:
        orchestrator = _live_orchestrator(lambda r: httpx.Response(200, content=b"nope"))
        outcome = await orchestrator.check(GOOD_URL)
        assert outcome.error == CheckErrorKind.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_error_messages_distinct_per_kind(self) -> None:
        handlers = {
            CheckErrorKind.NETWORK_UNAVAILABLE: _refuse_connection,
            CheckErrorKind.SERVICE_REJECTED: lambda r: httpx.Response(403),
            CheckErrorKind.RATE_LIMITED: lambda r: httpx.Response(429),
            CheckErrorKind.MALFORMED_RESPONSE: lambda r: httpx.Response(200, content=b"[]"),
        }
        messages = set()
        for kind, handler in handlers.items():
            outcome = await _live_orchestrator(handler).check(GOOD_URL)
            assert outcome.error == kind
            messages.add(outcome.message)

        other = await ThreatCheckOrchestrator(RaisingTransport(RuntimeError("boom"))).check(GOOD_URL)
        assert other.error == CheckErrorKind.OTHER
        messages.add(other.message)

        assert len(messages) == len(handlers) + 1

    @pytest.mark.asyncio
    async def test_repeated_checks_agree(self) -> None:
        orchestrator = _live_orchestrator()
        first = await orchestrator.check(BAD_URL)
        second = await orchestrator.check(BAD_URL)
        assert (first.verdict, first.categories) == (second.verdict, second.categories)
        assert first.check_id != second.check_id

    @pytest.mark.asyncio
    async def test_query_carries_client_identity(self) -> None:
        transport = CountingTransport()
        orchestrator = ThreatCheckOrchestrator(
            transport, client_id="shield-ui", client_version="3.1"
        )
        await orchestrator.check(GOOD_URL)
        query = transport.queries[0]
        assert query.urls == (GOOD_URL,)
        assert (query.client_id, query.client_version) == ("shield-ui", "3.1")


# ─── Heuristic short-circuit ──────────────────────────────────────────────────


class TestHeuristics:
    @pytest.mark.asyncio
    async def test_heuristic_match_makes_no_lookup_call(self) -> None:
        transport = CountingTransport()
        orchestrator = ThreatCheckOrchestrator(transport)
        recorder = Recorder()
        orchestrator.subscribe(recorder)

        outcome = await orchestrator.check("https://free-malware.test")

        assert transport.queries == []
        assert outcome.verdict == Verdict.UNSAFE
        assert outcome.source == VerdictSource.HEURISTIC
        assert outcome.message == MESSAGE_UNSAFE_HEURISTIC
        assert outcome.categories == frozenset({"HEURISTIC_MALWARE_TERM"})
        assert recorder.sequence == [(Verdict.PENDING, True), (Verdict.UNSAFE, False)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw",
        ["http://10.0.0.1/login", "https://user@10.0.0.1/", "https://u:p@192.168.1.1"],
    )
    async def test_raw_ipv4_host_short_circuits(self, raw: str) -> None:
        transport = CountingTransport()
        outcome = await ThreatCheckOrchestrator(transport).check_text(raw)
        assert transport.queries == []
        assert outcome.verdict == Verdict.UNSAFE
        assert outcome.categories == frozenset({"HEURISTIC_RAW_IPV4_HOST"})

    @pytest.mark.asyncio
    async def test_heuristics_disabled_goes_to_lookup(self) -> None:
        transport = CountingTransport()
        orchestrator = ThreatCheckOrchestrator(transport, heuristics_enabled=False)
        outcome = await orchestrator.check("https://free-malware.test")
        assert len(transport.queries) == 1
        assert outcome.verdict == Verdict.SAFE


# ─── Fail-safe boundary ───────────────────────────────────────────────────────


class TestFailSafe:
    @pytest.mark.asyncio
    async def test_unexpected_exception_is_unknown_other(self) -> None:
        orchestrator = ThreatCheckOrchestrator(RaisingTransport(RuntimeError("boom")))
        outcome = await orchestrator.check(GOOD_URL)
        assert outcome.verdict == Verdict.UNKNOWN
        assert outcome.error == CheckErrorKind.OTHER
        assert outcome.message == "An error occurred while checking the URL."
        assert orchestrator.in_progress is False

    @pytest.mark.asyncio
    async def test_unexpected_exception_text_not_shown_to_user(self) -> None:
        leaky = RuntimeError("POST https://lookup.test/find?key=s3cret failed")
        outcome = await ThreatCheckOrchestrator(RaisingTransport(leaky)).check(GOOD_URL)
        assert outcome.error == CheckErrorKind.OTHER
        assert "s3cret" not in outcome.message
        assert "lookup.test" not in outcome.message
        assert "s3cret" not in str(outcome.to_dict())

    @pytest.mark.asyncio
    async def test_wrong_result_type_is_malformed_response(self) -> None:
        orchestrator = ThreatCheckOrchestrator(WrongTypeTransport())
        outcome = await orchestrator.check(GOOD_URL)
        assert outcome.verdict == Verdict.UNKNOWN
        assert outcome.error == CheckErrorKind.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_check(self) -> None:
        def bad_listener(change: StateChange) -> None:
            raise ValueError("listener bug")

        orchestrator = _live_orchestrator()
        recorder = Recorder()
        orchestrator.subscribe(bad_listener)
        orchestrator.subscribe(recorder)

        outcome = await orchestrator.check(GOOD_URL)

        assert outcome.verdict == Verdict.SAFE
        assert recorder.sequence == [(Verdict.PENDING, True), (Verdict.SAFE, False)]

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_notifications(self) -> None:
        orchestrator = _live_orchestrator()
        recorder = Recorder()
        unsubscribe = orchestrator.subscribe(recorder)
        unsubscribe()
        unsubscribe()

        await orchestrator.check(GOOD_URL)
        assert recorder.changes == []

    @pytest.mark.asyncio
    async def test_check_id_context_reset_after_check(self) -> None:
        await _live_orchestrator().check(GOOD_URL)
        assert check_id_var.get() is None


# ─── Cancellation ─────────────────────────────────────────────────────────────


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_while_pending_resets_to_idle(self) -> None:
        transport = BlockingTransport()
        orchestrator = ThreatCheckOrchestrator(transport)
        recorder = Recorder()
        orchestrator.subscribe(recorder)

        task = asyncio.create_task(orchestrator.check(GOOD_URL))
        await transport.started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert orchestrator.verdict == Verdict.IDLE
        assert orchestrator.in_progress is False
        assert recorder.sequence == [(Verdict.PENDING, True), (Verdict.IDLE, False)]

    @pytest.mark.asyncio
    async def test_cancel_one_of_two_keeps_pending(self) -> None:
        transport = BlockingTransport()
        orchestrator = ThreatCheckOrchestrator(transport)

        first = asyncio.create_task(orchestrator.check("https://one.test"))
        second = asyncio.create_task(orchestrator.check("https://two.test"))
        await transport.started.wait()
        await asyncio.sleep(0)
        first.cancel()

        with pytest.raises(asyncio.CancelledError):
            await first

        assert orchestrator.verdict == Verdict.PENDING
        assert orchestrator.in_progress is True

        transport.release.set()
        outcome = await second
        assert outcome.verdict == Verdict.SAFE
        assert orchestrator.verdict == Verdict.SAFE
        assert orchestrator.in_progress is False


# ─── Concurrency ──────────────────────────────────────────────────────────────


class TestOverlappingChecks:
    @pytest.mark.asyncio
    async def test_overlapping_checks_each_complete(self) -> None:
        transport = CountingTransport()
        orchestrator = ThreatCheckOrchestrator(transport)

        outcomes = await asyncio.gather(
            orchestrator.check("https://one.test"),
            orchestrator.check("https://two.test"),
        )

        assert [o.verdict for o in outcomes] == [Verdict.SAFE, Verdict.SAFE]
        assert [o.url for o in outcomes] == ["https://one.test", "https://two.test"]
        assert orchestrator.checks_total == 2
        assert orchestrator.in_progress is False
        assert orchestrator.verdict == Verdict.SAFE


# ─── check_text ───────────────────────────────────────────────────────────────


class TestCheckText:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw, reason",
        [("", InvalidReason.EMPTY), ("   ", InvalidReason.EMPTY), ("not a url", InvalidReason.MALFORMED)],
    )
    async def test_invalid_input_emits_only_invalid(self, raw: str, reason: InvalidReason) -> None:
        transport = CountingTransport()
        orchestrator = ThreatCheckOrchestrator(transport)
        recorder = Recorder()
        orchestrator.subscribe(recorder)

        outcome = await orchestrator.check_text(raw)

        assert outcome.verdict == Verdict.INVALID
        assert outcome.invalid_reason == reason
        assert outcome.check_id is None
        assert recorder.sequence == [(Verdict.INVALID, False)]
        assert transport.queries == []
        assert orchestrator.checks_total == 0

    @pytest.mark.asyncio
    async def test_bare_domain_checked_with_https(self) -> None:
        transport = CountingTransport()
        outcome = await ThreatCheckOrchestrator(transport).check_text("  good.test  ")
        assert outcome.url == GOOD_URL
        assert transport.queries[0].urls == (GOOD_URL,)

    @pytest.mark.asyncio
    async def test_match_from_counting_transport(self) -> None:
        transport = CountingTransport(
            ThreatQueryResult(matches=(ThreatMatch("SOCIAL_ENGINEERING"),))
        )
        outcome = await ThreatCheckOrchestrator(transport).check_text("phish-free.test")
        assert outcome.verdict == Verdict.UNSAFE
        assert outcome.categories == frozenset({"SOCIAL_ENGINEERING"})
