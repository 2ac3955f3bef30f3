"""HTTP response builders for check outcomes.

Three distinct response shapes, never confused:

  build_verdict_response():
      HTTP 200 — SAFE or UNSAFE. The lookup (or heuristic) produced a verdict.

  build_invalid_response():
      HTTP 422 — INVALID. Input was rejected before any lookup.

  build_unknown_response():
      HTTP 502 — UNKNOWN. The lookup service could not produce a verdict.
      Carries ``X-URLShield-Error: <kind>`` so operators can tell a bad
      credential from a network outage without parsing the body.

Every response that corresponds to a real check carries
``X-URLShield-Check-ID: <ulid>`` for correlation with logs.
"""

from __future__ import annotations

from fastapi.responses import JSONResponse

from urlshield.models.verdict import CheckOutcome, Verdict

CHECK_ID_HEADER = "X-URLShield-Check-ID"
ERROR_HEADER = "X-URLShield-Error"


def build_verdict_response(outcome: CheckOutcome) -> JSONResponse:
    """HTTP 200 for SAFE / UNSAFE outcomes."""
    response = JSONResponse(status_code=200, content=outcome.to_dict())
    if outcome.check_id:
        response.headers[CHECK_ID_HEADER] = outcome.check_id
    return response


def build_invalid_response(outcome: CheckOutcome) -> JSONResponse:
    """HTTP 422 for INVALID outcomes. No check ID: no check was run."""
    return JSONResponse(
        status_code=422,
        content={
            "verdict": Verdict.INVALID.value,
            "reason": outcome.invalid_reason.value if outcome.invalid_reason else None,
            "message": outcome.message,
        },
    )


def build_unknown_response(outcome: CheckOutcome) -> JSONResponse:
    """HTTP 502 for UNKNOWN outcomes.

    The body never includes credential data or the provider endpoint.
    """
    response = JSONResponse(status_code=502, content=outcome.to_dict())
    if outcome.check_id:
        response.headers[CHECK_ID_HEADER] = outcome.check_id
    if outcome.error:
        response.headers[ERROR_HEADER] = outcome.error.value
    return response


def build_outcome_response(outcome: CheckOutcome) -> JSONResponse:
    """Dispatch to the builder matching the outcome's verdict."""
    if outcome.verdict == Verdict.INVALID:
        return build_invalid_response(outcome)
    if outcome.verdict == Verdict.UNKNOWN:
        return build_unknown_response(outcome)
    return build_verdict_response(outcome)
