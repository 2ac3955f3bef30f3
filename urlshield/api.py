"""Check API endpoint.

Routes:
    POST /v1/check — {"url": "<raw user text>"} → verdict

The endpoint is a thin adapter: it hands the raw text to
``ThreatCheckOrchestrator.check_text()`` (normalize → heuristics → lookup) and
maps the CheckOutcome to an HTTP response via ``build_outcome_response()``.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from urlshield.checker.orchestrator import ThreatCheckOrchestrator
from urlshield.models.responses import build_outcome_response

router = APIRouter(tags=["check"])


class CheckRequest(BaseModel):
    """Body for POST /v1/check. ``url`` is untrusted raw text, validated downstream."""

    url: Optional[str] = None


@router.post("/v1/check")
async def check_url(request: Request, body: CheckRequest) -> JSONResponse:
    """Run one threat check on the submitted text.

    Returns:
        200 SAFE / UNSAFE, 422 INVALID, 502 UNKNOWN (see models/responses.py).
    """
    orchestrator: ThreatCheckOrchestrator = request.app.state.orchestrator
    outcome = await orchestrator.check_text(body.url)
    return build_outcome_response(outcome)
