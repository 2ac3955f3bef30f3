"""Health endpoint for URL Shield.

Implements:
  GET /health — 503 before ``app.state.ready``, 200 with a status body after.

The check never contacts the lookup provider; it reports configuration and
in-process counters only.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from urlshield.checker.orchestrator import ThreatCheckOrchestrator
from urlshield.config import Config

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Primary health check endpoint.

    Response body (200):
        {
          "status": "ok" | "degraded",
          "transport": "live" | "demo",
          "credential_configured": true | false,
          "heuristics_enabled": true | false,
          "checks_total": 0,
          "in_progress": false
        }

    ``degraded`` means the live transport is selected without a credential:
    every lookup will come back SERVICE_REJECTED until one is configured.
    """
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={
                "status": "starting",
                "message": "URL Shield is starting up.",
            },
        )

    config: Config = request.app.state.config
    orchestrator: ThreatCheckOrchestrator = request.app.state.orchestrator
    credential_configured = bool(config.lookup.api_key)
    degraded = config.lookup.transport == "live" and not credential_configured

    return {
        "status": "degraded" if degraded else "ok",
        "transport": config.lookup.transport,
        "credential_configured": credential_configured,
        "heuristics_enabled": orchestrator.heuristics_enabled,
        "checks_total": orchestrator.checks_total,
        "in_progress": orchestrator.in_progress,
    }
