"""Transport + orchestrator factory — selection from Config.

Transport selection:
  1. lookup.transport == "demo" → DemoTransport (no network, no credential)
  2. otherwise                  → SafeBrowsingTransport over the shared httpx client

A live transport without a credential is still created: the provider rejects
those lookups and they surface as SERVICE_REJECTED, which is the diagnosable
failure operators expect. load_config() has already logged a warning.
"""

from __future__ import annotations

import httpx

from urlshield.checker.orchestrator import ThreatCheckOrchestrator
from urlshield.checker.transport import (
    DemoTransport,
    SafeBrowsingTransport,
    ThreatLookupTransport,
)
from urlshield.config import Config
from urlshield.utils.logger import get_logger

logger = get_logger(__name__)


def create_transport(config: Config, http_client: httpx.AsyncClient) -> ThreatLookupTransport:
    """Create the lookup transport selected by ``config.lookup.transport``."""
    if config.lookup.transport == "demo":
        logger.info("Using demo lookup transport", delay_s=config.demo.delay_s)
        return DemoTransport(delay_s=config.demo.delay_s)

    logger.info(
        "Using live lookup transport",
        endpoint=config.lookup.endpoint,
        credential_configured=bool(config.lookup.api_key),
    )
    return SafeBrowsingTransport(
        client=http_client,
        api_key=config.lookup.api_key or "",
        endpoint=config.lookup.endpoint,
    )


def create_orchestrator(
    config: Config, transport: ThreatLookupTransport
) -> ThreatCheckOrchestrator:
    """Create the orchestrator with caller identity and heuristics from config."""
    return ThreatCheckOrchestrator(
        transport,
        heuristics_enabled=config.heuristics.enabled,
        client_id=config.lookup.client_id,
        client_version=config.lookup.client_version,
    )
