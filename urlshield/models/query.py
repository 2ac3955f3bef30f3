"""Threat-query request and result contracts.

``ThreatQuery`` is the outbound payload sent to the lookup service.
``ThreatQueryResult`` is the parsed inbound response. Both are immutable and
live only for the duration of one check.

Wire format of the request body (see ``ThreatQuery.to_payload()``)::

    {
      "client": {"clientId": "...", "clientVersion": "..."},
      "threatInfo": {
        "threatTypes": ["MALWARE", "SOCIAL_ENGINEERING", ...],
        "platformTypes": ["ANY_PLATFORM"],
        "threatEntryTypes": ["URL"],
        "threatEntries": [{"url": "https://..."}]
      }
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from urlshield.constants import (
    DEFAULT_CLIENT_ID,
    DEFAULT_CLIENT_VERSION,
    PLATFORM_TYPES,
    THREAT_ENTRY_TYPES,
    THREAT_TYPES,
)


@dataclass(frozen=True)
class ThreatQuery:
    """Outbound lookup request for one or more URLs.

    INVARIANT: threat_types, platform_types, threat_entry_types and urls are
    all non-empty. Enforced in ``__post_init__``.
    """

    urls: tuple[str, ...]
    client_id: str = DEFAULT_CLIENT_ID
    client_version: str = DEFAULT_CLIENT_VERSION
    threat_types: tuple[str, ...] = THREAT_TYPES
    platform_types: tuple[str, ...] = PLATFORM_TYPES
    threat_entry_types: tuple[str, ...] = THREAT_ENTRY_TYPES

    def __post_init__(self) -> None:
        for name in ("urls", "threat_types", "platform_types", "threat_entry_types"):
            if not getattr(self, name):
                raise ValueError(f"ThreatQuery.{name} must not be empty")

    @classmethod
    def for_url(
        cls,
        url: str,
        client_id: str = DEFAULT_CLIENT_ID,
        client_version: str = DEFAULT_CLIENT_VERSION,
    ) -> "ThreatQuery":
        """Build the single-URL query used by every check."""
        return cls(urls=(url,), client_id=client_id, client_version=client_version)

    def to_payload(self) -> dict[str, Any]:
        """Serialise to the lookup service JSON body."""
        return {
            "client": {
                "clientId": self.client_id,
                "clientVersion": self.client_version,
            },
            "threatInfo": {
                "threatTypes": list(self.threat_types),
                "platformTypes": list(self.platform_types),
                "threatEntryTypes": list(self.threat_entry_types),
                "threatEntries": [{"url": url} for url in self.urls],
            },
        }


@dataclass(frozen=True)
class ThreatMatch:
    """A single provider-reported match."""

    threat_type: str
    url: Optional[str] = None
    platform_type: Optional[str] = None


@dataclass(frozen=True)
class ThreatQueryResult:
    """Parsed lookup response. An empty ``matches`` tuple means "no known threats"."""

    matches: tuple[ThreatMatch, ...] = field(default_factory=tuple)

    @property
    def is_match(self) -> bool:
        return bool(self.matches)

    @property
    def categories(self) -> frozenset[str]:
        return frozenset(m.threat_type for m in self.matches)

    @classmethod
    def empty(cls) -> "ThreatQueryResult":
        return cls(matches=())
