"""Verdict state, check outcomes, and state-change notifications.

The verdict is the only state a host ever sees. It is a single discriminated
value (``Verdict``) recomputed on every check, plus an independent progress
flag carried on ``StateChange`` so a presentation layer can render a loading
indicator without inspecting the verdict itself.

Transition sequence for one check::

    IDLE ──► PENDING ──► SAFE | UNSAFE | UNKNOWN
      └────────────────► INVALID            (rejected before any lookup)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Verdict(str, Enum):
    """Check state as surfaced to the host."""

    IDLE = "idle"
    PENDING = "pending"
    SAFE = "safe"
    UNSAFE = "unsafe"
    INVALID = "invalid"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self not in (Verdict.IDLE, Verdict.PENDING)


class InvalidReason(str, Enum):
    """Why raw input was rejected by the normalizer."""

    EMPTY = "empty"
    MALFORMED = "malformed"


class CheckErrorKind(str, Enum):
    """Classified lookup failure. Always paired with ``Verdict.UNKNOWN``."""

    NETWORK_UNAVAILABLE = "network_unavailable"
    SERVICE_REJECTED = "service_rejected"
    RATE_LIMITED = "rate_limited"
    MALFORMED_RESPONSE = "malformed_response"
    OTHER = "other"


class VerdictSource(str, Enum):
    """Who produced an UNSAFE verdict."""

    HEURISTIC = "heuristic"
    PROVIDER = "provider"


# ─── User-facing messages ─────────────────────────────────────────────────────

MESSAGE_SAFE = "This URL appears to be safe."
MESSAGE_UNSAFE_PROVIDER = "This URL is unsafe! (Malware, phishing, or harmful content detected)"
MESSAGE_UNSAFE_HEURISTIC = "This URL appears to be unsafe! It contains suspicious patterns."

INVALID_MESSAGES: dict[InvalidReason, str] = {
    InvalidReason.EMPTY: "Please enter a URL.",
    InvalidReason.MALFORMED: "Please enter a valid URL.",
}


@dataclass(frozen=True)
class CheckOutcome:
    """Result of one check cycle. Immutable; replaced wholesale by the next check.

    Fields:
        verdict:        Terminal verdict (SAFE, UNSAFE, INVALID or UNKNOWN).
        message:        Human-readable text distinct per verdict / error kind.
        check_id:       ULID of the check (None for INVALID).
        url:            Canonical URL that was checked (None for INVALID).
        categories:     Matched categories. Provider categories use the lookup
                        service vocabulary (e.g. ``MALWARE``); heuristic
                        categories are prefixed ``HEURISTIC_``.
        source:         HEURISTIC or PROVIDER for UNSAFE verdicts, else None.
        error:          CheckErrorKind for UNKNOWN verdicts, else None.
        status_code:    Provider HTTP status for SERVICE_REJECTED / RATE_LIMITED.
        invalid_reason: InvalidReason for INVALID verdicts, else None.
    """

    verdict: Verdict
    message: str = ""
    check_id: Optional[str] = None
    url: Optional[str] = None
    categories: frozenset[str] = field(default_factory=frozenset)
    source: Optional[VerdictSource] = None
    error: Optional[CheckErrorKind] = None
    status_code: Optional[int] = None
    invalid_reason: Optional[InvalidReason] = None

    def to_dict(self) -> dict:
        """JSON-serialisable representation (categories sorted for stable output)."""
        return {
            "verdict": self.verdict.value,
            "message": self.message,
            "check_id": self.check_id,
            "url": self.url,
            "categories": sorted(self.categories),
            "source": self.source.value if self.source else None,
            "error": self.error.value if self.error else None,
            "status_code": self.status_code,
            "reason": self.invalid_reason.value if self.invalid_reason else None,
        }


@dataclass(frozen=True)
class StateChange:
    """One observable transition, delivered to subscribers.

    ``verdict`` and ``in_progress`` are updated together before subscribers are
    notified, so no listener ever observes a terminal verdict with the progress
    flag still set (or the reverse).
    """

    previous: Verdict
    verdict: Verdict
    in_progress: bool
    check_id: Optional[str] = None
    outcome: Optional[CheckOutcome] = None
