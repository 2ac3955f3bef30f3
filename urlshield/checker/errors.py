"""Classified lookup failures.

Transports raise one of these; ``ThreatCheckOrchestrator`` is the boundary that
turns them into an UNKNOWN ``CheckOutcome``. Each class maps to exactly one
``CheckErrorKind`` and carries a user-facing message distinct per kind.

Taxonomy:
  NetworkUnavailableError  — connect / DNS / timeout / reset / protocol errors
  ServiceRejectedError     — non-2xx other than 429 (usually a bad credential)
  RateLimitedError         — HTTP 429
  MalformedResponseError   — 2xx body that does not match the expected schema
  OtherCheckError          — anything else (underlying message in ``detail``, logs only)
"""

from __future__ import annotations

from typing import Optional

from urlshield.models.verdict import CheckErrorKind


class CheckError(Exception):
    """Base class for all classified lookup failures."""

    kind: CheckErrorKind = CheckErrorKind.OTHER

    def __init__(self, detail: str = "", status_code: Optional[int] = None) -> None:
        super().__init__(detail or self.kind.value)
        self.detail = detail
        self.status_code = status_code

    @property
    def user_message(self) -> str:
        return "An error occurred while checking the URL."


class NetworkUnavailableError(CheckError):
    kind = CheckErrorKind.NETWORK_UNAVAILABLE

    @property
    def user_message(self) -> str:
        return (
            "Could not reach the threat lookup service. "
            "Check your connection and try again."
        )


class ServiceRejectedError(CheckError):
    kind = CheckErrorKind.SERVICE_REJECTED

    @property
    def user_message(self) -> str:
        if self.status_code in (401, 403):
            return (
                f"The threat lookup service rejected the request (HTTP {self.status_code}). "
                "Check the configured API key."
            )
        return f"The threat lookup service returned an error (HTTP {self.status_code})."


class RateLimitedError(CheckError):
    kind = CheckErrorKind.RATE_LIMITED

    def __init__(self, detail: str = "", status_code: Optional[int] = 429) -> None:
        super().__init__(detail, status_code)

    @property
    def user_message(self) -> str:
        return "Too many lookups right now. Please try again later."


class MalformedResponseError(CheckError):
    kind = CheckErrorKind.MALFORMED_RESPONSE

    @property
    def user_message(self) -> str:
        return "The threat lookup service returned an unexpected response."


class OtherCheckError(CheckError):
    kind = CheckErrorKind.OTHER
