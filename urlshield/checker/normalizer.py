"""Input normalizer / validator.

Provides ``normalize()``: raw user text → ``CanonicalURL`` or ``InvalidInput``.

Steps:
  1. Trim surrounding whitespace. Empty → InvalidInput(EMPTY).
  2. No ``http://`` / ``https://`` prefix (case-insensitive) → prepend ``https://``.
     This is a usability affordance, not a security judgement.
  3. Validate the full URL: scheme, host (domain name or dotted IPv4),
     optional port, optional path / query / fragment. Failure → InvalidInput(MALFORMED).

Host acceptance policy:
  - Domain names: LDH labels (1–63 chars, no leading/trailing hyphen), total
    ≤ 253 chars after IDNA encoding. Single-label hosts (``localhost``) allowed.
    One trailing dot (FQDN form) allowed.
  - A host whose last label is numeric must be a full dotted quad with every
    octet in 0–255. ``256.256.256.256`` and ``1.2.3`` are MALFORMED.
  - IPv6 literals are MALFORMED.
  - Whitespace, control characters and backslashes anywhere are MALFORMED.
  - Ports must be 1–5 digits and ≤ 65535; an empty port (``host:``) is MALFORMED.

Pure function: no I/O, no shared state, deterministic.

IMPORT RULES:
  - ``import re2`` ONLY for pattern matching, as in the heuristic scanner.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import urlsplit

import re2

from urlshield.models.verdict import INVALID_MESSAGES, InvalidReason

DEFAULT_SCHEME_PREFIX = "https://"
ALLOWED_SCHEMES: frozenset[str] = frozenset({"http", "https"})

MAX_HOST_LENGTH = 253
MAX_PORT = 65535

# Compiled once at module load.
_SCHEME_PREFIX = re2.compile(r"(?i)^https?://")
_FORBIDDEN_CHARS = re2.compile(r"[\x00-\x20\x7f\\]")
_DOMAIN_LABEL = re2.compile(r"[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?")
_NUMERIC_LABEL = re2.compile(r"[0-9]+")
_OCTET = re2.compile(r"[0-9]{1,3}")
_PORT = re2.compile(r"[0-9]{1,5}")


@dataclass(frozen=True)
class CanonicalURL:
    """Absolute, scheme-qualified URL that passed validation."""

    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class InvalidInput:
    """Rejected raw input. Never reaches the lookup stage."""

    reason: InvalidReason

    @property
    def message(self) -> str:
        return INVALID_MESSAGES[self.reason]


NormalizeResult = Union[CanonicalURL, InvalidInput]


def normalize(raw: Optional[str]) -> NormalizeResult:
    """Turn raw user text into a CanonicalURL, or reject it.

    Args:
        raw: Untrusted user text. ``None`` is treated as empty.

    Returns:
        CanonicalURL on success; InvalidInput(EMPTY | MALFORMED) otherwise.

    Examples::

        normalize("example.com")            # CanonicalURL("https://example.com")
        normalize("  HTTP://Example.com ")  # CanonicalURL("http://Example.com")
        normalize("   ")                    # InvalidInput(EMPTY)
        normalize("http://256.256.256.256") # InvalidInput(MALFORMED)
    """
    text = (raw or "").strip()
    if not text:
        return InvalidInput(InvalidReason.EMPTY)

    prefix = _SCHEME_PREFIX.search(text)
    if prefix is not None:
        # Lower-case only the scheme; the rest is kept as typed.
        candidate = prefix.group(0).lower() + text[prefix.end():]
    else:
        candidate = DEFAULT_SCHEME_PREFIX + text

    if not is_valid_url(candidate):
        return InvalidInput(InvalidReason.MALFORMED)
    return CanonicalURL(candidate)


def is_valid_url(url: str) -> bool:
    """Return True if ``url`` is an absolute http(s) URL with a valid authority."""
    if _FORBIDDEN_CHARS.search(url):
        return False

    try:
        parts = urlsplit(url)
    except ValueError:
        # urlsplit raises on unbalanced IPv6 brackets
        return False

    if parts.scheme.lower() not in ALLOWED_SCHEMES or not parts.netloc:
        return False

    hostport = parts.netloc.rpartition("@")[2]
    if not hostport or hostport.startswith("["):
        return False

    host, has_port, port = hostport.partition(":")
    if has_port and not _is_valid_port(port):
        return False
    return _is_valid_host(host)


def _is_valid_port(port: str) -> bool:
    return bool(_PORT.fullmatch(port)) and int(port) <= MAX_PORT


def _is_valid_host(host: str) -> bool:
    host = host.lower()
    if host.endswith("."):
        host = host[:-1]
    if not host:
        return False

    labels = host.split(".")
    if _NUMERIC_LABEL.fullmatch(labels[-1]):
        return _is_valid_ipv4(labels)

    try:
        ascii_host = host.encode("idna").decode("ascii")
    except UnicodeError:
        return False
    if len(ascii_host) > MAX_HOST_LENGTH:
        return False
    return all(_DOMAIN_LABEL.fullmatch(label) for label in ascii_host.split("."))


def _is_valid_ipv4(octets: list[str]) -> bool:
    if len(octets) != 4:
        return False
    return all(_OCTET.fullmatch(o) and int(o) <= 255 for o in octets)
