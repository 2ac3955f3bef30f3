"""ULID generation utility for URL Shield.

Provides a single `generate_ulid()` function that returns a 26-character ULID
(Universally Unique Lexicographically Sortable Identifier) used as:
  - check_id for every threat check (bound into structured logs)
  - X-URLShield-Check-ID response header value

Uses the `python-ulid` library.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID as a 26-character uppercase string.

    Returns:
        str: A 26-character ULID string in Crockford Base32
             (charset ``[0-9A-HJKMNP-TV-Z]``).

    Example::

        check_id = generate_ulid()
        assert len(check_id) == 26
    """
    return str(ULID())
