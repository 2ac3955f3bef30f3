"""Root test configuration for URL Shield.

Clears URLSHIELD_* environment variables for the entire test suite so that a
developer's local credential or transport override never leaks into a test.
Tests that exercise env overrides set them explicitly via monkeypatch.
"""

import pytest

_URLSHIELD_ENV_VARS = (
    "URLSHIELD_API_KEY",
    "URLSHIELD_PORT",
    "URLSHIELD_TRANSPORT",
    "URLSHIELD_CONFIG",
)


@pytest.fixture(autouse=True)
def isolate_urlshield_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove URLSHIELD_* overrides before every test."""
    for name in _URLSHIELD_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
