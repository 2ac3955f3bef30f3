"""Shared constants for URL Shield.

Threat-query vocabulary, caller identity defaults, and transport timeouts are
defined here. No magic values in other modules.
"""

# ─── Threat-query vocabulary ─────────────────────────────────────────────────

# Threat categories requested on every lookup. Fixed per deployment.
THREAT_TYPES: tuple[str, ...] = (
    "MALWARE",
    "SOCIAL_ENGINEERING",
    "UNWANTED_SOFTWARE",
    "POTENTIALLY_HARMFUL_APPLICATION",
)

PLATFORM_TYPES: tuple[str, ...] = ("ANY_PLATFORM",)

THREAT_ENTRY_TYPES: tuple[str, ...] = ("URL",)

# ─── Caller identity ─────────────────────────────────────────────────────────

DEFAULT_CLIENT_ID: str = "urlshield"
DEFAULT_CLIENT_VERSION: str = "1.0.0"

# ─── Lookup service ──────────────────────────────────────────────────────────

DEFAULT_LOOKUP_ENDPOINT: str = "https://safebrowsing.googleapis.com/v4/threatMatches:find"

# Query parameter carrying the caller credential.
CREDENTIAL_PARAM: str = "key"

# Total timeout for one lookup request (seconds).
DEFAULT_LOOKUP_TIMEOUT_S: float = 10.0

# Shared client pool sizing. One lookup per check, so a small pool suffices.
POOL_MAX_CONNECTIONS: int = 20
POOL_MAX_KEEPALIVE: int = 20
POOL_KEEPALIVE_EXPIRY: float = 30.0  # seconds

# ─── Demo transport ──────────────────────────────────────────────────────────

# Simulated lookup latency of the offline demo transport (seconds).
DEFAULT_DEMO_DELAY_S: float = 1.5

# ─── Server binding ──────────────────────────────────────────────────────────

DEFAULT_HOST: str = "127.0.0.1"
DEFAULT_PORT: int = 8480
