"""Config loading for URL Shield.

Reads `.urlshield/config.yaml` (or `~/.urlshield/config.yaml`).
Raises SystemExit on parse errors or missing `version` field.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. `config_path` argument (if provided — for testing or explicit override)
  2. URLSHIELD_CONFIG environment variable (if set)
  3. `.urlshield/config.yaml` (working directory — for development)
  4. `~/.urlshield/config.yaml` (home directory — for production deployments)

Environment variable overrides (applied after the file is parsed):
  URLSHIELD_API_KEY   — lookup credential (preferred over lookup.api_key in the file)
  URLSHIELD_PORT      — overrides server.port
  URLSHIELD_TRANSPORT — overrides lookup.transport ("live" | "demo")
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import NoReturn, Optional

import yaml

from urlshield.constants import (
    DEFAULT_CLIENT_ID,
    DEFAULT_CLIENT_VERSION,
    DEFAULT_DEMO_DELAY_S,
    DEFAULT_HOST,
    DEFAULT_LOOKUP_ENDPOINT,
    DEFAULT_LOOKUP_TIMEOUT_S,
    DEFAULT_PORT,
)
from urlshield.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# ─── Validation sets ─────────────────────────────────────────────────────────

VALID_TRANSPORTS: frozenset[str] = frozenset({"live", "demo"})

DEFAULT_CONFIG_PATHS = [
    ".urlshield/config.yaml",
    os.path.expanduser("~/.urlshield/config.yaml"),
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class LookupConfig:
    """Threat lookup service configuration.

    transport:      "live" (real provider over HTTPS) or "demo" (offline simulation)
    endpoint:       Lookup URL; the credential is appended as ?key=...
    api_key:        Caller credential. Prefer URLSHIELD_API_KEY over the file.
    client_id:      Caller identity sent in every query
    client_version: Caller version sent in every query
    timeout_s:      Total timeout for one lookup request
    """

    transport: str = "live"
    endpoint: str = DEFAULT_LOOKUP_ENDPOINT
    api_key: Optional[str] = field(default=None, repr=False)
    client_id: str = DEFAULT_CLIENT_ID
    client_version: str = DEFAULT_CLIENT_VERSION
    timeout_s: float = DEFAULT_LOOKUP_TIMEOUT_S


@dataclass
class HeuristicsConfig:
    """Local heuristic pre-check configuration."""

    enabled: bool = True


@dataclass
class DemoConfig:
    """Offline demo transport configuration."""

    delay_s: float = DEFAULT_DEMO_DELAY_S


@dataclass
class ServerConfig:
    """HTTP server binding configuration."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


@dataclass
class Config:
    """Root configuration object populated from .urlshield/config.yaml.

    All fields have safe defaults; URL Shield can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    lookup: LookupConfig = field(default_factory=LookupConfig)
    heuristics: HeuristicsConfig = field(default_factory=HeuristicsConfig)
    demo: DemoConfig = field(default_factory=DemoConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            SystemExit(1): On invalid lookup.transport or a non-positive timeout / delay.
        """
        # ── Lookup ────────────────────────────────────────────────────────────
        lookup_raw = raw.get("lookup") or {}
        transport = lookup_raw.get("transport", "live")
        _validate_transport(transport, source="lookup.transport")
        timeout_s = _positive_float(
            lookup_raw.get("timeout_s", DEFAULT_LOOKUP_TIMEOUT_S), "lookup.timeout_s"
        )
        lookup = LookupConfig(
            transport=transport,
            endpoint=lookup_raw.get("endpoint", DEFAULT_LOOKUP_ENDPOINT),
            api_key=lookup_raw.get("api_key"),
            client_id=lookup_raw.get("client_id", DEFAULT_CLIENT_ID),
            client_version=str(lookup_raw.get("client_version", DEFAULT_CLIENT_VERSION)),
            timeout_s=timeout_s,
        )

        # ── Heuristics ────────────────────────────────────────────────────────
        heuristics_raw = raw.get("heuristics") or {}
        heuristics = HeuristicsConfig(enabled=bool(heuristics_raw.get("enabled", True)))

        # ── Demo ──────────────────────────────────────────────────────────────
        demo_raw = raw.get("demo") or {}
        delay_s = demo_raw.get("delay_s", DEFAULT_DEMO_DELAY_S)
        if delay_s != 0:
            delay_s = _positive_float(delay_s, "demo.delay_s")
        demo = DemoConfig(delay_s=float(delay_s))

        # ── Server ────────────────────────────────────────────────────────────
        server_raw = raw.get("server") or {}
        server = ServerConfig(
            host=server_raw.get("host", DEFAULT_HOST),
            port=server_raw.get("port", DEFAULT_PORT),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            lookup=lookup,
            heuristics=heuristics,
            demo=demo,
            server=server,
            path=path,
        )


def _config_error(msg: str) -> NoReturn:
    print(f"CONFIG ERROR: {msg}", file=sys.stderr)
    raise SystemExit(1)


def _validate_transport(value: str, source: str) -> None:
    if value not in VALID_TRANSPORTS:
        _config_error(
            f"Invalid {source}: '{value}'. Supported values: {sorted(VALID_TRANSPORTS)}."
        )


def _positive_float(value: object, name: str) -> float:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        _config_error(f"{name} must be a number, got '{value}'.")
    if number <= 0:
        _config_error(f"{name} must be greater than 0, got {number}.")
    return number


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate URL Shield configuration.

    If no file is found at any search path, returns default Config (not an error).
    If a file is found but invalid, writes error to stderr and raises SystemExit(1).
    Environment overrides are applied in both cases.

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field, unsupported
                       version, invalid ``lookup.transport``, non-positive timeout,
                       or invalid ``URLSHIELD_PORT`` / ``URLSHIELD_TRANSPORT``.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("URLSHIELD_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found ─────────────────────────────────────────────────
    if found_path is None:
        logger.info("No config file found, using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        _warn_on_risky_settings(config)
        return config

    # ── Parse config file ─────────────────────────────────────────────────────
    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _config_error(
            f"Failed to parse {found_path}: {exc}\n"
            "URL Shield refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        _config_error(f"Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _config_error(
                f"{found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _config_error(
            f"{found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        _config_error(
            f"{found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        _config_error(
            f"Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)
    _warn_on_risky_settings(config)

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        transport=config.lookup.transport,
        heuristics_enabled=config.heuristics.enabled,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Raises:
        SystemExit(1): If URLSHIELD_PORT is not an integer or
                       URLSHIELD_TRANSPORT is not a supported transport.
    """
    env_key = os.environ.get("URLSHIELD_API_KEY")
    if env_key:
        config.lookup.api_key = env_key

    env_port = os.environ.get("URLSHIELD_PORT")
    if env_port is not None:
        try:
            config.server.port = int(env_port)
        except ValueError:
            _config_error(
                f"URLSHIELD_PORT environment variable is not a valid integer: '{env_port}'"
            )

    env_transport = os.environ.get("URLSHIELD_TRANSPORT")
    if env_transport is not None:
        _validate_transport(env_transport, source="URLSHIELD_TRANSPORT")
        config.lookup.transport = env_transport


def _warn_on_risky_settings(config: Config) -> None:
    if config.lookup.transport == "live" and not config.lookup.api_key:
        logger.warning(
            "No lookup credential configured. Set URLSHIELD_API_KEY; "
            "live lookups will be rejected by the provider until then."
        )
    if config.server.host == "0.0.0.0":
        logger.warning(
            "SECURITY WARNING: URL Shield is configured to bind on 0.0.0.0 (all interfaces). "
            "Recommended: use server.host: '127.0.0.1' for local-only access."
        )
